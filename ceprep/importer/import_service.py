"""
Import orchestrator: turns a licensing course document into stored content.

Phases, in order:
1. Parse the document into nodes (fatal on failure)
2. Map nodes to tracks/modules/lessons and persist (fatal on failure)
3. Chunk each new lesson (best effort, optional embeddings)
4. Build checkpoints for each new lesson (best effort)
5. Fill each new lesson's microquiz (best effort)
6. Extract assessment questions into banks
7. Derive exam configurations (main simulator plus mini exams)
8. Create marker-pattern flashcards for the system user

Per-lesson failures are logged and collected in ImportResult.errors;
later lessons and phases still run. Only lessons created by this run go
through phases 3-5, so re-importing the same document is a no-op for
existing lessons.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from loguru import logger

from config import get_settings
from ceprep import __version__
from ceprep.content.parser import DocumentParser
from ceprep.content.sections import QUIZ_SECTION
from ceprep.curriculum.outline import OutlineMapper, slugify
from ceprep.db.storage import Storage
from ceprep.errors import LessonProcessingFailed
from ceprep.lessons.checkpoints import CEMeta, CheckpointBuilder, HeadingIndex
from ceprep.lessons.microquiz import MicroquizExtractor
from ceprep.processing.chunker import ContentChunker, Embedder
from ceprep.quiz.exam_blueprint import ExamBlueprintBuilder
from ceprep.quiz.question_extractor import QuestionExtractor
from ceprep.study.flashcards import FlashcardService

# Lessons with at least this many non-quiz '##' sections are segmented by heading
MIN_HEADING_SECTIONS = 3


@dataclass
class ImportResult:
    """Counts of entities created by one import run."""

    tracks: int = 0
    modules: int = 0
    lessons: int = 0
    chunks: int = 0
    banks: int = 0
    questions: int = 0
    exams: int = 0
    flashcards: int = 0
    version: str = ""
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


class ImportService:
    """
    Run the full import pipeline against one Storage.

    Example:
        >>> service = ImportService(Storage())
        >>> result = service.run_import(Path("course.docx"))
        >>> result.lessons, result.errors
    """

    def __init__(
        self,
        storage: Storage,
        parser: DocumentParser | None = None,
        embedder: Embedder | None = None,
        chunker: ContentChunker | None = None,
    ):
        self.settings = get_settings()
        self.storage = storage
        self.parser = parser or DocumentParser()
        if embedder is None and self.settings.embedding_enabled:
            from ceprep.semantic.embedding_service import EmbeddingService

            embedder = EmbeddingService()
        self.chunker = chunker or ContentChunker(embedder=embedder)
        self.mapper = OutlineMapper(storage)
        self.checkpoints = CheckpointBuilder(storage)
        self.microquiz = MicroquizExtractor(storage, self.checkpoints)
        self.questions = QuestionExtractor(storage)
        self.exams = ExamBlueprintBuilder(storage)
        self.flashcards = FlashcardService(storage)

    # ========================================
    # Main Import
    # ========================================

    def run_import(self, path: str | Path, cancel: threading.Event | None = None) -> ImportResult:
        """
        Import one document.

        Raises:
            DocumentUnreadable: the file cannot be read.
            StructureMalformed: the outline is inconsistent.
        """
        path = Path(path)
        result = ImportResult(version=f"v{__version__}-{slugify(path.stem)[:30]}-{date.today().isoformat()}")
        logger.info(f"Import started: {path} ({result.version})")

        nodes = self.parser.parse(path)
        logger.info(f"Phase 1: parsed {len(nodes)} nodes")

        tree = self.mapper.map_to_outline(nodes)
        counts = self.mapper.persist(tree)
        result.tracks = counts.tracks_created
        result.modules = counts.modules_created
        result.lessons = counts.lessons_created
        logger.info(f"Phase 2: {result.tracks} tracks, {result.modules} modules, {result.lessons} lessons created")

        lesson_ids = counts.lesson_ids
        result.chunks = sum(self._each_lesson(lesson_ids, "chunk", self._chunk_lesson, result, cancel))
        logger.info(f"Phase 3: {result.chunks} chunks")

        checkpoints = sum(self._each_lesson(lesson_ids, "checkpoints", self._build_checkpoints, result, cancel))
        logger.info(f"Phase 4: {checkpoints} checkpoints")

        quiz_items = sum(self._each_lesson(lesson_ids, "microquiz", self.microquiz.apply_to, result, cancel))
        logger.info(f"Phase 5: {quiz_items} microquiz questions")

        if result.cancelled:
            logger.warning("Import cancelled; skipped question, exam and flashcard phases")
            return result

        banks = self.questions.extract(nodes)
        result.banks, result.questions = self.questions.save_question_banks(banks)
        logger.info(f"Phase 6: {result.banks} banks, {result.questions} questions")

        result.exams = self.exams.build_all()
        logger.info(f"Phase 7: {result.exams} exam configurations")

        drafts = self.flashcards.extract_marker_flashcards(nodes)
        result.flashcards = self.flashcards.save_drafts(self.settings.system_user_id, drafts).created
        logger.info(f"Phase 8: {result.flashcards} flashcards")

        if result.errors:
            logger.warning(f"Import finished with {len(result.errors)} errors")
        else:
            logger.info("Import completed successfully")
        return result

    def _each_lesson(
        self,
        lesson_ids: list[str],
        phase: str,
        step: Callable[[str], int],
        result: ImportResult,
        cancel: threading.Event | None,
    ) -> list[int]:
        """Run step for every lesson, collecting failures instead of raising."""
        counts: list[int] = []
        for lesson_id in lesson_ids:
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                break
            try:
                counts.append(step(lesson_id))
            except Exception as e:  # Any per-lesson failure is recorded; the import continues
                lesson = self.storage.get_lesson(lesson_id)
                failure = LessonProcessingFailed(lesson_id, lesson.title if lesson else "?", phase, e)
                logger.error(str(failure))
                result.errors.append(str(failure))
        return counts

    # ========================================
    # Per-lesson steps
    # ========================================

    def _chunk_lesson(self, lesson_id: str) -> int:
        lesson = self.storage.get_lesson(lesson_id)
        if not lesson.content:
            return 0
        chunks = self.chunker.chunk_lesson(lesson_id, lesson.content)
        return self.chunker.save_chunks(self.storage, lesson_id, chunks)

    def _build_checkpoints(self, lesson_id: str) -> int:
        lesson = self.storage.get_lesson(lesson_id)
        content = lesson.content or ""
        index = HeadingIndex.from_markdown(content, skip=QUIZ_SECTION)
        heading_index = index if len(index.h4_sections) >= MIN_HEADING_SECTIONS else None
        ce_meta = CEMeta(hours=lesson.ce_hours, seat_time_min=lesson.ce_hours * 60) if lesson.ce_hours else None
        return len(self.checkpoints.build(lesson_id, heading_index=heading_index, ce_meta=ce_meta))

    # ========================================
    # Maintenance
    # ========================================

    def clear_all_content(self) -> None:
        """Remove all imported content before a fresh import."""
        logger.info("Clearing all existing content")
        self.storage.clear_all_content()
