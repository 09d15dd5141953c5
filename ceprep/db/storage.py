"""
Persistence collaborator for the import pipeline and study services.

Every public method runs in its own transaction (session_scope). Returned
records are detached but fully loaded (expire_on_commit=False), so callers
read plain attributes only and never walk relationships.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from loguru import logger
from sqlalchemy import Engine, func
from sqlalchemy.orm import sessionmaker

from ceprep.db.database import get_engine, session_scope
from ceprep.db.models import (
    Base,
    CheckpointProgressRecord,
    ContentChunkRecord,
    ExamConfigRecord,
    ExamQuestionRecord,
    FlashcardRecord,
    FlashcardReviewRecord,
    LessonCheckpoint,
    LessonRecord,
    ModuleRecord,
    QuestionBankRecord,
    QuestionRecord,
    TrackRecord,
)

if TYPE_CHECKING:
    from ceprep.lessons.checkpoints import Checkpoint
    from ceprep.processing.chunker import ContentChunk
    from ceprep.quiz.question_extractor import ExtractedQuestion
    from ceprep.study.flashcards import FlashcardDraft
    from ceprep.study.scheduler import ReviewOutcome


def _value(field: Any) -> Any:
    """Enum members are stored by value."""
    return getattr(field, "value", field)


class Storage:
    """
    SQLAlchemy-backed storage.

    Example:
        >>> storage = Storage(make_engine("sqlite://"))
        >>> storage.create_all()
        >>> storage.find_track("life-health-annuities") is None
        True
    """

    def __init__(self, engine: Engine | None = None):
        self.engine = engine or get_engine()
        self._factory = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)

    def session(self):
        return session_scope(self._factory)

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    # =========================================================================
    # Curriculum
    # =========================================================================

    def find_track(self, slug: str) -> TrackRecord | None:
        with self.session() as session:
            return session.query(TrackRecord).filter(TrackRecord.slug == slug).first()

    def add_track(self, **fields) -> TrackRecord:
        with self.session() as session:
            track = TrackRecord(**fields)
            session.add(track)
            session.flush()
            return track

    def find_module(self, track_id: str, slug: str) -> ModuleRecord | None:
        with self.session() as session:
            return (
                session.query(ModuleRecord)
                .filter(ModuleRecord.track_id == track_id, ModuleRecord.slug == slug)
                .first()
            )

    def add_module(self, **fields) -> ModuleRecord:
        with self.session() as session:
            module = ModuleRecord(**fields)
            session.add(module)
            session.flush()
            return module

    def find_lesson(self, module_id: str, slug: str) -> LessonRecord | None:
        with self.session() as session:
            return (
                session.query(LessonRecord)
                .filter(LessonRecord.module_id == module_id, LessonRecord.slug == slug)
                .first()
            )

    def add_lesson(self, **fields) -> LessonRecord:
        with self.session() as session:
            lesson = LessonRecord(**fields)
            session.add(lesson)
            session.flush()
            return lesson

    def get_lesson(self, lesson_id: str) -> LessonRecord | None:
        with self.session() as session:
            return session.get(LessonRecord, lesson_id)

    def get_all_lessons(self) -> list[LessonRecord]:
        """Lessons in outline order (track, module, lesson)."""
        with self.session() as session:
            return (
                session.query(LessonRecord)
                .join(ModuleRecord, LessonRecord.module_id == ModuleRecord.id)
                .join(TrackRecord, ModuleRecord.track_id == TrackRecord.id)
                .order_by(TrackRecord.order_index, ModuleRecord.order_index, LessonRecord.order_index)
                .all()
            )

    def get_tracks(self) -> list[TrackRecord]:
        with self.session() as session:
            return session.query(TrackRecord).order_by(TrackRecord.order_index).all()

    def get_modules(self, track_id: str) -> list[ModuleRecord]:
        with self.session() as session:
            return (
                session.query(ModuleRecord)
                .filter(ModuleRecord.track_id == track_id)
                .order_by(ModuleRecord.order_index)
                .all()
            )

    def get_lessons_by_module(self, module_id: str) -> list[LessonRecord]:
        with self.session() as session:
            return (
                session.query(LessonRecord)
                .filter(LessonRecord.module_id == module_id)
                .order_by(LessonRecord.order_index)
                .all()
            )

    # =========================================================================
    # Chunks
    # =========================================================================

    def replace_chunks(self, lesson_id: str, chunks: list[ContentChunk]) -> int:
        with self.session() as session:
            session.query(ContentChunkRecord).filter(ContentChunkRecord.lesson_id == lesson_id).delete()
            session.add_all(
                ContentChunkRecord(
                    lesson_id=lesson_id,
                    position=position,
                    content=chunk.text,
                    tokens=chunk.token_count,
                    headings=chunk.headings,
                    page_ref=chunk.page_ref,
                    embedding=chunk.embedding,
                )
                for position, chunk in enumerate(chunks)
            )
        return len(chunks)

    def get_chunks(self, lesson_id: str) -> list[ContentChunkRecord]:
        with self.session() as session:
            return (
                session.query(ContentChunkRecord)
                .filter(ContentChunkRecord.lesson_id == lesson_id)
                .order_by(ContentChunkRecord.position)
                .all()
            )

    def get_source_texts(self, source_ids: Iterable[str]) -> list[tuple[str, str]]:
        """(id, text) for each id, read from chunks first and lessons otherwise."""
        ids = list(source_ids)
        with self.session() as session:
            found = {
                c.id: c.content
                for c in session.query(ContentChunkRecord).filter(ContentChunkRecord.id.in_(ids)).all()
            }
            missing = [i for i in ids if i not in found]
            if missing:
                for lesson in session.query(LessonRecord).filter(LessonRecord.id.in_(missing)).all():
                    found[lesson.id] = lesson.content or ""
        return [(i, found[i]) for i in ids if i in found]

    # =========================================================================
    # Checkpoints and progress
    # =========================================================================

    def replace_checkpoints(self, lesson_id: str, checkpoints: list[Checkpoint]) -> int:
        """Delete the lesson's checkpoints (and progress on them), then insert these."""
        with self.session() as session:
            session.query(CheckpointProgressRecord).filter(
                CheckpointProgressRecord.lesson_id == lesson_id
            ).delete()
            session.query(LessonCheckpoint).filter(LessonCheckpoint.lesson_id == lesson_id).delete()
            session.add_all(
                LessonCheckpoint(
                    lesson_id=lesson_id,
                    type=_value(cp.type),
                    title=cp.title,
                    body_md=cp.body_md,
                    video_url=cp.video_url,
                    quiz=cp.quiz.model_dump() if cp.quiz else None,
                    gate=cp.gate.model_dump() if cp.gate else None,
                    order_index=cp.order_index,
                )
                for cp in checkpoints
            )
        return len(checkpoints)

    def get_checkpoints(self, lesson_id: str) -> list[LessonCheckpoint]:
        with self.session() as session:
            return (
                session.query(LessonCheckpoint)
                .filter(LessonCheckpoint.lesson_id == lesson_id)
                .order_by(LessonCheckpoint.order_index)
                .all()
            )

    def get_checkpoint(self, checkpoint_id: str) -> LessonCheckpoint | None:
        with self.session() as session:
            return session.get(LessonCheckpoint, checkpoint_id)

    def update_microquiz(self, lesson_id: str, quiz: dict, body_md: str) -> bool:
        """Set quiz and body on the lesson's microquiz checkpoint. False when there is none."""
        with self.session() as session:
            checkpoint = (
                session.query(LessonCheckpoint)
                .filter(LessonCheckpoint.lesson_id == lesson_id, LessonCheckpoint.type == "microquiz")
                .first()
            )
            if checkpoint is None:
                return False
            checkpoint.quiz = quiz
            checkpoint.body_md = body_md
            return True

    def get_progress(self, user_id: str, checkpoint_id: str) -> CheckpointProgressRecord | None:
        with self.session() as session:
            return (
                session.query(CheckpointProgressRecord)
                .filter(
                    CheckpointProgressRecord.user_id == user_id,
                    CheckpointProgressRecord.checkpoint_id == checkpoint_id,
                )
                .first()
            )

    def save_progress(
        self,
        user_id: str,
        checkpoint_id: str,
        lesson_id: str,
        completed: bool,
        time_spent_seconds: int,
        quiz_score: int | None = None,
        quiz_passed: bool | None = None,
        reflection_text: str | None = None,
        completed_at: datetime | None = None,
    ) -> CheckpointProgressRecord:
        """Insert or update the (user, checkpoint) row. An existing completed_at is kept."""
        with self.session() as session:
            row = (
                session.query(CheckpointProgressRecord)
                .filter(
                    CheckpointProgressRecord.user_id == user_id,
                    CheckpointProgressRecord.checkpoint_id == checkpoint_id,
                )
                .first()
            )
            if row is None:
                row = CheckpointProgressRecord(user_id=user_id, checkpoint_id=checkpoint_id, lesson_id=lesson_id)
                session.add(row)
            row.completed = completed
            row.time_spent_seconds = time_spent_seconds
            row.quiz_score = quiz_score
            row.quiz_passed = quiz_passed
            row.reflection_text = reflection_text
            if completed_at is not None and row.completed_at is None:
                row.completed_at = completed_at
            session.flush()
            return row

    def list_progress(self, user_id: str, lesson_id: str) -> list[CheckpointProgressRecord]:
        with self.session() as session:
            return (
                session.query(CheckpointProgressRecord)
                .filter(
                    CheckpointProgressRecord.user_id == user_id,
                    CheckpointProgressRecord.lesson_id == lesson_id,
                )
                .all()
            )

    # =========================================================================
    # Question banks and exams
    # =========================================================================

    def find_bank(self, slug: str) -> QuestionBankRecord | None:
        with self.session() as session:
            return session.query(QuestionBankRecord).filter(QuestionBankRecord.slug == slug).first()

    def add_bank(self, slug: str, title: str, description: str | None = None) -> QuestionBankRecord:
        with self.session() as session:
            bank = QuestionBankRecord(slug=slug, title=title, description=description)
            session.add(bank)
            session.flush()
            return bank

    def add_questions(self, bank_id: str, questions: list[ExtractedQuestion]) -> int:
        with self.session() as session:
            session.add_all(
                QuestionRecord(
                    bank_id=bank_id,
                    type=_value(q.type),
                    stem=q.stem,
                    options=list(q.options),
                    answer_key=list(q.answer_key),
                    difficulty=_value(q.difficulty),
                    topic=q.topic,
                    explanation=q.explanation,
                )
                for q in questions
            )
        return len(questions)

    def list_questions(self, bank_id: str) -> list[QuestionRecord]:
        with self.session() as session:
            return (
                session.query(QuestionRecord)
                .filter(QuestionRecord.bank_id == bank_id)
                .order_by(QuestionRecord.created_at)
                .all()
            )

    def bank_question_counts(self) -> dict[str, int]:
        """Bank slug -> number of questions, for every bank."""
        with self.session() as session:
            rows = (
                session.query(QuestionBankRecord.slug, func.count(QuestionRecord.id))
                .outerjoin(QuestionRecord, QuestionRecord.bank_id == QuestionBankRecord.id)
                .group_by(QuestionBankRecord.slug)
                .order_by(QuestionBankRecord.slug)
                .all()
            )
        return {slug: count for slug, count in rows}

    def find_exam_config(self, exam_id: str) -> ExamConfigRecord | None:
        with self.session() as session:
            return session.get(ExamConfigRecord, exam_id)

    def add_exam_config(self, config: dict, question_ids: list[str]) -> ExamConfigRecord:
        with self.session() as session:
            exam = ExamConfigRecord(**config)
            session.add(exam)
            session.flush()
            session.add_all(
                ExamQuestionRecord(exam_id=exam.id, question_id=qid, position=position)
                for position, qid in enumerate(question_ids, start=1)
            )
            return exam

    def get_exam_question_ids(self, exam_id: str) -> list[str]:
        with self.session() as session:
            rows = (
                session.query(ExamQuestionRecord.question_id)
                .filter(ExamQuestionRecord.exam_id == exam_id)
                .order_by(ExamQuestionRecord.position)
                .all()
            )
        return [row[0] for row in rows]

    # =========================================================================
    # Flashcards
    # =========================================================================

    def get_flashcard_hashes(self, user_id: str) -> set[str]:
        with self.session() as session:
            rows = session.query(FlashcardRecord.dup_hash).filter(FlashcardRecord.user_id == user_id).all()
        return {row[0] for row in rows}

    def add_flashcards(self, drafts: list[FlashcardDraft], ease: float = 2.5) -> int:
        """Insert new cards: given ease, interval 1, due today, never reviewed."""
        today = date.today()
        with self.session() as session:
            session.add_all(
                FlashcardRecord(
                    user_id=d.user_id,
                    card_type=d.card_type,
                    front=d.front,
                    back=d.back,
                    prompt=d.prompt,
                    options=d.options,
                    answer_index=d.answer_index,
                    rationale=d.rationale,
                    source_id=d.source_id,
                    tags=list(d.tags),
                    dup_hash=d.dup_hash,
                    difficulty=ease,
                    interval=1,
                    next_review=today,
                    review_count=0,
                )
                for d in drafts
            )
        return len(drafts)

    def get_flashcards(self, user_id: str) -> list[FlashcardRecord]:
        with self.session() as session:
            return (
                session.query(FlashcardRecord)
                .filter(FlashcardRecord.user_id == user_id)
                .order_by(FlashcardRecord.next_review)
                .all()
            )

    def get_flashcard(self, card_id: str) -> FlashcardRecord | None:
        with self.session() as session:
            return session.get(FlashcardRecord, card_id)

    def apply_review(self, card_id: str, user_id: str, grade: int, outcome: ReviewOutcome) -> None:
        """Update the card's scheduling fields together and log the review."""
        with self.session() as session:
            card = session.get(FlashcardRecord, card_id)
            card.difficulty = outcome.difficulty
            card.interval = outcome.interval
            card.next_review = outcome.next_review_date
            card.review_count = (card.review_count or 0) + 1
            session.add(
                FlashcardReviewRecord(
                    card_id=card_id,
                    user_id=user_id,
                    grade=grade,
                    interval_after=outcome.interval,
                    difficulty_after=outcome.difficulty,
                )
            )

    def get_reviews(self, card_id: str) -> list[FlashcardReviewRecord]:
        with self.session() as session:
            return session.query(FlashcardReviewRecord).filter(FlashcardReviewRecord.card_id == card_id).all()

    # =========================================================================
    # Maintenance
    # =========================================================================

    def clear_all_content(self) -> None:
        """Delete imported content, children before parents."""
        ordered = [
            FlashcardReviewRecord,
            FlashcardRecord,
            ExamQuestionRecord,
            ExamConfigRecord,
            QuestionRecord,
            QuestionBankRecord,
            CheckpointProgressRecord,
            LessonCheckpoint,
            ContentChunkRecord,
            LessonRecord,
            ModuleRecord,
            TrackRecord,
        ]
        with self.session() as session:
            for model in ordered:
                deleted = session.query(model).delete()
                logger.debug(f"Cleared {deleted} rows from {model.__tablename__}")
        logger.info("All content cleared")
