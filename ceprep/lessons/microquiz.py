"""
Microquiz extraction for the lesson knowledge-check checkpoint.

Quiz sections are found by heading keywords; each section is parsed
line by line:

    IDLE -> (numbered stem) -> COLLECTING_OPTIONS -> (answer line) -> IDLE

Only questions with a stem, at least two options and an in-range answer
are kept. At most 8 are used; a lesson with none gets 4 fallback
questions so every knowledge check has content.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from config import get_settings
from ceprep.content.sections import is_quiz_header
from ceprep.errors import NotFoundError
from ceprep.lessons.checkpoints import CheckpointBuilder, CheckpointQuiz, QuizItem

if TYPE_CHECKING:
    from ceprep.db.storage import Storage

HEADING = re.compile(r"^#{1,6}\s+(.+)$")
STEM = re.compile(r"^\s*(\d+)[.)]\s+(.+)$")
OPTION = re.compile(r"^\s*([A-D])[).:]\s+(.+)$", re.IGNORECASE)
BARE_TF = re.compile(r"^\s*(true|false)\s*$", re.IGNORECASE)
ANSWER = re.compile(r"^\s*(Answer|Correct|Key)\s*[:\-]\s*([A-D]|true|false)\b", re.IGNORECASE)
STRUCTURAL = re.compile(r"^(\d+[.)]|[A-D][).:]|Answer|Correct|Key)", re.IGNORECASE)
RATIONALE_LABEL = re.compile(r"^(Rationale|Explanation)\s*:\s*", re.IGNORECASE)


def _question_id() -> str:
    return f"mq-{uuid.uuid4().hex[:12]}"


def fallback_questions(lesson_title: str) -> list[QuizItem]:
    """Four generic comprehension probes for lessons without a quiz section."""
    return [
        QuizItem(
            id=_question_id(),
            type="mcq",
            stem=f'What is the primary focus of "{lesson_title}"?',
            options=[
                "Understanding key concepts and applications",
                "Memorizing regulatory details only",
                "Historical background information",
                "Advanced mathematical calculations",
            ],
            answer_index=0,
            rationale="The lesson focuses on understanding and applying key concepts.",
        ),
        QuizItem(
            id=_question_id(),
            type="tf",
            stem=f'The material covered in "{lesson_title}" is relevant to professional practice.',
            options=["True", "False"],
            answer_index=0,
            rationale="Lesson content is chosen for its use in day-to-day agency work.",
        ),
        QuizItem(
            id=_question_id(),
            type="mcq",
            stem=f'Which study approach works best for "{lesson_title}"?',
            options=[
                "Active reading and application of concepts",
                "Passive reading without engagement",
                "Skipping directly to assessments",
                "Memorizing text verbatim",
            ],
            answer_index=0,
            rationale="Active engagement with the material leads to better retention.",
        ),
        QuizItem(
            id=_question_id(),
            type="mcq",
            stem=f'What should you do if a concept in "{lesson_title}" is unclear?',
            options=[
                "Review the material and use additional resources",
                "Skip the concept and move forward",
                "Assume it will be explained later",
                "Focus only on memorizing the definition",
            ],
            answer_index=0,
            rationale="Reviewing the material and outside resources resolves gaps before the exam.",
        ),
    ]


class _State(str, Enum):
    IDLE = "idle"
    COLLECTING_OPTIONS = "collecting_options"


@dataclass
class _Draft:
    stem: str
    type: str = "mcq"
    options: list[str] = field(default_factory=list)
    answer_index: int | None = None
    rationale: str | None = None

    def to_item(self) -> QuizItem | None:
        if not self.stem or len(self.options) < 2 or self.answer_index is None:
            return None
        if not 0 <= self.answer_index < len(self.options):
            return None
        return QuizItem(
            id=_question_id(),
            type=self.type,
            stem=self.stem,
            options=self.options,
            answer_index=self.answer_index,
            rationale=self.rationale or f'The correct answer is "{self.options[self.answer_index]}".',
        )


@dataclass
class QuizScore:
    score: int
    total_questions: int
    correct_answers: int
    passed: bool
    details: list[dict] = field(default_factory=list)


class MicroquizExtractor:
    """Find in-lesson quiz sections and fill the microquiz checkpoint."""

    def __init__(self, storage: Storage | None = None, checkpoint_builder: CheckpointBuilder | None = None):
        self.storage = storage
        self.checkpoint_builder = checkpoint_builder
        self.settings = get_settings()

    def extract_for_lesson(self, content: str, lesson_title: str) -> CheckpointQuiz:
        items: list[QuizItem] = []
        for section in self.find_quiz_sections(content):
            items.extend(self.parse_section(section))

        if not items:
            logger.debug(f"No quiz section found in {lesson_title!r}, using fallback questions")
            items = fallback_questions(lesson_title)

        return CheckpointQuiz(items=items[: self.settings.microquiz_max_questions])

    def find_quiz_sections(self, content: str) -> list[str]:
        """Body text of every heading section whose heading names a quiz."""
        sections: list[str] = []
        current: list[str] | None = None

        def close() -> None:
            if current is not None:
                text = "\n".join(current)
                if len(text) > 50:
                    sections.append(text)

        for line in content.split("\n"):
            heading = HEADING.match(line.strip())
            if heading:
                close()
                current = [] if is_quiz_header(heading.group(1)) else None
            elif current is not None:
                current.append(line)
        close()
        return sections

    def parse_section(self, section: str) -> list[QuizItem]:
        items: list[QuizItem] = []
        state = _State.IDLE
        draft: _Draft | None = None

        def emit() -> None:
            if draft is not None:
                item = draft.to_item()
                if item is not None:
                    items.append(item)

        for line in (raw.strip() for raw in section.split("\n")):
            if not line:
                continue

            stem = STEM.match(line)
            if stem:
                emit()
                draft = _Draft(stem=stem.group(2).strip())
                state = _State.COLLECTING_OPTIONS
                continue
            if draft is None:
                continue

            if state == _State.COLLECTING_OPTIONS:
                option = OPTION.match(line)
                if option:
                    text = option.group(2).strip()
                    draft.options.append(text)
                    if len(draft.options) <= 2 and text.lower() in ("true", "false"):
                        draft.type = "tf"
                    continue
                if BARE_TF.match(line):
                    draft.type = "tf"
                    if not draft.options:
                        draft.options = ["True", "False"]
                    continue

            answer = ANSWER.match(line)
            if answer:
                value = answer.group(2).lower()
                if value in ("true", "false"):
                    draft.answer_index = 0 if value == "true" else 1
                else:
                    draft.answer_index = ord(value) - ord("a")
                state = _State.IDLE
                continue

            if draft.answer_index is not None and len(line) > 20 and not STRUCTURAL.match(line):
                draft.rationale = RATIONALE_LABEL.sub("", line)

        emit()
        return items

    def apply_to(self, lesson_id: str) -> int:
        """
        Extract from the stored lesson and update its microquiz checkpoint in place.

        Returns:
            Number of quiz items written.
        """
        if self.storage is None or self.checkpoint_builder is None:
            raise RuntimeError("MicroquizExtractor.apply_to requires storage and a checkpoint builder")

        lesson = self.storage.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError(f"Lesson not found: {lesson_id}")

        quiz = self.extract_for_lesson(lesson.content or "", lesson.title)
        if not self.checkpoint_builder.update_microquiz_checkpoint(lesson_id, quiz):
            logger.warning(f"No microquiz checkpoint for lesson {lesson.title!r}; build checkpoints first")
            return 0
        logger.debug(f"Updated microquiz for {lesson.title!r} with {len(quiz.items)} questions")
        return len(quiz.items)

    def validate_quiz_answers(self, items: list[QuizItem], answers: list[int]) -> QuizScore:
        """Score submitted answer indices against the quiz."""
        details = []
        correct = 0
        for i, item in enumerate(items):
            given = answers[i] if i < len(answers) else -1
            ok = given == item.answer_index
            correct += ok
            details.append(
                {
                    "question_id": item.id,
                    "correct": ok,
                    "user_answer": given,
                    "correct_answer": item.answer_index,
                }
            )
        score = round(correct / len(items) * 100) if items else 0
        return QuizScore(
            score=score,
            total_questions=len(items),
            correct_answers=correct,
            passed=score >= self.settings.quiz_passing_score,
            details=details,
        )
