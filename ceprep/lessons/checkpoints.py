"""
Lesson checkpoint construction.

Every lesson gets the same guided sequence:

    intro -> objectives -> reading x N -> [video] -> iflash -> microquiz
          -> reflection -> completion

Reading checkpoints carry a minimum-time gate of min(2, ceil(tokens / 180))
minutes. The whole set for a lesson is replaced in one transaction; the
microquiz placeholder is later filled in place by MicroquizExtractor.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Literal, Union

from loguru import logger
from pydantic import BaseModel, Field, model_validator

from config import get_settings
from ceprep.content.sections import strip_quiz_sections
from ceprep.errors import NotFoundError

if TYPE_CHECKING:
    from ceprep.db.storage import Storage


class CheckpointType(str, Enum):
    INTRO = "intro"
    OBJECTIVES = "objectives"
    READING = "reading"
    VIDEO = "video"
    IFLASH = "iflash"
    MICROQUIZ = "microquiz"
    REFLECTION = "reflection"
    COMPLETION = "completion"


# =============================================================================
# Payload models (stored as JSON on the checkpoint row)
# =============================================================================


class QuizItem(BaseModel):
    id: str
    type: Literal["mcq", "tf"]
    stem: str
    options: list[str]
    answer_index: int
    rationale: str = ""

    @model_validator(mode="after")
    def _answer_in_range(self) -> QuizItem:
        if len(self.options) < 2:
            raise ValueError("quiz item needs at least 2 options")
        if not 0 <= self.answer_index < len(self.options):
            raise ValueError(f"answer_index {self.answer_index} out of range")
        return self


class CheckpointQuiz(BaseModel):
    items: list[QuizItem] = Field(default_factory=list)


class CEMeta(BaseModel):
    hours: int = 0
    seat_time_min: int | None = None


class ReadingGate(BaseModel):
    kind: Literal["reading"] = "reading"
    min_time_minutes: int


class CompletionGate(BaseModel):
    kind: Literal["completion"] = "completion"
    passing_score: int = 70
    ce_requirements: CEMeta | None = None


Gate = Annotated[Union[ReadingGate, CompletionGate], Field(discriminator="kind")]


class Checkpoint(BaseModel):
    lesson_id: str
    type: CheckpointType
    title: str
    body_md: str
    order_index: int
    video_url: str | None = None
    quiz: CheckpointQuiz | None = None
    gate: Gate | None = None


@dataclass
class HeadingSection:
    heading: str
    content: str


@dataclass
class HeadingIndex:
    """Sub-heading sections of a lesson (lesson-level '##' headings)."""

    h4_sections: list[HeadingSection] = field(default_factory=list)

    @classmethod
    def from_markdown(cls, content: str, skip: re.Pattern | None = None) -> HeadingIndex:
        """Split on '## ' lines; sections whose heading matches skip are left out."""
        sections: list[HeadingSection] = []
        heading: str | None = None
        body: list[str] = []
        for line in content.split("\n"):
            match = re.match(r"^##\s+(.+)$", line)
            if match:
                if heading is not None:
                    sections.append(HeadingSection(heading, "\n".join(body).strip()))
                heading, body = match.group(1).strip(), []
            elif heading is not None:
                body.append(line)
        if heading is not None:
            sections.append(HeadingSection(heading, "\n".join(body).strip()))
        if skip is not None:
            sections = [s for s in sections if not skip.search(s.heading)]
        return cls(h4_sections=sections)


@dataclass
class ReadingSegment:
    title: str
    content: str

    @property
    def tokens(self) -> int:
        return math.ceil(len(self.content) / 4)


# =============================================================================
# Text helpers
# =============================================================================

GENERIC_OBJECTIVES = [
    "Understand key concepts and terminology",
    "Apply knowledge to practical scenarios",
    "Demonstrate comprehension through assessment",
]

OBJECTIVES_HEADER = re.compile(r"objective|learning goal|you will learn", re.IGNORECASE)
BULLET = re.compile(r"^([•\-*]|\d+\.)\s+(.+)")

VIDEO_PATTERNS = [
    re.compile(r"https?://(?:www\.)?youtube\.com/watch\?v=[\w-]+", re.IGNORECASE),
    re.compile(r"https?://youtu\.be/[\w-]+", re.IGNORECASE),
    re.compile(r"https?://(?:www\.)?vimeo\.com/\d+", re.IGNORECASE),
    re.compile(r"https?://\S+?\.mp4\b", re.IGNORECASE),
]

MAX_SEGMENTS = 7
MIN_SEGMENTS = 3


def extract_objectives(content: str, fallback: list[str] | None = None) -> list[str]:
    """Bullets under an objectives header near the top of the lesson, at most 6."""
    objectives: list[str] = []
    in_section = False
    for index, line in enumerate(content.split("\n")):
        trimmed = line.strip()
        if OBJECTIVES_HEADER.search(trimmed) and not in_section:
            in_section = True
            continue
        if in_section:
            bullet = BULLET.match(trimmed)
            if bullet:
                text = bullet.group(2).strip()
                if len(text) > 10:
                    objectives.append(text)
            elif trimmed:
                break
        elif index > 20:
            break
    if objectives:
        return objectives[:6]
    return list(fallback) if fallback else list(GENERIC_OBJECTIVES)


def find_video_url(content: str) -> str | None:
    for pattern in VIDEO_PATTERNS:
        match = pattern.search(content)
        if match:
            return match.group(0)
    return None


def reading_gate_minutes(tokens: int) -> int:
    settings = get_settings()
    return min(settings.reading_gate_cap_minutes, math.ceil(tokens / settings.reading_tokens_per_minute))


def split_reading_segments(content: str, heading_index: HeadingIndex | None = None) -> list[ReadingSegment]:
    """Heading sections when given, otherwise paragraphs grouped into about five segments.

    Quiz sections never become reading; the microquiz asks those questions.
    """
    content = strip_quiz_sections(content)
    segments: list[ReadingSegment] = []

    if heading_index is not None and heading_index.h4_sections:
        for section in heading_index.h4_sections:
            if len(section.content) > 100:
                title = section.heading or f"Reading Section {len(segments) + 1}"
                segments.append(ReadingSegment(title, section.content))
    else:
        paragraphs = [p for p in content.split("\n\n") if len(p.strip()) > 50]
        size = max(2, math.ceil(len(paragraphs) / 5))
        for i in range(0, len(paragraphs), size):
            text = "\n\n".join(paragraphs[i : i + size])
            if len(text) > 100:
                segments.append(ReadingSegment(f"Reading Section {len(segments) + 1}", text))

    if not segments and content.strip():
        segments.append(ReadingSegment("Reading Section 1", content.strip()))

    if 0 < len(segments) < MIN_SEGMENTS:
        largest = max(range(len(segments)), key=lambda i: len(segments[i].content))
        text = segments[largest].content
        if len(text) > 500:
            split_at = text.find("\n", len(text) // 2)
            if split_at > 0:
                title = segments[largest].title
                segments[largest : largest + 1] = [
                    ReadingSegment(f"{title} (Part 1)", text[:split_at].strip()),
                    ReadingSegment(f"{title} (Part 2)", text[split_at:].strip()),
                ]

    return segments[:MAX_SEGMENTS]


# =============================================================================
# Bodies
# =============================================================================


def _intro_body(title: str, description: str | None, content: str) -> str:
    summary = description or (content.split("\n\n")[0][:200] + "...")
    return (
        f"# Welcome to {title}\n\n{summary}\n\n"
        "In this lesson you will work through short, gated steps:\n\n"
        "- Review the learning objectives\n"
        "- Read each content section\n"
        "- Build study cards and take the knowledge check\n"
        "- Reflect on what you learned"
    )


def _objectives_body(objectives: list[str]) -> str:
    bullets = "\n".join(f"- {o}" for o in objectives)
    return f"# Learning Objectives\n\nBy the end of this lesson, you will be able to:\n\n{bullets}"


VIDEO_BODY = "# Video\n\nWatch the complete video to reinforce the reading before moving on."

IFLASH_BODY = (
    "# Study Cards\n\n"
    "Generate flashcards from this lesson. Cards are scheduled with spaced "
    "repetition so you review each one just before you would forget it."
)

MICROQUIZ_PLACEHOLDER = "# Knowledge Check\n\nQuestions for this lesson are being prepared."

MICROQUIZ_INSTRUCTIONS = (
    "# Knowledge Check\n\n"
    "- Read each question carefully\n"
    "- Select the best answer\n"
    "- Score {passing}% or higher to continue\n"
    "- You can retake the quiz"
)


def _reflection_body(title: str, min_chars: int) -> str:
    return (
        f"# Reflection\n\nThink back over \"{title}\".\n\n"
        "1. Which concepts were most important?\n"
        "2. Where would you apply them with a client?\n"
        "3. What is still unclear?\n\n"
        f"*Write at least {min_chars} characters to complete this step.*"
    )


def _completion_body(title: str, ce_meta: CEMeta | None) -> str:
    body = f"# Lesson Complete\n\nYou finished \"{title}\"."
    if ce_meta is not None and ce_meta.hours > 0:
        body += f"\n\n**Continuing Education Credit:** {ce_meta.hours} hours"
        if ce_meta.seat_time_min:
            body += f"\n*Minimum seat time: {ce_meta.seat_time_min} minutes*"
    return body + "\n\nReview your flashcards regularly and continue to the next lesson when ready."


# =============================================================================
# Builder
# =============================================================================


class CheckpointBuilder:
    """Build and persist the checkpoint sequence for lessons."""

    def __init__(self, storage: Storage):
        self.storage = storage
        self.settings = get_settings()

    def plan(
        self,
        lesson_id: str,
        title: str,
        content: str,
        description: str | None = None,
        objectives: list[str] | None = None,
        heading_index: HeadingIndex | None = None,
        ce_meta: CEMeta | None = None,
    ) -> list[Checkpoint]:
        """Compute the ordered checkpoints without touching storage."""
        checkpoints: list[Checkpoint] = []

        def add(kind: CheckpointType, cp_title: str, body: str, **extra) -> None:
            checkpoints.append(
                Checkpoint(
                    lesson_id=lesson_id,
                    type=kind,
                    title=cp_title,
                    body_md=body,
                    order_index=len(checkpoints) + 1,
                    **extra,
                )
            )

        add(CheckpointType.INTRO, "Welcome", _intro_body(title, description, content))
        add(
            CheckpointType.OBJECTIVES,
            "Learning Objectives",
            _objectives_body(extract_objectives(content, fallback=objectives)),
        )

        for segment in split_reading_segments(content, heading_index):
            add(
                CheckpointType.READING,
                segment.title,
                segment.content,
                gate=ReadingGate(min_time_minutes=reading_gate_minutes(segment.tokens)),
            )

        video_url = find_video_url(content)
        if video_url:
            add(CheckpointType.VIDEO, "Video Content", VIDEO_BODY, video_url=video_url)

        add(CheckpointType.IFLASH, "Create Study Cards", IFLASH_BODY)
        add(CheckpointType.MICROQUIZ, "Knowledge Check", MICROQUIZ_PLACEHOLDER)
        add(
            CheckpointType.REFLECTION,
            "Reflection",
            _reflection_body(title, self.settings.reflection_min_chars),
        )

        gate = None
        if ce_meta is not None and ce_meta.hours > 0:
            gate = CompletionGate(passing_score=self.settings.quiz_passing_score, ce_requirements=ce_meta)
        add(CheckpointType.COMPLETION, "Lesson Complete", _completion_body(title, ce_meta), gate=gate)
        return checkpoints

    def build(
        self,
        lesson_id: str,
        content: str | None = None,
        heading_index: HeadingIndex | None = None,
        ce_meta: CEMeta | None = None,
    ) -> list[Checkpoint]:
        """
        Replace the lesson's checkpoints with a freshly built sequence.

        Args:
            lesson_id: Lesson to rebuild.
            content: Markdown to use instead of the stored lesson content.
            heading_index: Sub-heading sections to use as reading segments.
            ce_meta: CE credit info; a completion gate is recorded when hours > 0.

        Raises:
            NotFoundError: the lesson does not exist.
        """
        lesson = self.storage.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError(f"Lesson not found: {lesson_id}")

        checkpoints = self.plan(
            lesson_id=lesson_id,
            title=lesson.title,
            content=content if content is not None else lesson.content or "",
            description=lesson.description,
            objectives=lesson.objectives,
            heading_index=heading_index,
            ce_meta=ce_meta,
        )
        self.storage.replace_checkpoints(lesson_id, checkpoints)
        logger.debug(f"Created {len(checkpoints)} checkpoints for lesson: {lesson.title}")
        return checkpoints

    def update_microquiz_checkpoint(self, lesson_id: str, quiz: CheckpointQuiz) -> bool:
        """Set quiz items and instructions on the microquiz checkpoint. False if none exists."""
        body = MICROQUIZ_INSTRUCTIONS.format(passing=self.settings.quiz_passing_score)
        return self.storage.update_microquiz(lesson_id, quiz.model_dump(), body)
