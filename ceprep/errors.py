"""
Error taxonomy for the import pipeline.

Fatal errors (DocumentUnreadable, StructureMalformed) stop an import.
LessonProcessingFailed is caught per lesson by the import service and
collected into ImportResult.errors.
"""

from __future__ import annotations


class CeprepError(Exception):
    """Base class for all ceprep errors."""


class DocumentUnreadable(CeprepError):
    """The source document cannot be opened or decoded."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read document {path}: {reason}")


class StructureMalformed(CeprepError):
    """A heading appeared before the parent level it needs."""

    def __init__(self, heading: str, level: int, missing: str):
        self.heading = heading
        self.level = level
        self.missing = missing
        super().__init__(
            f"Level-{level} heading {heading!r} appears before any {missing}"
        )


class LessonProcessingFailed(CeprepError):
    """A per-lesson phase (chunks, checkpoints, microquiz) failed."""

    def __init__(self, lesson_id: str, lesson_title: str, phase: str, cause: Exception):
        self.lesson_id = lesson_id
        self.lesson_title = lesson_title
        self.phase = phase
        self.cause = cause
        super().__init__(f"{phase} failed for lesson {lesson_title!r} ({lesson_id}): {cause}")


class EmbeddingUnavailable(CeprepError):
    """The embedding service could not produce a vector."""


class GenerationFailed(CeprepError):
    """The text-generation service failed on both the primary and fallback model."""


class NotFoundError(CeprepError):
    """A referenced entity does not exist."""
