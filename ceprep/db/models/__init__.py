# SQLAlchemy models
from .base import Base, new_id
from .curriculum import (
    CheckpointProgressRecord,
    ContentChunkRecord,
    LessonCheckpoint,
    LessonRecord,
    ModuleRecord,
    TrackRecord,
)
from .quiz import (
    ExamConfigRecord,
    ExamQuestionRecord,
    QuestionBankRecord,
    QuestionRecord,
)
from .study import FlashcardRecord, FlashcardReviewRecord

__all__ = [
    "Base",
    "new_id",
    "TrackRecord",
    "ModuleRecord",
    "LessonRecord",
    "ContentChunkRecord",
    "LessonCheckpoint",
    "CheckpointProgressRecord",
    "QuestionBankRecord",
    "QuestionRecord",
    "ExamConfigRecord",
    "ExamQuestionRecord",
    "FlashcardRecord",
    "FlashcardReviewRecord",
]
