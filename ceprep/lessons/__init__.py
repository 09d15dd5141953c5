"""
Lessons: gated checkpoint sequences, microquizzes and learner progress.
"""

from .checkpoints import CEMeta, Checkpoint, CheckpointBuilder, CheckpointQuiz, CheckpointType, HeadingIndex, QuizItem
from .microquiz import MicroquizExtractor, QuizScore
from .progress import CheckpointProgress, LessonProgressSummary, ProgressService

__all__ = [
    # Checkpoints
    "CheckpointBuilder",
    "Checkpoint",
    "CheckpointType",
    "CheckpointQuiz",
    "QuizItem",
    "CEMeta",
    "HeadingIndex",
    # Microquiz
    "MicroquizExtractor",
    "QuizScore",
    # Progress
    "ProgressService",
    "CheckpointProgress",
    "LessonProgressSummary",
]
