"""
Study: spaced-repetition scheduling and flashcards.
"""

from .flashcards import FlashcardDraft, FlashcardService, GenerationResult, normalize_mcq
from .scheduler import ReviewOutcome, review

__all__ = [
    "review",
    "ReviewOutcome",
    "FlashcardService",
    "FlashcardDraft",
    "GenerationResult",
    "normalize_mcq",
]
