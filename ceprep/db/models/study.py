"""
Flashcard tables with SM-2 scheduling state.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id


class FlashcardRecord(Base):
    """
    A user's flashcard.

    term/cloze cards use front/back; mcq cards use prompt/options/answer_index.
    difficulty is the SM-2 ease factor (>= 1.3), interval is in days (>= 1).
    """

    __tablename__ = "flashcards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    card_type: Mapped[str] = mapped_column(String(10), default="term")
    front: Mapped[str | None] = mapped_column(Text)
    back: Mapped[str | None] = mapped_column(Text)
    prompt: Mapped[str | None] = mapped_column(Text)
    options: Mapped[list | None] = mapped_column(JSON)
    answer_index: Mapped[int | None] = mapped_column(Integer)
    rationale: Mapped[str | None] = mapped_column(Text)
    source_id: Mapped[str | None] = mapped_column(String(36))
    tags: Mapped[list] = mapped_column(JSON, default=list)
    dup_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    difficulty: Mapped[float] = mapped_column(Float, default=2.5)
    interval: Mapped[int] = mapped_column(Integer, default=1)
    next_review: Mapped[date] = mapped_column(Date, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    reviews: Mapped[list[FlashcardReviewRecord]] = relationship(
        back_populates="card", cascade="all, delete-orphan"
    )


class FlashcardReviewRecord(Base):
    """One graded review of a flashcard."""

    __tablename__ = "flashcard_reviews"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    card_id: Mapped[str] = mapped_column(
        ForeignKey("flashcards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    grade: Mapped[int] = mapped_column(Integer, nullable=False)
    interval_after: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty_after: Mapped[float] = mapped_column(Float, nullable=False)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    card: Mapped[FlashcardRecord] = relationship(back_populates="reviews")
