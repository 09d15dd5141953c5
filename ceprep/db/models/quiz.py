"""
Question bank and exam configuration tables.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id


class QuestionBankRecord(Base):
    """Named pool of questions for one topic (e.g., law-ethics-core)."""

    __tablename__ = "question_banks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    questions: Mapped[list[QuestionRecord]] = relationship(
        back_populates="bank", cascade="all, delete-orphan"
    )


class QuestionRecord(Base):
    """Extracted assessment question. answer_key holds option indices."""

    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    bank_id: Mapped[str] = mapped_column(
        ForeignKey("question_banks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    stem: Mapped[str] = mapped_column(Text, nullable=False)
    options: Mapped[list] = mapped_column(JSON, nullable=False)
    answer_key: Mapped[list] = mapped_column(JSON, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), default="medium")
    topic: Mapped[str | None] = mapped_column(String(50))
    explanation: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    bank: Mapped[QuestionBankRecord] = relationship(back_populates="questions")


class ExamConfigRecord(Base):
    """Exam form definition (blueprint, timing, rules)."""

    __tablename__ = "exam_configs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    time_limit_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    passing_score: Mapped[int] = mapped_column(Integer, default=70)
    blueprint: Mapped[dict] = mapped_column(JSON, nullable=False)
    rules: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    questions: Mapped[list[ExamQuestionRecord]] = relationship(
        back_populates="exam", cascade="all, delete-orphan", order_by="ExamQuestionRecord.position"
    )


class ExamQuestionRecord(Base):
    """Question selected into an exam form."""

    __tablename__ = "exam_questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    exam_id: Mapped[str] = mapped_column(
        ForeignKey("exam_configs.id", ondelete="CASCADE"), nullable=False
    )
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    exam: Mapped[ExamConfigRecord] = relationship(back_populates="questions")
