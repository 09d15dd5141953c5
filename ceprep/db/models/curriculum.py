"""
Curriculum tables: the Track -> Module -> Lesson tree and per-lesson artifacts.

Deleting a track cascades to its modules, lessons, chunks and checkpoints.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id

# ========================================
# CURRICULUM HIERARCHY
# ========================================


class TrackRecord(Base):
    """Top-level course area (e.g., "Law & Ethics 4-hr")."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    ce_hours: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    modules: Mapped[list[ModuleRecord]] = relationship(
        back_populates="track", cascade="all, delete-orphan", order_by="ModuleRecord.order_index"
    )


class ModuleRecord(Base):
    """Second level grouping under a track."""

    __tablename__ = "modules"
    __table_args__ = (UniqueConstraint("track_id", "slug", name="uq_module_track_slug"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    track_id: Mapped[str] = mapped_column(
        ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    track: Mapped[TrackRecord] = relationship(back_populates="modules")
    lessons: Mapped[list[LessonRecord]] = relationship(
        back_populates="module", cascade="all, delete-orphan", order_by="LessonRecord.order_index"
    )


class LessonRecord(Base):
    """A single lesson: full markdown content plus metadata."""

    __tablename__ = "lessons"
    __table_args__ = (UniqueConstraint("module_id", "slug", name="uq_lesson_module_slug"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    module_id: Mapped[str] = mapped_column(
        ForeignKey("modules.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    content: Mapped[str] = mapped_column(Text, default="")
    objectives: Mapped[list] = mapped_column(JSON, default=list)
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=20)
    ce_hours: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    module: Mapped[ModuleRecord] = relationship(back_populates="lessons")
    chunks: Mapped[list[ContentChunkRecord]] = relationship(
        back_populates="lesson", cascade="all, delete-orphan"
    )
    checkpoints: Mapped[list[LessonCheckpoint]] = relationship(
        back_populates="lesson",
        cascade="all, delete-orphan",
        order_by="LessonCheckpoint.order_index",
    )


# ========================================
# LESSON ARTIFACTS
# ========================================


class ContentChunkRecord(Base):
    """Retrieval passage cut from a lesson's content."""

    __tablename__ = "content_chunks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    lesson_id: Mapped[str] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    headings: Mapped[list] = mapped_column(JSON, default=list)
    page_ref: Mapped[int | None] = mapped_column(Integer)
    embedding: Mapped[list | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=func.now())

    lesson: Mapped[LessonRecord] = relationship(back_populates="chunks")


class LessonCheckpoint(Base):
    """
    One gated step of a lesson's guided sequence.

    quiz and gate hold the JSON form of the pydantic payloads defined in
    ceprep.lessons.checkpoints.
    """

    __tablename__ = "lesson_checkpoints"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    lesson_id: Mapped[str] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body_md: Mapped[str | None] = mapped_column(Text)
    video_url: Mapped[str | None] = mapped_column(Text)
    quiz: Mapped[dict | None] = mapped_column(JSON)
    gate: Mapped[dict | None] = mapped_column(JSON)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)

    lesson: Mapped[LessonRecord] = relationship(back_populates="checkpoints")


class CheckpointProgressRecord(Base):
    """Per-user progress on a checkpoint."""

    __tablename__ = "checkpoint_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "checkpoint_id", name="uq_progress_user_checkpoint"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    checkpoint_id: Mapped[str] = mapped_column(
        ForeignKey("lesson_checkpoints.id", ondelete="CASCADE"), nullable=False
    )
    lesson_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    time_spent_seconds: Mapped[int] = mapped_column(Integer, default=0)
    quiz_score: Mapped[int | None] = mapped_column(Integer)
    quiz_passed: Mapped[bool | None] = mapped_column(Boolean)
    reflection_text: Mapped[str | None] = mapped_column(Text)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=func.now(), onupdate=func.now())
