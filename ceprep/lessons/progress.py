"""
Checkpoint progress tracking.

Time spent accumulates across sessions and completion never reverts.
Gates are enforced here: reading checkpoints need their minimum time,
the microquiz needs a passing score and the reflection needs enough text.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from loguru import logger

from config import get_settings
from ceprep.errors import NotFoundError
from ceprep.lessons.checkpoints import CheckpointType

if TYPE_CHECKING:
    from ceprep.db.storage import Storage


@dataclass
class CheckpointProgress:
    checkpoint_id: str
    completed: bool
    time_spent_seconds: int
    quiz_score: int | None = None
    quiz_passed: bool | None = None
    reflection_text: str | None = None
    blocked_reason: str | None = None  # why a requested completion was not granted


@dataclass
class LessonProgressSummary:
    lesson_id: str
    user_id: str
    checkpoints_completed: int
    total_checkpoints: int
    progress_percent: int
    total_time_spent: int
    completed: bool
    ce_seat_time_required: int | None = None
    certificate_eligible: bool = False


class ProgressService:
    """Record per-user checkpoint progress and summarize lessons."""

    def __init__(self, storage: Storage):
        self.storage = storage
        self.settings = get_settings()

    def update_checkpoint_progress(
        self,
        user_id: str,
        checkpoint_id: str,
        time_spent_seconds: int = 0,
        completed: bool = False,
        quiz_score: int | None = None,
        reflection_text: str | None = None,
    ) -> CheckpointProgress:
        """
        Add time and try to complete a checkpoint.

        Returns:
            The stored progress; blocked_reason is set when completion was
            requested but a gate was not met.
        """
        if time_spent_seconds < 0:
            raise ValueError("time_spent_seconds must be >= 0")

        checkpoint = self.storage.get_checkpoint(checkpoint_id)
        if checkpoint is None:
            raise NotFoundError(f"Checkpoint not found: {checkpoint_id}")

        existing = self.storage.get_progress(user_id, checkpoint_id)
        total_time = (existing.time_spent_seconds if existing else 0) + time_spent_seconds
        was_completed = bool(existing and existing.completed)

        quiz_passed = None
        if quiz_score is not None:
            quiz_passed = quiz_score >= self.settings.quiz_passing_score
        elif existing is not None:
            quiz_score, quiz_passed = existing.quiz_score, existing.quiz_passed

        if reflection_text is None and existing is not None:
            reflection_text = existing.reflection_text

        blocked = None
        if completed and not was_completed:
            blocked = self._gate_failure(checkpoint, total_time, quiz_passed, reflection_text)

        now_completed = was_completed or (completed and blocked is None)
        self.storage.save_progress(
            user_id=user_id,
            checkpoint_id=checkpoint_id,
            lesson_id=checkpoint.lesson_id,
            completed=now_completed,
            time_spent_seconds=total_time,
            quiz_score=quiz_score,
            quiz_passed=quiz_passed,
            reflection_text=reflection_text,
            completed_at=datetime.utcnow() if now_completed and not was_completed else None,
        )
        if blocked:
            logger.debug(f"Checkpoint {checkpoint_id} not completed for {user_id}: {blocked}")

        return CheckpointProgress(
            checkpoint_id=checkpoint_id,
            completed=now_completed,
            time_spent_seconds=total_time,
            quiz_score=quiz_score,
            quiz_passed=quiz_passed,
            reflection_text=reflection_text,
            blocked_reason=blocked,
        )

    def _gate_failure(self, checkpoint, total_time: int, quiz_passed: bool | None, reflection: str | None) -> str | None:
        kind = checkpoint.type
        if kind == CheckpointType.READING.value and checkpoint.gate:
            required = int(checkpoint.gate.get("min_time_minutes", 0)) * 60
            if total_time < required:
                return f"reading requires {required}s, spent {total_time}s"
        elif kind == CheckpointType.MICROQUIZ.value:
            if not quiz_passed:
                return f"quiz score below {self.settings.quiz_passing_score}%"
        elif kind == CheckpointType.REFLECTION.value:
            if len((reflection or "").strip()) < self.settings.reflection_min_chars:
                return f"reflection needs at least {self.settings.reflection_min_chars} characters"
        return None

    def get_lesson_progress_summary(self, user_id: str, lesson_id: str) -> LessonProgressSummary:
        lesson = self.storage.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError(f"Lesson not found: {lesson_id}")

        checkpoints = self.storage.get_checkpoints(lesson_id)
        progress = {p.checkpoint_id: p for p in self.storage.list_progress(user_id, lesson_id)}

        done = sum(1 for cp in checkpoints if cp.id in progress and progress[cp.id].completed)
        total = len(checkpoints)
        time_spent = sum(p.time_spent_seconds for p in progress.values())
        lesson_completed = total > 0 and done == total

        summary = LessonProgressSummary(
            lesson_id=lesson_id,
            user_id=user_id,
            checkpoints_completed=done,
            total_checkpoints=total,
            progress_percent=round(done / total * 100) if total else 0,
            total_time_spent=time_spent,
            completed=lesson_completed,
        )
        if lesson.ce_hours and lesson.ce_hours > 0:
            summary.ce_seat_time_required = lesson.ce_hours * 3600
            summary.certificate_eligible = lesson_completed and time_spent >= summary.ce_seat_time_required
        return summary
