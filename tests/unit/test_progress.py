"""
Unit tests for checkpoint progress tracking and lesson summaries.
"""

import pytest

from ceprep.errors import NotFoundError
from ceprep.lessons.checkpoints import CEMeta, CheckpointBuilder
from ceprep.lessons.progress import ProgressService


@pytest.fixture
def checkpoints(storage, sample_lesson):
    CheckpointBuilder(storage).build(sample_lesson.id, ce_meta=CEMeta(hours=1, seat_time_min=60))
    return storage.get_checkpoints(sample_lesson.id)


@pytest.fixture
def service(storage):
    return ProgressService(storage)


def first_of(checkpoints, kind: str):
    return next(cp for cp in checkpoints if cp.type == kind)


class TestUpdateCheckpointProgress:
    """Time accumulation and monotonic completion."""

    def test_time_accumulates(self, service, checkpoints):
        intro = first_of(checkpoints, "intro")

        service.update_checkpoint_progress("u1", intro.id, time_spent_seconds=40)
        progress = service.update_checkpoint_progress("u1", intro.id, time_spent_seconds=25)

        assert progress.time_spent_seconds == 65
        assert progress.completed is False

    def test_completion_never_reverts(self, service, storage, checkpoints):
        intro = first_of(checkpoints, "intro")
        service.update_checkpoint_progress("u1", intro.id, completed=True)
        first_completed_at = storage.get_progress("u1", intro.id).completed_at

        progress = service.update_checkpoint_progress("u1", intro.id, time_spent_seconds=5, completed=False)

        assert progress.completed is True
        assert storage.get_progress("u1", intro.id).completed_at == first_completed_at

    def test_negative_time_rejected(self, service, checkpoints):
        with pytest.raises(ValueError):
            service.update_checkpoint_progress("u1", checkpoints[0].id, time_spent_seconds=-1)

    def test_unknown_checkpoint(self, service):
        with pytest.raises(NotFoundError):
            service.update_checkpoint_progress("u1", "missing")

    def test_users_tracked_separately(self, service, checkpoints):
        intro = first_of(checkpoints, "intro")
        service.update_checkpoint_progress("u1", intro.id, time_spent_seconds=30)

        other = service.update_checkpoint_progress("u2", intro.id, time_spent_seconds=10)

        assert other.time_spent_seconds == 10


class TestGates:
    """Completion is refused until the checkpoint's gate is met."""

    def test_reading_gate(self, service, checkpoints):
        reading = first_of(checkpoints, "reading")
        required = reading.gate["min_time_minutes"] * 60

        blocked = service.update_checkpoint_progress("u1", reading.id, time_spent_seconds=required - 1, completed=True)
        assert blocked.completed is False
        assert "reading requires" in blocked.blocked_reason

        done = service.update_checkpoint_progress("u1", reading.id, time_spent_seconds=1, completed=True)
        assert done.completed is True
        assert done.blocked_reason is None

    @pytest.mark.parametrize("score,completed", [(69, False), (70, True), (100, True)])
    def test_microquiz_passing_score(self, service, checkpoints, score, completed):
        microquiz = first_of(checkpoints, "microquiz")

        progress = service.update_checkpoint_progress("u1", microquiz.id, quiz_score=score, completed=True)

        assert progress.completed is completed
        assert progress.quiz_passed is completed

    def test_microquiz_remembers_previous_pass(self, service, checkpoints):
        microquiz = first_of(checkpoints, "microquiz")
        service.update_checkpoint_progress("u1", microquiz.id, quiz_score=85)

        progress = service.update_checkpoint_progress("u1", microquiz.id, completed=True)

        assert progress.completed is True
        assert progress.quiz_score == 85

    def test_reflection_length(self, service, checkpoints):
        reflection = first_of(checkpoints, "reflection")

        short = service.update_checkpoint_progress("u1", reflection.id, reflection_text="Too short.", completed=True)
        assert short.completed is False

        text = "Balance billing rules protect HMO members from surprise charges by contracted providers."
        done = service.update_checkpoint_progress("u1", reflection.id, reflection_text=text, completed=True)
        assert done.completed is True
        assert done.reflection_text == text


class TestLessonSummary:
    def complete_all(self, service, checkpoints, user_id="u1", seconds=200):
        for cp in checkpoints:
            service.update_checkpoint_progress(
                user_id,
                cp.id,
                time_spent_seconds=seconds,
                completed=True,
                quiz_score=100 if cp.type == "microquiz" else None,
                reflection_text="I will explain network limits to every client before enrollment." if cp.type == "reflection" else None,
            )

    def test_empty_progress(self, service, sample_lesson, checkpoints):
        summary = service.get_lesson_progress_summary("u1", sample_lesson.id)

        assert summary.checkpoints_completed == 0
        assert summary.total_checkpoints == len(checkpoints)
        assert summary.progress_percent == 0
        assert summary.completed is False
        assert summary.ce_seat_time_required == 3600
        assert summary.certificate_eligible is False

    def test_partial_progress_percent(self, service, sample_lesson, checkpoints):
        service.update_checkpoint_progress("u1", checkpoints[0].id, completed=True)

        summary = service.get_lesson_progress_summary("u1", sample_lesson.id)

        assert summary.checkpoints_completed == 1
        assert summary.progress_percent == round(100 / len(checkpoints))

    def test_completed_without_seat_time(self, service, sample_lesson, checkpoints):
        self.complete_all(service, checkpoints, seconds=200)

        summary = service.get_lesson_progress_summary("u1", sample_lesson.id)

        assert summary.completed is True
        assert summary.progress_percent == 100
        assert summary.total_time_spent == 200 * len(checkpoints)
        assert summary.certificate_eligible is False

    def test_certificate_eligible_with_seat_time(self, service, sample_lesson, checkpoints):
        self.complete_all(service, checkpoints, seconds=400)

        summary = service.get_lesson_progress_summary("u1", sample_lesson.id)

        assert summary.total_time_spent >= 3600
        assert summary.certificate_eligible is True

    def test_missing_lesson(self, service):
        with pytest.raises(NotFoundError):
            service.get_lesson_progress_summary("u1", "missing")
