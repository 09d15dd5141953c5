"""
Unit tests for lesson checkpoint construction.
"""

import re

import pytest

from ceprep.errors import NotFoundError
from ceprep.lessons.checkpoints import (
    GENERIC_OBJECTIVES,
    CEMeta,
    CheckpointBuilder,
    CheckpointQuiz,
    CheckpointType,
    HeadingIndex,
    QuizItem,
    extract_objectives,
    find_video_url,
    reading_gate_minutes,
    split_reading_segments,
)
from ceprep.lessons.progress import ProgressService


def section(heading: str, sentence: str = "Agents must disclose material facts to every client. ") -> str:
    return f"## {heading}\n\n{sentence * 4}"


class TestReadingGate:
    @pytest.mark.parametrize("tokens,minutes", [(0, 0), (100, 1), (180, 1), (181, 2), (400, 2), (5000, 2)])
    def test_capped_at_two_minutes(self, tokens, minutes):
        assert reading_gate_minutes(tokens) == minutes


class TestTextHelpers:
    def test_objectives_under_header(self):
        content = (
            "Learning objectives\n"
            "- Describe the insuring clause of a policy\n"
            "- Explain who may change the beneficiary\n"
            "- short\n"
            "Body text starts here."
        )

        assert extract_objectives(content) == [
            "Describe the insuring clause of a policy",
            "Explain who may change the beneficiary",
        ]

    def test_objectives_fallbacks(self):
        assert extract_objectives("No header here.", fallback=["Custom goal"]) == ["Custom goal"]
        assert extract_objectives("No header here.") == GENERIC_OBJECTIVES

    @pytest.mark.parametrize(
        "content,url",
        [
            ("Watch https://www.youtube.com/watch?v=abc-123 first.", "https://www.youtube.com/watch?v=abc-123"),
            ("See https://youtu.be/xyz", "https://youtu.be/xyz"),
            ("Clip: https://vimeo.com/12345", "https://vimeo.com/12345"),
            ("Download https://cdn.example.com/lesson.mp4 now", "https://cdn.example.com/lesson.mp4"),
            ("No media here.", None),
        ],
    )
    def test_find_video_url(self, content, url):
        assert find_video_url(content) == url


class TestSplitReadingSegments:
    """Reading segments from heading sections or paragraph groups."""

    def test_heading_sections(self):
        content = "\n\n".join(section(h) for h in ("Twisting", "Churning", "Rebating"))

        segments = split_reading_segments(content, HeadingIndex.from_markdown(content))

        assert [s.title for s in segments] == ["Twisting", "Churning", "Rebating"]

    def test_heading_index_skip_pattern(self):
        content = section("Twisting") + "\n\n" + section("Practice Quiz")

        index = HeadingIndex.from_markdown(content, skip=re.compile("quiz", re.IGNORECASE))

        assert [s.heading for s in index.h4_sections] == ["Twisting"]

    def test_capped_at_seven(self):
        content = "\n\n".join(section(f"Topic heading {i}") for i in range(9))

        segments = split_reading_segments(content, HeadingIndex.from_markdown(content))

        assert len(segments) == 7

    def test_paragraph_groups(self, balance_billing_prose):
        segments = split_reading_segments("\n\n".join(balance_billing_prose))

        assert 3 <= len(segments) <= 7
        assert segments[0].title == "Reading Section 1"

    def test_few_segments_split_largest(self):
        paragraph = "An agent owes a fiduciary duty to the insurer and the applicant. " * 5
        content = paragraph.strip() + "\n\n" + paragraph.strip()

        segments = split_reading_segments(content)

        assert [s.title for s in segments] == ["Reading Section 1 (Part 1)", "Reading Section 1 (Part 2)"]

    def test_short_content_single_segment(self):
        segments = split_reading_segments("Short body.")

        assert [(s.title, s.content) for s in segments] == [("Reading Section 1", "Short body.")]

    def test_empty_content(self):
        assert split_reading_segments("   ") == []

    def test_quiz_section_not_read(self, balance_billing_prose):
        content = "\n\n".join(balance_billing_prose) + (
            "\n\n## Practice Quiz\n\n1. Which plan bars balance billing?\nA) HMO\nB) PPO\nAnswer: A"
        )

        segments = split_reading_segments(content)

        assert segments
        assert not any("Which plan bars" in s.content or "Answer:" in s.content for s in segments)


class TestPlan:
    """Checkpoint order and gates."""

    @pytest.fixture
    def builder(self, storage):
        return CheckpointBuilder(storage)

    def test_order(self, builder, balance_billing_prose):
        checkpoints = builder.plan("l1", "Agent Duties", "\n\n".join(balance_billing_prose))

        types = [cp.type for cp in checkpoints]
        assert types[:2] == [CheckpointType.INTRO, CheckpointType.OBJECTIVES]
        assert types[-4:] == [
            CheckpointType.IFLASH,
            CheckpointType.MICROQUIZ,
            CheckpointType.REFLECTION,
            CheckpointType.COMPLETION,
        ]
        readings = [cp for cp in checkpoints if cp.type == CheckpointType.READING]
        assert 3 <= len(readings) <= 7
        assert [cp.order_index for cp in checkpoints] == list(range(1, len(checkpoints) + 1))

    def test_reading_gates(self, builder, balance_billing_prose):
        checkpoints = builder.plan("l1", "Agent Duties", "\n\n".join(balance_billing_prose))

        for cp in checkpoints:
            if cp.type == CheckpointType.READING:
                assert 1 <= cp.gate.min_time_minutes <= 2
            elif cp.type != CheckpointType.COMPLETION:
                assert cp.gate is None

    def test_video_checkpoint_before_iflash(self, builder):
        content = "Intro paragraph about rebating.\n\nhttps://youtu.be/abc123"

        checkpoints = builder.plan("l1", "Rebating", content)

        types = [cp.type for cp in checkpoints]
        video = types.index(CheckpointType.VIDEO)
        assert types[video + 1] == CheckpointType.IFLASH
        assert checkpoints[video].video_url == "https://youtu.be/abc123"

    def test_no_completion_gate_without_ce_hours(self, builder):
        checkpoints = builder.plan("l1", "Rebating", "Some text.", ce_meta=CEMeta(hours=0))

        assert checkpoints[-1].gate is None

    def test_completion_gate_with_ce_hours(self, builder):
        checkpoints = builder.plan("l1", "Rebating", "Some text.", ce_meta=CEMeta(hours=2, seat_time_min=120))

        completion = checkpoints[-1]
        assert completion.gate.passing_score == 70
        assert completion.gate.ce_requirements.hours == 2
        assert "2 hours" in completion.body_md
        assert "120 minutes" in completion.body_md


class TestQuizItem:
    def test_answer_index_out_of_range(self):
        with pytest.raises(ValueError):
            QuizItem(id="q1", type="mcq", stem="Stem", options=["A", "B"], answer_index=2)

    def test_needs_two_options(self):
        with pytest.raises(ValueError):
            QuizItem(id="q1", type="mcq", stem="Stem", options=["A"], answer_index=0)


class TestBuild:
    """Persistence through Storage."""

    def test_build_persists_in_order(self, storage, sample_lesson):
        planned = CheckpointBuilder(storage).build(sample_lesson.id)

        stored = storage.get_checkpoints(sample_lesson.id)
        assert [cp.type for cp in stored] == [cp.type.value for cp in planned]
        assert stored[0].type == "intro"
        assert stored[-1].type == "completion"

    def test_rebuild_replaces_and_clears_progress(self, storage, sample_lesson):
        builder = CheckpointBuilder(storage)
        first = builder.build(sample_lesson.id)
        intro = storage.get_checkpoints(sample_lesson.id)[0]
        ProgressService(storage).update_checkpoint_progress("u1", intro.id, time_spent_seconds=30, completed=True)

        builder.build(sample_lesson.id)

        assert len(storage.get_checkpoints(sample_lesson.id)) == len(first)
        assert storage.list_progress("u1", sample_lesson.id) == []

    def test_completion_gate_stored(self, storage, sample_lesson):
        CheckpointBuilder(storage).build(sample_lesson.id, ce_meta=CEMeta(hours=1, seat_time_min=60))

        completion = storage.get_checkpoints(sample_lesson.id)[-1]
        assert completion.gate["kind"] == "completion"
        assert completion.gate["ce_requirements"] == {"hours": 1, "seat_time_min": 60}

    def test_missing_lesson(self, storage):
        with pytest.raises(NotFoundError):
            CheckpointBuilder(storage).build("no-such-lesson")

    def test_update_microquiz_checkpoint(self, storage, sample_lesson):
        builder = CheckpointBuilder(storage)
        builder.build(sample_lesson.id)
        quiz = CheckpointQuiz(
            items=[QuizItem(id="q1", type="tf", stem="Agents may rebate.", options=["True", "False"], answer_index=1)]
        )

        assert builder.update_microquiz_checkpoint(sample_lesson.id, quiz) is True

        microquiz = next(cp for cp in storage.get_checkpoints(sample_lesson.id) if cp.type == "microquiz")
        assert microquiz.quiz["items"][0]["answer_index"] == 1
        assert "70%" in microquiz.body_md

    def test_update_microquiz_without_checkpoints(self, storage, sample_lesson):
        assert CheckpointBuilder(storage).update_microquiz_checkpoint(sample_lesson.id, CheckpointQuiz()) is False
