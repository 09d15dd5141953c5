"""
Unit tests for the SM-2 review scheduler.
"""

from datetime import date

import pytest

from ceprep.study.scheduler import MIN_EASE, review, round_half_up

TODAY = date(2025, 3, 1)


class TestReview:
    """Interval and ease updates per grade."""

    def test_first_good_review_is_six_days(self):
        outcome = review(2.5, 2, 1, today=TODAY)

        assert outcome.interval == 6
        assert outcome.difficulty == pytest.approx(2.5)
        assert outcome.next_review_date == date(2025, 3, 7)

    def test_again_resets_interval_and_lowers_ease(self):
        outcome = review(2.5, 0, 10, today=TODAY)

        assert outcome.interval == 1
        assert outcome.difficulty == pytest.approx(2.3)
        assert outcome.next_review_date == date(2025, 3, 2)

    def test_hard_resets_interval(self):
        outcome = review(2.5, 1, 5, today=TODAY)

        assert outcome.interval == 1
        assert outcome.difficulty == pytest.approx(2.3)

    def test_easy_adds_multiplier_and_bonus(self):
        outcome = review(2.5, 3, 1, today=TODAY)

        assert outcome.interval == 8  # 6 x 1.3 = 7.8
        assert outcome.difficulty == pytest.approx(2.75)

    def test_good_grows_by_ease(self):
        outcome = review(2.5, 2, 6, today=TODAY)

        assert outcome.interval == 15
        assert outcome.difficulty == pytest.approx(2.5)

    def test_ease_never_below_minimum(self):
        assert review(1.3, 0, 4, today=TODAY).difficulty == MIN_EASE

    def test_half_day_rounds_up(self):
        """12.5 days rounds to 13, not to the even 12."""
        assert review(2.5, 2, 5, today=TODAY).interval == 13

    @pytest.mark.parametrize("grade", [-1, 4, 10])
    def test_invalid_grade(self, grade):
        with pytest.raises(ValueError, match="grade must be 0-3"):
            review(2.5, grade, 1)

    def test_pure(self):
        assert review(2.2, 2, 9, today=TODAY) == review(2.2, 2, 9, today=TODAY)

    def test_defaults_to_today(self):
        outcome = review(2.5, 2, 1)

        assert (outcome.next_review_date - date.today()).days == 6


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,expected", [(0.2, 0), (0.5, 1), (2.5, 3), (7.8, 8), (12.49, 12)])
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected
