"""
SM-2 variant used for flashcard review.

Grade scale (4 buttons):
0 - Again
1 - Hard
2 - Good
3 - Easy

The update runs in two stages. First a pass/fail step: grades 0 and 1
both reset the interval to 1 day and lower the ease by 0.2; grades 2 and 3
grow the interval (1 day -> 6 days, otherwise interval x ease) and adjust
the ease. Then a per-grade multiplier is applied to the interval (x0.2,
x1.2, x1, x1.3) and Easy adds another 0.15 to the ease. The interval is
never below one day.

review() is a pure function: no state, same inputs give the same result.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta

MIN_EASE = 1.3
FIRST_SUCCESS_INTERVAL = 6

# Grade -> interval multiplier applied after the pass/fail step
GRADE_MULTIPLIERS: dict[int, float] = {0: 0.2, 1: 1.2, 2: 1.0, 3: 1.3}
EASY_BONUS = 0.15


@dataclass(frozen=True)
class ReviewOutcome:
    """New scheduling values for a card after one review."""

    interval: int
    difficulty: float
    next_review_date: date


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (built-in round() rounds half to even)."""
    return math.floor(value + 0.5)


def review(
    current_difficulty: float,
    grade: int,
    current_interval: int,
    today: date | None = None,
) -> ReviewOutcome:
    """
    Compute the next interval, ease and due date for a card.

    Args:
        current_difficulty: Current ease factor (>= 1.3).
        grade: 0 (Again), 1 (Hard), 2 (Good) or 3 (Easy).
        current_interval: Current interval in days (>= 1).
        today: Reference date for the due date (defaults to date.today()).

    Returns:
        ReviewOutcome with interval, difficulty and next_review_date.
    """
    if grade not in GRADE_MULTIPLIERS:
        raise ValueError(f"grade must be 0-3, got {grade}")

    difficulty = current_difficulty
    if grade < 2:
        interval = 1
        difficulty = max(MIN_EASE, current_difficulty - 0.2)
    else:
        if current_interval == 1:
            interval = FIRST_SUCCESS_INTERVAL
        else:
            interval = round_half_up(current_interval * difficulty)
        miss = 3 - grade
        difficulty = max(MIN_EASE, difficulty + (0.1 - miss * (0.08 + miss * 0.02)))

    multiplier = GRADE_MULTIPLIERS[grade]
    if multiplier != 1.0:
        interval = round_half_up(interval * multiplier)
    if grade == 3:
        difficulty += EASY_BONUS

    interval = max(1, interval)
    reference = today or date.today()
    return ReviewOutcome(
        interval=interval,
        difficulty=difficulty,
        next_review_date=reference + timedelta(days=interval),
    )
