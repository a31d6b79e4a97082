"""
Spaced Repetition Algorithm for Interview Practice Problems
===========================================================

This module holds the pure calculations behind the repetition scheduler:

- Interval calculation from lifetime solve count and problem difficulty
- Mastery classification from solve, failure and streak history
- Priority scoring used to rank due problems against a daily cap

Every function here is side-effect free. The empirical constants (interval
table, difficulty multipliers, priority weights) are grouped in
``SchedulingParameters`` so a deployment can tune them without touching the
code that applies them.
"""

import math
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Optional, Tuple

from utils.datetime_utils import days_between

# Interval table: solve count -> base interval in days (>= last entry caps it)
BASE_INTERVALS = ((1, 1), (2, 3), (3, 7), (4, 14), (5, 30), (6, 60))

DIFFICULTY_MULTIPLIERS = {
    "Easy": 1.25,  # easier problems fade slower, longer spacing
    "Medium": 1.0,
    "Hard": 0.75,  # harder problems decay faster, shorter spacing
}

# Priority budget: overdue 50 / mastery 20 / scarcity 15 / recency 15
OVERDUE_POINTS_PER_DAY = 10
OVERDUE_CAP = 50
MASTERY_POINTS = {"new": 20, "learning": 20, "reviewing": 10, "mastered": 5}
SOLVE_COUNT_POINTS = ((0, 15), (1, 12), (2, 10), (3, 8), (4, 5), (5, 5))
SOLVE_COUNT_FLOOR_POINTS = 2
RECENCY_POINTS_PER_DAY = 1.5
RECENCY_CAP = 15

# Mastery thresholds
LEARNING_FAILURE_RATE = 0.3
LEARNING_MIN_SOLVES = 3
MASTERED_MIN_SOLVES = 6
MASTERED_MIN_STREAK = 3


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class MasteryLevel(str, Enum):
    """Coarse practice classification, recomputed on every completion event"""

    NEW = "new"
    LEARNING = "learning"
    REVIEWING = "reviewing"
    MASTERED = "mastered"


@dataclass
class SchedulingParameters:
    """Tunable constants for interval, mastery and priority calculations"""

    base_intervals: Tuple[Tuple[int, int], ...] = BASE_INTERVALS
    difficulty_multipliers: Dict[str, float] = field(
        default_factory=lambda: dict(DIFFICULTY_MULTIPLIERS)
    )
    overdue_points_per_day: float = OVERDUE_POINTS_PER_DAY
    overdue_cap: float = OVERDUE_CAP
    mastery_points: Dict[str, float] = field(
        default_factory=lambda: dict(MASTERY_POINTS)
    )
    solve_count_points: Tuple[Tuple[int, float], ...] = SOLVE_COUNT_POINTS
    solve_count_floor_points: float = SOLVE_COUNT_FLOOR_POINTS
    recency_points_per_day: float = RECENCY_POINTS_PER_DAY
    recency_cap: float = RECENCY_CAP
    learning_failure_rate: float = LEARNING_FAILURE_RATE
    learning_min_solves: int = LEARNING_MIN_SOLVES
    mastered_min_solves: int = MASTERED_MIN_SOLVES
    mastered_min_streak: int = MASTERED_MIN_STREAK

    def base_interval(self, solve_count: int) -> int:
        """Look up the base interval; counts past the table use the last row"""
        interval = self.base_intervals[0][1]
        for count, days in self.base_intervals:
            if solve_count >= count:
                interval = days
        return interval


DEFAULT_PARAMETERS = SchedulingParameters()


def calculate_interval(
    solve_count: int, difficulty: str, params: SchedulingParameters = None
) -> int:
    """Days until the next review for a problem solved ``solve_count`` times.

    The base interval grows with solve count (1, 3, 7, 14, 30, 60 days) and is
    scaled by the difficulty multiplier, rounded up. Unknown difficulties use
    the Medium multiplier. Always returns at least 1.
    """
    params = params or DEFAULT_PARAMETERS
    base = params.base_interval(solve_count)
    multiplier = params.difficulty_multipliers.get(str(_enum_value(difficulty)), 1.0)
    return max(1, math.ceil(base * multiplier))


def calculate_mastery_level(
    solve_count: int,
    failed_count: int,
    streak_count: int,
    params: SchedulingParameters = None,
) -> str:
    """Classify mastery from scratch; a high failure rate overrides solve count"""
    params = params or DEFAULT_PARAMETERS

    if solve_count <= 0:
        return MasteryLevel.NEW.value
    if failed_count / solve_count > params.learning_failure_rate:
        return MasteryLevel.LEARNING.value
    if solve_count < params.learning_min_solves:
        return MasteryLevel.LEARNING.value
    if (
        solve_count >= params.mastered_min_solves
        and streak_count >= params.mastered_min_streak
    ):
        return MasteryLevel.MASTERED.value
    return MasteryLevel.REVIEWING.value


def calculate_priority_score(
    anchor, today: date, params: SchedulingParameters = None
) -> float:
    """Additive priority over overdue-ness, mastery, solve scarcity and recency.

    ``anchor`` is anything exposing ``scheduled_repetition_date``,
    ``mastery_level``, ``solve_count`` and ``last_completed_at``.
    """
    params = params or DEFAULT_PARAMETERS
    breakdown = priority_breakdown(anchor, today, params)
    return sum(breakdown.values())


def priority_breakdown(
    anchor, today: date, params: SchedulingParameters = None
) -> Dict[str, float]:
    """Per-signal contributions to the priority score"""
    params = params or DEFAULT_PARAMETERS

    # 1. Overdue (0-50)
    overdue = 0.0
    scheduled = getattr(anchor, "scheduled_repetition_date", None)
    if scheduled is not None:
        days_overdue = days_between(scheduled, today)
        if days_overdue > 0:
            overdue = min(days_overdue * params.overdue_points_per_day, params.overdue_cap)

    # 2. Mastery (fixed by tier)
    level = _enum_value(getattr(anchor, "mastery_level", None) or MasteryLevel.NEW)
    mastery = params.mastery_points.get(level, params.mastery_points["reviewing"])

    # 3. Solve-count scarcity (0-15)
    solve_count = getattr(anchor, "solve_count", 0) or 0
    scarcity = params.solve_count_floor_points
    for count, points in params.solve_count_points:
        if solve_count == count:
            scarcity = points
            break

    # 4. Recency (0-15); never reviewed earns the full amount
    last_completed = getattr(anchor, "last_completed_at", None)
    if last_completed is None:
        recency = params.recency_cap
    else:
        days_since = max(0, days_between(last_completed, today))
        recency = min(days_since * params.recency_points_per_day, params.recency_cap)

    return {
        "overdue": overdue,
        "mastery": mastery,
        "scarcity": scarcity,
        "recency": recency,
    }


def _enum_value(value: Optional[object]):
    return value.value if isinstance(value, Enum) else value
