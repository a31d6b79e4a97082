# tests/test_algorithm.py
from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest
import pytz

from services.algorithm import (
    SchedulingParameters,
    calculate_interval,
    calculate_mastery_level,
    calculate_priority_score,
    priority_breakdown,
)

TODAY = date(2025, 1, 10)


def anchor(scheduled=None, mastery="new", solves=0, last=None):
    return SimpleNamespace(
        scheduled_repetition_date=scheduled,
        mastery_level=mastery,
        solve_count=solves,
        last_completed_at=last,
    )


def test_interval_base_table_for_medium():
    assert [calculate_interval(n, "Medium") for n in range(1, 8)] == [1, 3, 7, 14, 30, 60, 60]


def test_interval_scenarios():
    assert calculate_interval(3, "Medium") == 7
    assert calculate_interval(3, "Hard") == 6  # ceil(7 * 0.75)
    assert calculate_interval(1, "Easy") == 2  # ceil(1 * 1.25)


@pytest.mark.parametrize("difficulty", ["Easy", "Medium", "Hard"])
def test_interval_is_monotonic_and_caps(difficulty):
    for n in range(1, 6):
        assert calculate_interval(n, difficulty) <= calculate_interval(n + 1, difficulty)
    assert calculate_interval(6, difficulty) == calculate_interval(20, difficulty)


@pytest.mark.parametrize("solves", range(0, 8))
def test_interval_difficulty_ordering(solves):
    hard = calculate_interval(solves, "Hard")
    medium = calculate_interval(solves, "Medium")
    easy = calculate_interval(solves, "Easy")
    assert 1 <= hard <= medium <= easy


def test_interval_unknown_difficulty_uses_medium():
    assert calculate_interval(4, "Impossible") == 14


def test_interval_respects_custom_parameters():
    params = SchedulingParameters(base_intervals=((1, 2), (2, 4)))
    assert calculate_interval(1, "Medium", params) == 2
    assert calculate_interval(9, "Medium", params) == 4


def test_mastery_new_when_never_solved():
    assert calculate_mastery_level(0, 0, 0) == "new"
    assert calculate_mastery_level(0, 5, 9) == "new"


def test_mastery_learning_below_three_solves():
    assert calculate_mastery_level(2, 0, 2) == "learning"


def test_mastery_mastered_then_failure_rate_overrides():
    assert calculate_mastery_level(6, 0, 3) == "mastered"
    assert calculate_mastery_level(6, 2, 3) == "learning"  # 33% failure rate


def test_mastery_reviewing_in_between():
    assert calculate_mastery_level(4, 1, 1) == "reviewing"
    assert calculate_mastery_level(6, 0, 2) == "reviewing"


def test_mastery_is_deterministic():
    assert calculate_mastery_level(5, 1, 2) == calculate_mastery_level(5, 1, 2)


def test_priority_never_reviewed_new_problem():
    # overdue 0 + mastery 20 + scarcity 15 + recency 15
    assert calculate_priority_score(anchor(), TODAY) == 50


def test_priority_overdue_is_capped():
    assert priority_breakdown(anchor(scheduled=TODAY - timedelta(days=2)), TODAY)["overdue"] == 20
    assert priority_breakdown(anchor(scheduled=TODAY - timedelta(days=9)), TODAY)["overdue"] == 50
    assert priority_breakdown(anchor(scheduled=TODAY + timedelta(days=3)), TODAY)["overdue"] == 0


@pytest.mark.parametrize(
    "solves,points", [(0, 15), (1, 12), (2, 10), (3, 8), (4, 5), (5, 5), (6, 2), (11, 2)]
)
def test_priority_solve_count_scarcity(solves, points):
    assert priority_breakdown(anchor(solves=solves), TODAY)["scarcity"] == points


def test_priority_recency_and_mastery():
    last = datetime(2025, 1, 6, 22, 0, tzinfo=pytz.utc)
    breakdown = priority_breakdown(anchor(mastery="mastered", last=last), TODAY)
    assert breakdown["recency"] == 6.0  # 4 days * 1.5
    assert breakdown["mastery"] == 5
    old = datetime(2024, 11, 1, tzinfo=pytz.utc)
    assert priority_breakdown(anchor(last=old), TODAY)["recency"] == 15


def test_priority_higher_for_more_overdue():
    more = anchor(scheduled=TODAY - timedelta(days=4), mastery="reviewing", solves=4)
    less = anchor(scheduled=TODAY - timedelta(days=1), mastery="reviewing", solves=4)
    assert calculate_priority_score(more, TODAY) > calculate_priority_score(less, TODAY)
