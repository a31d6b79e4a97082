# tests/test_completion.py
from datetime import date, datetime, timedelta

import pytest
import pytz

from models import REPETITION
from services.completion import record_completion, record_undo
from services.errors import LockedCompletion, NotFound

TODAY = date(2025, 1, 10)
NOW = datetime(2025, 1, 10, 15, 30, tzinfo=pytz.utc)
YESTERDAY = NOW - timedelta(days=1)


def solve_counts(store, problem_number):
    return {p.solve_count for p in store.find_by_filter({"problem_number": problem_number})}


def test_complete_anchor_schedules_first_review(store, weekly_plan, make_anchor):
    anchor = make_anchor(scheduled=TODAY)

    result = record_completion(anchor.id, NOW, store)

    assert result.changed is True
    assert result.solve_count == 1
    refreshed = store.get(anchor.id)
    assert refreshed.is_completed is True
    assert refreshed.completion_date == TODAY
    assert refreshed.repetition_interval == 1
    assert refreshed.next_repetition_date == date(2025, 1, 11)
    assert refreshed.scheduled_repetition_date == date(2025, 1, 17)  # next Arrays & Hashing day
    assert refreshed.mastery_level == "learning"
    assert refreshed.streak_count == 1
    assert refreshed.completion_timestamp == NOW


def test_complete_repetition_updates_anchor_and_syncs_counts(store, weekly_plan, make_anchor, make_repetition):
    anchor = make_anchor(number="1", solve_count=2, streak_count=2, difficulty="Hard")
    repetition = make_repetition(anchor, scheduled=TODAY)
    make_repetition(anchor, scheduled=date(2025, 1, 3), is_completed=True,
                    repetition_completed_at=datetime(2025, 1, 3, 9, tzinfo=pytz.utc))

    result = record_completion(repetition.id, NOW, store)

    assert result.solve_count == 3
    assert solve_counts(store, "1") == {3}
    assert store.get(repetition.id).repetition_completed_at is not None
    assert store.get(repetition.id).completed_at is None
    refreshed = store.get(anchor.id)
    assert refreshed.repetition_interval == 6  # ceil(7 * 0.75)
    assert refreshed.next_repetition_date == date(2025, 1, 16)
    assert refreshed.scheduled_repetition_date == date(2025, 1, 17)
    assert refreshed.streak_count == 3
    assert refreshed.mastery_level == "reviewing"
    assert refreshed.last_completed_at is not None


def test_same_day_completions_count_once(store, weekly_plan, make_anchor, make_repetition):
    anchor = make_anchor(number="42", solve_count=2)
    repetition = make_repetition(anchor, scheduled=TODAY)

    record_completion(repetition.id, NOW, store)
    result = record_completion(anchor.id, NOW + timedelta(minutes=5), store)

    assert result.solve_count == 3
    assert solve_counts(store, "42") == {3}


def test_completing_twice_is_a_no_op(store, weekly_plan, make_anchor):
    anchor = make_anchor(number="7")
    record_completion(anchor.id, NOW, store)

    result = record_completion(anchor.id, NOW + timedelta(hours=1), store)

    assert result.changed is False
    assert result.message == "Problem already completed today"
    assert solve_counts(store, "7") == {1}


def test_completing_record_locked_from_past_day(store, make_anchor):
    anchor = make_anchor(is_completed=True, completed_at=YESTERDAY, solve_count=1)
    with pytest.raises(LockedCompletion) as excinfo:
        record_completion(anchor.id, NOW, store)
    assert "locked" in excinfo.value.message


def test_undo_locked_from_past_day_does_not_mutate(store, make_anchor, make_repetition):
    anchor = make_anchor(number="9", solve_count=4)
    repetition = make_repetition(anchor, is_completed=True, repetition_completed_at=YESTERDAY)

    with pytest.raises(LockedCompletion):
        record_undo(repetition.id, NOW, store)

    refreshed = store.get(repetition.id)
    assert refreshed.is_completed is True
    assert refreshed.repetition_completed_at is not None
    assert solve_counts(store, "9") == {4}


def test_undo_restores_previous_completion_state(store, weekly_plan, make_anchor, make_repetition):
    anchor = make_anchor(number="5", solve_count=2, streak_count=2,
                         last_completed_at=datetime(2025, 1, 3, 9, tzinfo=pytz.utc))
    make_repetition(anchor, scheduled=date(2025, 1, 3), is_completed=True,
                    repetition_completed_at=datetime(2025, 1, 3, 9, tzinfo=pytz.utc))
    pending = make_repetition(anchor, scheduled=TODAY)

    record_completion(pending.id, NOW, store)
    result = record_undo(pending.id, NOW + timedelta(hours=2), store)

    assert result.changed is True
    assert result.solve_count == 2
    assert solve_counts(store, "5") == {2}
    assert store.get(pending.id).is_completed is False
    refreshed = store.get(anchor.id)
    assert refreshed.failed_count == 1
    assert refreshed.streak_count == 0
    assert refreshed.mastery_level == "learning"  # 1 failure in 2 solves
    assert refreshed.repetition_interval == 3
    assert refreshed.next_repetition_date == date(2025, 1, 6)
    assert refreshed.scheduled_repetition_date == date(2025, 1, 10)
    assert refreshed.last_completed_at.date() == date(2025, 1, 3)


def test_undo_only_completion_resets_to_never_reviewed(store, weekly_plan, make_anchor):
    anchor = make_anchor(number="3", added_at=datetime(2025, 1, 8, tzinfo=pytz.utc))
    record_completion(anchor.id, NOW, store)

    record_undo(anchor.id, NOW, store)

    refreshed = store.get(anchor.id)
    assert refreshed.solve_count == 0
    assert refreshed.mastery_level == "new"
    assert refreshed.last_completed_at is None
    assert refreshed.next_repetition_date is None
    assert refreshed.scheduled_repetition_date == date(2025, 1, 10)


def test_undo_keeps_count_when_another_completion_today(store, weekly_plan, make_anchor, make_repetition):
    anchor = make_anchor(number="11", solve_count=1)
    repetition = make_repetition(anchor, scheduled=TODAY)
    record_completion(anchor.id, NOW, store)
    record_completion(repetition.id, NOW, store)

    result = record_undo(repetition.id, NOW, store)

    assert result.solve_count == 2
    assert solve_counts(store, "11") == {2}
    assert store.get(anchor.id).failed_count == 0


def test_undo_pending_record_is_a_no_op(store, make_anchor):
    anchor = make_anchor()
    result = record_undo(anchor.id, NOW, store)
    assert result.changed is False


def test_unknown_record(store):
    with pytest.raises(NotFound):
        record_completion(999, NOW, store)
