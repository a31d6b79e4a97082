"""
Completion & Undo
=================

A record moves ``pending -> completed`` and may move back while the
completion still belongs to today. Once the completion day has passed the
record is locked. Each transition keeps ``solve_count`` identical across every
record sharing the problem number and recomputes the anchor's interval,
mastery and next dates from scratch.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from models import Problem
from services.algorithm import (
    MasteryLevel,
    SchedulingParameters,
    calculate_interval,
    calculate_mastery_level,
)
from services.errors import LockedCompletion
from services.store import ProblemStore
from services.topic_days import find_next_topic_day
from utils.datetime_utils import ensure_utc, now_utc, to_civil_date
from utils.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class CompletionResult:
    record: Problem
    anchor: Optional[Problem]
    solve_count: int
    changed: bool
    message: str

    def to_dict(self, today: date = None) -> dict:
        return {
            "message": self.message,
            "changed": self.changed,
            "solveCount": self.solve_count,
            "problem": self.record.to_dict(today),
            "anchor": self.anchor.to_dict(today) if self.anchor is not None else None,
        }


def _timestamp_field(record: Problem) -> str:
    return "completed_at" if record.is_anchor else "repetition_completed_at"


def _anchor_for(record: Problem) -> Optional[Problem]:
    return record if record.is_anchor else record.original


def _completed_on(records: Sequence[Problem], day: date) -> List[Problem]:
    return [r for r in records if r.is_completed and r.completion_date == day]


def _ensure_unlocked(record: Problem, today: date) -> None:
    completed_on = record.completion_date
    if completed_on is not None and completed_on < today:
        raise LockedCompletion(
            f"Problem #{record.problem_number} was completed on {completed_on.isoformat()}; "
            "completions from past days are locked and cannot be changed"
        )


def _sync_solve_count(store: ProblemStore, problem_number: str, solve_count: int) -> None:
    store.update_many({"problem_number": problem_number}, {"solve_count": solve_count})


def _reschedule(
    anchor: Problem,
    solve_count: int,
    last_completed: Optional[datetime],
    store: ProblemStore,
    plans=None,
    params: SchedulingParameters = None,
    failed_count: int = None,
    streak_count: int = None,
) -> Problem:
    """Write freshly computed interval, mastery and dates to the anchor"""
    failed_count = anchor.failed_count if failed_count is None else failed_count
    streak_count = anchor.streak_count if streak_count is None else streak_count

    if last_completed is not None:
        interval = calculate_interval(solve_count, anchor.difficulty, params)
        next_date = to_civil_date(last_completed) + timedelta(days=interval)
        scheduled = find_next_topic_day(anchor.topic, next_date, plans)
    else:
        # Never reviewed: back to the schedule a freshly logged problem gets
        interval = 1
        next_date = None
        added_on = to_civil_date(anchor.added_at)
        scheduled = find_next_topic_day(anchor.topic, added_on + timedelta(days=1), plans)

    mastery = (
        calculate_mastery_level(solve_count, failed_count, streak_count, params)
        if solve_count > 0
        else MasteryLevel.NEW.value
    )
    return store.update_by_id(
        anchor.id,
        {
            "last_completed_at": last_completed,
            "repetition_interval": interval,
            "next_repetition_date": next_date,
            "scheduled_repetition_date": scheduled,
            "mastery_level": mastery,
            "failed_count": failed_count,
            "streak_count": streak_count,
        },
    )


def record_completion(
    record_id,
    now: datetime = None,
    store: ProblemStore = None,
    plans=None,
    params: SchedulingParameters = None,
) -> CompletionResult:
    """Mark a record solved; completing twice on the same day is a no-op"""
    now = ensure_utc(now) if now is not None else now_utc()
    today = now.date()
    store = store or ProblemStore()

    record = store.get(record_id)
    if record.is_completed:
        _ensure_unlocked(record, today)
        return CompletionResult(
            record, _anchor_for(record), record.solve_count, False, "Problem already completed today"
        )

    siblings = store.find_by_filter({"problem_number": record.problem_number})
    already_solved_today = bool(_completed_on([s for s in siblings if s.id != record.id], today))
    current_max = max([s.solve_count or 0 for s in siblings] + [0])
    solve_count = current_max if already_solved_today else current_max + 1

    store.update_by_id(record.id, {"is_completed": True, _timestamp_field(record): now})
    _sync_solve_count(store, record.problem_number, solve_count)

    anchor = _anchor_for(record)
    if anchor is not None:
        streak = anchor.streak_count + (0 if already_solved_today else 1)
        anchor = _reschedule(anchor, solve_count, now, store, plans, params, streak_count=streak)

    logger.info(
        "Completed %s #%s (solve count %d%s)",
        record.kind,
        record.problem_number,
        solve_count,
        ", already counted today" if already_solved_today else "",
    )
    return CompletionResult(store.get(record.id), anchor, solve_count, True, "Problem marked as completed")


def _latest_remaining_completion(anchor: Problem) -> Optional[datetime]:
    family = [anchor] + list(anchor.repetitions)
    stamps = [r.completion_timestamp for r in family if r.is_completed and r.completion_timestamp]
    return max(stamps) if stamps else None


def record_undo(
    record_id,
    now: datetime = None,
    store: ProblemStore = None,
    plans=None,
    params: SchedulingParameters = None,
) -> CompletionResult:
    """Revert today's completion; completions from earlier days are locked"""
    now = ensure_utc(now) if now is not None else now_utc()
    today = now.date()
    store = store or ProblemStore()

    record = store.get(record_id)
    if not record.is_completed:
        return CompletionResult(
            record, _anchor_for(record), record.solve_count, False, "Problem is not completed"
        )
    _ensure_unlocked(record, today)

    siblings = store.find_by_filter({"problem_number": record.problem_number})
    completions_today = _completed_on(siblings, today)
    only_completion_today = [r.id for r in completions_today] == [record.id]

    store.update_by_id(record.id, {"is_completed": False, _timestamp_field(record): None})

    solve_count = max([s.solve_count or 0 for s in siblings] + [0])
    anchor = _anchor_for(record)
    if only_completion_today:
        solve_count = max(0, solve_count - 1)
        _sync_solve_count(store, record.problem_number, solve_count)
        if anchor is not None:
            anchor = _reschedule(
                anchor,
                solve_count,
                _latest_remaining_completion(anchor),
                store,
                plans,
                params,
                failed_count=anchor.failed_count + 1,
                streak_count=0,
            )

    logger.info("Undid completion of %s #%s (solve count %d)", record.kind, record.problem_number, solve_count)
    return CompletionResult(store.get(record.id), anchor, solve_count, True, "Problem unmarked as completed")
