"""
Daily Repetition Selector
=========================

Runs one scheduling cycle for a day's repetition topic:

1. Select - score every due anchor of the topic and keep the top ``daily_cap``
2. Materialize - make sure each selected anchor has exactly one incomplete
   repetition record dated today (merging duplicates left by racing cycles)
3. Enforce cap - if legacy data leaves more than ``daily_cap`` records dated
   today, move the lowest-priority ones to future topic days
4. Distribute - give every unselected anchor a concrete future date

Concurrent cycles may both create a repetition for the same anchor before
either sees the other's write. Instead of locking, every write is followed by
a read that merges duplicates, so the store converges to one incomplete
repetition per anchor.
"""

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from models import ANCHOR, REPETITION, Problem
from services.algorithm import SchedulingParameters, calculate_priority_score
from services.errors import InvalidArgument, StoreUnavailable
from services.store import ProblemStore
from services.topic_days import get_future_topic_days
from utils.datetime_utils import utc_today
from utils.logging_config import get_logger

logger = get_logger(__name__)

FALLBACK_WINDOW_START_DAYS = 7
FALLBACK_WINDOW_DAYS = 21


@dataclass
class ScoredProblem:
    problem: Problem
    priority_score: float


@dataclass
class SelectionResult:
    selected: List[Problem] = field(default_factory=list)
    unselected: List[ScoredProblem] = field(default_factory=list)


@dataclass
class Deferral:
    problem: Problem
    scheduled_date: date


@dataclass
class DailyRepetitions:
    """Outcome of one daily cycle"""

    to_show: List[Problem] = field(default_factory=list)
    to_create: List[Problem] = field(default_factory=list)
    to_defer: List[Deferral] = field(default_factory=list)
    duplicates_removed: int = 0

    def to_dict(self, today: date = None) -> dict:
        return {
            "toShow": [p.to_dict(today) for p in self.to_show],
            "toCreate": [p.to_dict(today) for p in self.to_create],
            "toDefer": [
                {"id": d.problem.id, "problemNumber": d.problem.problem_number, "scheduledRepetitionDate": d.scheduled_date.isoformat()}
                for d in self.to_defer
            ],
            "duplicatesRemoved": self.duplicates_removed,
        }


# ============================================================================
# SELECTION
# ============================================================================


def _anchors_scheduled_today(store: ProblemStore, today: date) -> set:
    """Anchor ids that already have a repetition dated today (best effort)"""
    try:
        repetitions = store.find_by_filter({"kind": REPETITION, "scheduled_repetition_date": today})
    except StoreUnavailable:
        logger.warning("Could not load today's repetitions; selecting without exclusions")
        return set()
    return {r.original_ref for r in repetitions if r.original_ref is not None}


def select_daily_repetitions(
    topic: str,
    today: date = None,
    daily_cap: int = 5,
    store: ProblemStore = None,
    params: SchedulingParameters = None,
) -> SelectionResult:
    """Rank today's due anchors for ``topic`` and split them at ``daily_cap``.

    Anchors without a scheduled date are eligible immediately. Ties keep
    creation order.
    """
    if today is None:
        today = utc_today()
    store = store or ProblemStore()

    excluded = _anchors_scheduled_today(store, today)

    due = store.find_by_filter({"kind": ANCHOR, "topic": topic, "scheduled_repetition_date__lte": today})
    never_scheduled = store.find_by_filter({"kind": ANCHOR, "topic": topic, "scheduled_repetition_date__isnull": True})
    candidates = sorted(
        (p for p in due + never_scheduled if p.id not in excluded),
        key=lambda p: p.id,
    )

    scored = [ScoredProblem(p, calculate_priority_score(p, today, params)) for p in candidates]
    scored.sort(key=lambda s: s.priority_score, reverse=True)
    for item in scored:
        logger.debug("Candidate #%s scored %.1f", item.problem.problem_number, item.priority_score)

    cap = max(0, daily_cap)
    return SelectionResult(
        selected=[s.problem for s in scored[:cap]],
        unselected=scored[cap:],
    )


# ============================================================================
# MATERIALIZATION
# ============================================================================


def reconcile_repetitions(anchor_id: int, today: date, store: ProblemStore = None, dry_run: bool = False) -> Tuple[Optional[Problem], int]:
    """Collapse an anchor's incomplete repetitions to the earliest-scheduled one.

    Returns the survivor (or None) and the number of duplicates removed. The
    survivor is moved forward to ``today`` if its date is stale.
    """
    store = store or ProblemStore()
    pending = store.find_by_filter(
        {"kind": REPETITION, "original_ref": anchor_id, "is_completed": False},
        order_by=("scheduled_repetition_date", "created_at"),
    )
    # Undated records sort after every dated one
    pending.sort(key=lambda r: r.scheduled_repetition_date is None)
    if not pending:
        return None, 0

    survivor, duplicates = pending[0], pending[1:]
    if duplicates and not dry_run:
        store.delete_many({"id__in": [d.id for d in duplicates]})
        logger.info(
            "Merged %d duplicate repetition(s) for anchor %s, kept %s",
            len(duplicates),
            anchor_id,
            survivor.id,
        )

    if today is not None and not dry_run and (
        survivor.scheduled_repetition_date is None or survivor.scheduled_repetition_date < today
    ):
        survivor = store.update_by_id(survivor.id, {"scheduled_repetition_date": today})
    return survivor, len(duplicates)


def ensure_single_repetition(anchor: Problem, today: date, store: ProblemStore = None) -> Tuple[Optional[Problem], bool, int]:
    """Idempotent upsert of the one incomplete repetition for ``anchor``.

    Returns ``(repetition, created, duplicates_removed)``. The repetition is
    None when the duplicate check cannot run; the anchor is retried next cycle.
    """
    store = store or ProblemStore()
    try:
        survivor, removed = reconcile_repetitions(anchor.id, today, store)
    except StoreUnavailable:
        logger.warning("Skipping problem #%s this cycle: duplicate check unavailable", anchor.problem_number)
        return None, False, 0
    if survivor is not None:
        return survivor, False, removed

    scheduled = anchor.scheduled_repetition_date or today
    created = store.create(
        problem_number=anchor.problem_number,
        problem_slug=anchor.problem_slug,
        problem_title=anchor.problem_title,
        topic=anchor.topic,
        difficulty=anchor.difficulty,
        notes=anchor.notes,
        kind=REPETITION,
        original_ref=anchor.id,
        is_completed=False,
        added_at=anchor.added_at,
        solve_count=anchor.solve_count,
        scheduled_repetition_date=max(scheduled, today),
    )
    logger.info("Created repetition %s for problem #%s", created.id, anchor.problem_number)

    # Read-after-write: a concurrent cycle may have created one too
    try:
        survivor, removed_after = reconcile_repetitions(anchor.id, today, store)
    except StoreUnavailable:
        logger.warning("Duplicate check after creating repetition %s failed; merging next cycle", created.id)
        return created, True, removed
    if survivor is None or survivor.id != created.id:
        return survivor, False, removed + removed_after
    return created, True, removed + removed_after


def materialize_repetitions(selected: Sequence[Problem], today: date, store: ProblemStore = None) -> Tuple[List[Problem], List[Problem], int]:
    """Ensure repetitions for every selected anchor; returns (all, created, removed)"""
    store = store or ProblemStore()
    repetitions, created, removed = [], [], 0
    for anchor in selected:
        repetition, was_created, duplicates = ensure_single_repetition(anchor, today, store)
        if repetition is None:
            continue
        repetitions.append(repetition)
        if was_created:
            created.append(repetition)
        removed += duplicates
    return repetitions, created, removed


# ============================================================================
# DISTRIBUTION
# ============================================================================


def plan_overflow_dates(
    count: int,
    topic: str,
    today: date,
    weeks_ahead: int = 4,
    plans: Optional[Sequence] = None,
) -> List[date]:
    """Target dates for ``count`` overflow items, all strictly after today"""
    if count <= 0:
        return []

    topic_days = get_future_topic_days(topic, weeks_ahead, today, plans)
    if not topic_days:
        return [
            today + timedelta(days=FALLBACK_WINDOW_START_DAYS + (i % FALLBACK_WINDOW_DAYS))
            for i in range(count)
        ]

    per_day = math.ceil(count / len(topic_days))
    return [topic_days[min(i // per_day, len(topic_days) - 1)] for i in range(count)]


def distribute_unselected_problems(
    unselected: Sequence[ScoredProblem],
    topic: str,
    today: date = None,
    store: ProblemStore = None,
    plans: Optional[Sequence] = None,
    weeks_ahead: int = 4,
) -> List[Deferral]:
    """Move every unselected anchor to a future topic day, highest priority first"""
    if today is None:
        today = utc_today()
    store = store or ProblemStore()

    dates = plan_overflow_dates(len(unselected), topic, today, weeks_ahead, plans)
    deferrals = []
    for item, target in zip(unselected, dates):
        problem = store.update_by_id(item.problem.id, {"scheduled_repetition_date": target})
        deferrals.append(Deferral(problem, target))

    if deferrals:
        logger.info("Deferred %d %s problem(s) to future topic days", len(deferrals), topic)
    return deferrals


def enforce_daily_cap(
    topic: str,
    today: date,
    daily_cap: int,
    store: ProblemStore = None,
    plans: Optional[Sequence] = None,
    params: SchedulingParameters = None,
    weeks_ahead: int = 4,
) -> List[Deferral]:
    """Push repetitions dated today beyond ``daily_cap`` to future topic days"""
    store = store or ProblemStore()
    try:
        todays = store.find_by_filter(
            {"kind": REPETITION, "topic": topic, "is_completed": False, "scheduled_repetition_date": today},
            order_by=("created_at",),
        )
    except StoreUnavailable:
        logger.warning("Could not recount today's %s repetitions; cap not re-checked", topic)
        return []

    if len(todays) <= daily_cap:
        return []

    def score(repetition):
        return calculate_priority_score(repetition.original or repetition, today, params)

    ranked = sorted(todays, key=score, reverse=True)
    excess = ranked[max(0, daily_cap):]
    dates = plan_overflow_dates(len(excess), topic, today, weeks_ahead, plans)

    deferrals = []
    for repetition, target in zip(excess, dates):
        store.update_by_id(repetition.id, {"scheduled_repetition_date": target})
        if repetition.original_ref is not None:
            store.update_by_id(repetition.original_ref, {"scheduled_repetition_date": target})
        deferrals.append(Deferral(repetition, target))

    logger.info("Moved %d %s repetition(s) over the daily cap of %d", len(deferrals), topic, daily_cap)
    return deferrals


# ============================================================================
# DAILY CYCLE
# ============================================================================


def compute_todays_repetitions(
    topic: str,
    today: date = None,
    cap: int = 5,
    store: ProblemStore = None,
    plans: Optional[Sequence] = None,
    params: SchedulingParameters = None,
    weeks_ahead: int = 4,
) -> DailyRepetitions:
    """Run selection, materialization, cap enforcement and distribution for a day"""
    if not topic or not str(topic).strip():
        raise InvalidArgument("Topic is required")
    if cap is None or cap <= 0:
        raise InvalidArgument("Daily cap must be a positive integer")
    if today is None:
        today = utc_today()
    store = store or ProblemStore()

    selection = select_daily_repetitions(topic, today, cap, store, params)
    _, created, removed = materialize_repetitions(selection.selected, today, store)
    over_cap = enforce_daily_cap(topic, today, cap, store, plans, params, weeks_ahead)
    deferred = distribute_unselected_problems(selection.unselected, topic, today, store, plans, weeks_ahead)

    to_show = store.find_by_filter(
        {"kind": REPETITION, "topic": topic, "is_completed": False, "scheduled_repetition_date": today},
        order_by=("created_at",),
    )
    moved_ids = {d.problem.id for d in over_cap}
    return DailyRepetitions(
        to_show=to_show,
        to_create=[p for p in created if p.id not in moved_ids],
        to_defer=deferred + over_cap,
        duplicates_removed=removed,
    )
