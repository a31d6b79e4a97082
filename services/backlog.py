"""Missed reviews: incomplete repetitions whose scheduled day has passed."""

from datetime import date
from typing import List

from models import REPETITION, Problem
from services.errors import InvalidArgument
from services.store import ProblemStore
from utils.datetime_utils import utc_today


def get_backlog(today: date = None, cap: int = 10, store: ProblemStore = None) -> List[Problem]:
    """Overdue incomplete repetitions, oldest first, one per anchor.

    Duplicate incomplete repetitions of the same anchor are collapsed here
    (keeping the earliest due) whether or not the write-side merge has run.
    """
    if cap is None or cap <= 0:
        raise InvalidArgument("Backlog cap must be a positive integer")
    if today is None:
        today = utc_today()
    store = store or ProblemStore()

    overdue = store.find_by_filter(
        {"kind": REPETITION, "is_completed": False, "scheduled_repetition_date__lt": today},
        order_by=("scheduled_repetition_date", "created_at"),
    )

    backlog, seen = [], set()
    for repetition in overdue:
        key = repetition.original_ref if repetition.original_ref is not None else ("orphan", repetition.id)
        if key in seen:
            continue
        seen.add(key)
        backlog.append(repetition)
        if len(backlog) >= cap:
            break
    return backlog
