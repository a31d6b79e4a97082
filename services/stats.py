"""Aggregate practice statistics, served from the versioned stats cache."""

from collections import Counter
from datetime import date, timedelta
from typing import Dict

from models import ANCHOR
from services.algorithm import Difficulty, MasteryLevel
from services.cache import VersionedCache, stats_cache
from services.errors import StoreUnavailable
from services.store import ProblemStore
from utils.datetime_utils import get_this_week_s_sunday, utc_today
from utils.logging_config import get_logger

logger = get_logger(__name__)

STREAK_LOOKBACK_DAYS = 365


def _current_streak(completion_days: set, today: date) -> int:
    """Consecutive active days ending at the most recent active day"""
    cursor = today
    for _ in range(STREAK_LOOKBACK_DAYS):
        if cursor in completion_days:
            break
        cursor -= timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in completion_days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def compute_statistics(today: date = None, store: ProblemStore = None) -> Dict:
    if today is None:
        today = utc_today()
    store = store or ProblemStore()
    problems = store.find_by_filter()

    total = len(problems)
    completed = sum(1 for p in problems if p.is_completed)

    by_difficulty = {d.value: {"total": 0, "completed": 0, "pending": 0} for d in Difficulty}
    by_topic: Dict[str, Dict[str, int]] = {}
    for problem in problems:
        for bucket in (
            by_difficulty.setdefault(problem.difficulty, {"total": 0, "completed": 0, "pending": 0}),
            by_topic.setdefault(problem.topic, {"total": 0, "completed": 0, "pending": 0}),
        ):
            bucket["total"] += 1
            bucket["completed" if problem.is_completed else "pending"] += 1

    mastery = Counter(p.mastery_level for p in problems if p.kind == ANCHOR)
    completion_days = {p.completion_date for p in problems if p.is_completed and p.completion_date}
    week_start = get_this_week_s_sunday(today)

    return {
        "overview": {
            "total": total,
            "completed": completed,
            "pending": total - completed,
            "completionRate": round(completed / total * 100, 1) if total else 0,
        },
        "byDifficulty": by_difficulty,
        "byTopic": [dict(topic=name, **counts) for name, counts in sorted(by_topic.items())],
        "masteryDistribution": {m.value: mastery.get(m.value, 0) for m in MasteryLevel},
        "streak": _current_streak(completion_days, today),
        "thisWeekProblems": sum(
            1 for p in problems if p.is_completed and p.completion_date and p.completion_date >= week_start
        ),
        "todaySolvedCount": sum(1 for p in problems if p.is_completed and p.completion_date == today),
    }


def get_statistics(today: date = None, store: ProblemStore = None, cache: VersionedCache = stats_cache) -> Dict:
    """Cached statistics; recomputed after any store write"""
    if today is None:
        today = utc_today()
    return cache.get_or_compute(f"stats:{today.isoformat()}", lambda: compute_statistics(today, store))


def warm_statistics_cache(today: date = None, store: ProblemStore = None) -> bool:
    """Precompute statistics; failures are logged and ignored"""
    try:
        get_statistics(today, store)
    except StoreUnavailable:
        logger.warning("Statistics cache warm skipped: problem store unavailable")
        return False
    return True
