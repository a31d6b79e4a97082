"""
Topic-Day Resolver
==================

Finds the calendar dates on which the weekly plan makes a topic the
repetition focus. Plans are passed in as any sequence of objects exposing
``day_of_week`` and ``repetition_topic``; when omitted they are loaded from
the ``practice_plans`` table.
"""

from datetime import date, timedelta
from typing import Dict, Iterator, List, Optional, Sequence

from models import get_weekly_plan
from utils.datetime_utils import day_of_week, to_civil_date, utc_today

SEARCH_HORIZON_DAYS = 28  # two passes of 14 days
FALLBACK_DAYS = 3  # historical cadence without a custom plan


def _repetition_topics(plans) -> Dict[int, str]:
    if plans is None:
        plans = get_weekly_plan()
    return {plan.day_of_week: plan.repetition_topic for plan in plans}


def _iter_topic_days(topic: str, start: date, topics_by_day: Dict[int, str], horizon: int) -> Iterator[date]:
    for offset in range(horizon):
        candidate = start + timedelta(days=offset)
        if topics_by_day.get(day_of_week(candidate)) == topic:
            yield candidate


def find_next_topic_day(topic: str, from_date, plans: Optional[Sequence] = None) -> date:
    """First date on or after ``from_date`` whose repetition topic is ``topic``.

    Falls back to ``from_date + 3 days`` when the plan is empty or the topic
    is not scheduled anywhere within the 28-day horizon.
    """
    start = to_civil_date(from_date)
    topics_by_day = _repetition_topics(plans)
    if topics_by_day:
        for match in _iter_topic_days(topic, start, topics_by_day, SEARCH_HORIZON_DAYS):
            return match
    return start + timedelta(days=FALLBACK_DAYS)


def get_next_topic_days(
    topic: str,
    weeks_ahead: int = 4,
    today: date = None,
    plans: Optional[Sequence] = None,
) -> List[date]:
    """Up to ``weeks_ahead`` dates (from today, inclusive) where ``topic`` is reviewed.

    Returns an empty list when no plan exists; callers choose the fallback.
    """
    if today is None:
        today = utc_today()
    topics_by_day = _repetition_topics(plans)
    if not topics_by_day or weeks_ahead <= 0:
        return []

    days = []
    for match in _iter_topic_days(topic, today, topics_by_day, weeks_ahead * 7):
        days.append(match)
        if len(days) >= weeks_ahead:
            break
    return days


def get_future_topic_days(
    topic: str,
    weeks_ahead: int = 4,
    today: date = None,
    plans: Optional[Sequence] = None,
) -> List[date]:
    """Like ``get_next_topic_days`` but strictly after today (the horizon shifts by a day)"""
    if today is None:
        today = utc_today()
    return get_next_topic_days(topic, weeks_ahead, today + timedelta(days=1), plans)
