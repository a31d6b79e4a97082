"""Logging new anchor problems and editing problem details."""

from datetime import timedelta
from typing import Dict, List, Optional, Sequence

from models import ANCHOR, KINDS, Problem
from services.algorithm import Difficulty
from services.errors import InvalidArgument
from services.store import ProblemStore
from services.topic_days import find_next_topic_day
from utils.datetime_utils import now_utc, to_civil_date
from utils.logging_config import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = {
    "problemNumber": "problem_number",
    "problemSlug": "problem_slug",
    "problemTitle": "problem_title",
    "topic": "topic",
    "difficulty": "difficulty",
    "notes": "notes",
}


def validate_difficulty(difficulty: Optional[str]) -> str:
    if difficulty is None or difficulty == "":
        return Difficulty.MEDIUM.value
    if difficulty not in [d.value for d in Difficulty]:
        raise InvalidArgument("Difficulty must be one of Easy, Medium, Hard")
    return difficulty


def _per_item(value, index: int) -> str:
    if isinstance(value, (list, tuple)):
        value = value[index] if index < len(value) else ""
    return str(value or "").strip()


def log_problems(
    problem_numbers: Sequence,
    topic: str,
    difficulty: str = None,
    notes: str = "",
    problem_slugs=None,
    problem_titles=None,
    now=None,
    store: ProblemStore = None,
    plans=None,
) -> Dict:
    """Create one anchor per new problem number, scheduled for the next topic day.

    Problem numbers that already have an anchor are reported as duplicates and
    their existing anchor is returned instead of a second one.
    """
    if not problem_numbers or not isinstance(problem_numbers, (list, tuple)):
        raise InvalidArgument("Problem numbers array is required")
    topic = (topic or "").strip()
    if not topic:
        raise InvalidArgument("Topic is required")
    difficulty = validate_difficulty(difficulty)

    store = store or ProblemStore()
    now = now or now_utc()
    today = to_civil_date(now)
    first_review = find_next_topic_day(topic, today + timedelta(days=1), plans)

    problems: List[Problem] = []
    duplicates: List[Dict] = []
    for index, raw_number in enumerate(problem_numbers):
        problem_number = str(raw_number).strip()
        if not problem_number:
            raise InvalidArgument("Problem numbers must not be empty")

        existing = store.find_one({"kind": ANCHOR, "problem_number": problem_number})
        if existing is not None:
            duplicates.append(
                {
                    "problemNumber": problem_number,
                    "solveCount": existing.solve_count,
                    "isDuplicate": True,
                    "reason": "already_added_today" if to_civil_date(existing.added_at) == today else "already_tracked",
                }
            )
            problems.append(existing)
            continue

        # Counts from older records of this number carry over
        previous = store.find_one({"problem_number": problem_number}, order_by=("-solve_count",))
        problems.append(
            store.create(
                problem_number=problem_number,
                problem_slug=_per_item(problem_slugs, index),
                problem_title=_per_item(problem_titles, index),
                topic=topic,
                difficulty=difficulty,
                notes=(notes or "").strip(),
                kind=ANCHOR,
                added_at=now,
                solve_count=previous.solve_count if previous is not None else 0,
                scheduled_repetition_date=first_review,
            )
        )

    logger.info("Logged %d problem(s) for %s, %d duplicate(s)", len(problems) - len(duplicates), topic, len(duplicates))
    return {"problems": problems, "duplicates": duplicates}


def update_problem_details(problem_id, payload: Dict, store: ProblemStore = None) -> Problem:
    store = store or ProblemStore()
    patch = {}
    for key, column in EDITABLE_FIELDS.items():
        if key in payload and payload[key] is not None:
            patch[column] = str(payload[key]).strip()
    if "difficulty" in patch:
        patch["difficulty"] = validate_difficulty(patch["difficulty"])
    if "topic" in patch and not patch["topic"]:
        raise InvalidArgument("Topic is required")
    if not patch:
        return store.get(problem_id)
    return store.update_by_id(problem_id, patch)


def list_problems(completed=None, topic=None, kind=None, store: ProblemStore = None) -> List[Problem]:
    store = store or ProblemStore()
    criteria = {}
    if completed is not None:
        criteria["is_completed"] = completed
    if topic:
        criteria["topic"] = topic
    if kind:
        if kind not in KINDS:
            raise InvalidArgument("Kind must be anchor or repetition")
        criteria["kind"] = kind
    return store.find_by_filter(criteria, order_by=("-created_at",))


def list_topics(store: ProblemStore = None) -> List[str]:
    store = store or ProblemStore()
    return sorted({p.topic for p in store.find_by_filter()})
