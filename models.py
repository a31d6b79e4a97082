"""
Database Models for the Interview Practice Repetition Scheduler
===============================================================

Two tables back the scheduler:

1. ``problems`` - both anchor records (the original logged solve) and
   repetition records (scheduled review instances pointing back at their
   anchor through ``original_ref``)
2. ``practice_plans`` - the weekly topic plan, one row per weekday

Key Design Principles:
- Single user system (no user authentication needed)
- Scheduling dates are UTC civil dates (``db.Date``); event timestamps are
  UTC datetimes normalised through ``ensure_utc`` on read
- Anchor-only scheduling fields live on the anchor row; repetition rows keep
  their own ``scheduled_repetition_date`` copied at creation time
"""

from db import db
from datetime import datetime, date
from typing import List, Dict, Optional

from services.algorithm import Difficulty, MasteryLevel
from services.errors import InvalidArgument
from utils.datetime_utils import (
    ensure_utc,
    now_utc,
    to_civil_date,
    format_relative_due,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)

ANCHOR = "anchor"
REPETITION = "repetition"
KINDS = (ANCHOR, REPETITION)

CURRENT_SCHEMA_VERSION = 2

# Default rotation used when no practice plan has been saved
DEFAULT_WEEKLY_PLAN = {
    0: ("Linked Lists", "Binary Search"),
    1: ("Arrays & Hashing", "Stacks"),
    2: ("Two Pointers", "Trees (Basics)"),
    3: ("Sliding Window", "Linked Lists"),
    4: ("Binary Search", "Arrays & Hashing"),
    5: ("Stacks", "Two Pointers"),
    6: ("Trees (Basics)", "Sliding Window"),
}


class Problem(db.Model):
    """
    A logged interview problem: either the anchor solve or a repetition of it
    """

    __tablename__ = "problems"
    __table_args__ = (
        db.Index("idx_problems_kind_topic_scheduled", "kind", "topic", "scheduled_repetition_date"),
        db.Index("idx_problems_original_ref_completed", "original_ref", "is_completed"),
        db.Index("idx_problems_number_solve_count", "problem_number", "solve_count"),
    )

    # Primary identification
    id = db.Column(db.Integer, primary_key=True)
    problem_number = db.Column(db.String(50), nullable=False, index=True)
    problem_slug = db.Column(db.String(200), nullable=False, default="")
    problem_title = db.Column(db.String(300), nullable=False, default="")
    topic = db.Column(db.String(200), nullable=False, index=True)
    difficulty = db.Column(db.String(10), nullable=False, default=Difficulty.MEDIUM.value)
    notes = db.Column(db.Text, nullable=False, default="")

    # Record kind and anchor back-reference
    kind = db.Column(db.String(20), nullable=False, index=True)
    original_ref = db.Column(
        db.Integer, db.ForeignKey("problems.id", ondelete="CASCADE"), nullable=True
    )

    # Completion state
    is_completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    repetition_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Shared across every record with the same problem_number
    solve_count = db.Column(db.Integer, nullable=False, default=0)

    # Scheduling (anchor only, except scheduled_repetition_date)
    added_at = db.Column(db.DateTime(timezone=True), nullable=False, default=now_utc)
    last_completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    next_repetition_date = db.Column(db.Date, nullable=True)
    scheduled_repetition_date = db.Column(db.Date, nullable=True, index=True)
    repetition_interval = db.Column(db.Integer, nullable=False, default=1)
    mastery_level = db.Column(db.String(20), nullable=False, default=MasteryLevel.NEW.value)
    streak_count = db.Column(db.Integer, nullable=False, default=0)
    failed_count = db.Column(db.Integer, nullable=False, default=0)

    # Legacy scheduling field, folded into scheduled_repetition_date at startup
    repetition_date = db.Column(db.Date, nullable=True)
    schema_version = db.Column(db.Integer, nullable=False, default=CURRENT_SCHEMA_VERSION)

    # Timestamps
    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    # Relationships
    repetitions = db.relationship(
        "Problem",
        backref=db.backref("original", remote_side=[id]),
        lazy="dynamic",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Problem {self.id} #{self.problem_number} {self.kind}>"

    @property
    def is_anchor(self) -> bool:
        return self.kind == ANCHOR

    @property
    def completion_timestamp(self) -> Optional[datetime]:
        """The completion timestamp that applies to this record's kind"""
        value = self.completed_at if self.is_anchor else self.repetition_completed_at
        return ensure_utc(value)

    @property
    def completion_date(self) -> Optional[date]:
        return to_civil_date(self.completion_timestamp)

    def to_dict(self, today: date = None) -> Dict:
        """Serialise for the JSON API"""
        data = {
            "id": self.id,
            "problemNumber": self.problem_number,
            "problemSlug": self.problem_slug,
            "problemTitle": self.problem_title,
            "topic": self.topic,
            "difficulty": self.difficulty,
            "notes": self.notes,
            "kind": self.kind,
            "originalRef": self.original_ref,
            "isCompleted": self.is_completed,
            "completedAt": _iso(self.completed_at),
            "repetitionCompletedAt": _iso(self.repetition_completed_at),
            "solveCount": self.solve_count,
            "addedAt": _iso(self.added_at),
            "scheduledRepetitionDate": _iso(self.scheduled_repetition_date),
            "createdAt": _iso(self.created_at),
        }
        if self.is_anchor:
            data.update(
                {
                    "lastCompletedAt": _iso(self.last_completed_at),
                    "nextRepetitionDate": _iso(self.next_repetition_date),
                    "repetitionInterval": self.repetition_interval,
                    "masteryLevel": self.mastery_level,
                    "streakCount": self.streak_count,
                    "failedCount": self.failed_count,
                }
            )
        if self.scheduled_repetition_date is not None:
            data["due"] = format_relative_due(self.scheduled_repetition_date, today)
        return data


class PracticePlan(db.Model):
    """One weekday of the weekly topic plan (0=Sunday .. 6=Saturday)"""

    __tablename__ = "practice_plans"

    id = db.Column(db.Integer, primary_key=True)
    day_of_week = db.Column(db.Integer, nullable=False, unique=True, index=True)
    anchor_topic = db.Column(db.String(200), nullable=False)
    repetition_topic = db.Column(db.String(200), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), default=now_utc)
    updated_at = db.Column(db.DateTime(timezone=True), default=now_utc, onupdate=now_utc)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "dayOfWeek": self.day_of_week,
            "anchorTopic": self.anchor_topic,
            "repetitionTopic": self.repetition_topic,
        }


# ============================================================================
# DATABASE HELPER FUNCTIONS
# ============================================================================


def _iso(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    return value.isoformat()


def validate_day_of_week(day_of_week) -> int:
    try:
        day = int(day_of_week)
    except (TypeError, ValueError):
        raise InvalidArgument("Invalid day of week. Must be 0-6 (0=Sunday, 6=Saturday)")
    if day < 0 or day > 6:
        raise InvalidArgument("Invalid day of week. Must be 0-6 (0=Sunday, 6=Saturday)")
    return day


def get_weekly_plan() -> List[PracticePlan]:
    """All plan entries ordered by weekday"""
    return PracticePlan.query.order_by(PracticePlan.day_of_week.asc()).all()


def get_plan_for_day(day_of_week) -> Optional[PracticePlan]:
    day = validate_day_of_week(day_of_week)
    return PracticePlan.query.filter_by(day_of_week=day).first()


def get_topics_for_day(day_of_week) -> Dict[str, str]:
    """Anchor/repetition topics for a weekday, falling back to the default rotation"""
    plan = get_plan_for_day(day_of_week)
    if plan is not None:
        return {"anchor": plan.anchor_topic, "repetition": plan.repetition_topic}
    anchor, repetition = DEFAULT_WEEKLY_PLAN[int(day_of_week)]
    return {"anchor": anchor, "repetition": repetition}


def upsert_plan_entry(day_of_week, anchor_topic: str, repetition_topic: str) -> PracticePlan:
    """Create or update the plan entry for a weekday"""
    day = validate_day_of_week(day_of_week)
    anchor_topic = (anchor_topic or "").strip()
    repetition_topic = (repetition_topic or "").strip()
    if not anchor_topic:
        raise InvalidArgument("Anchor topic is required")
    if not repetition_topic:
        raise InvalidArgument("Repetition topic is required")

    plan = PracticePlan.query.filter_by(day_of_week=day).first()
    if plan is None:
        plan = PracticePlan(day_of_week=day)
        db.session.add(plan)
    plan.anchor_topic = anchor_topic
    plan.repetition_topic = repetition_topic
    db.session.commit()
    return plan


def initialize_default_plan() -> List[PracticePlan]:
    """Seed the default rotation if no plan exists; returns the plan either way"""
    if PracticePlan.query.count() > 0:
        return get_weekly_plan()

    for day, (anchor_topic, repetition_topic) in DEFAULT_WEEKLY_PLAN.items():
        db.session.add(
            PracticePlan(
                day_of_week=day,
                anchor_topic=anchor_topic,
                repetition_topic=repetition_topic,
            )
        )
    db.session.commit()
    logger.info("Initialized default practice plan")
    return get_weekly_plan()


def migrate_legacy_records() -> int:
    """Bring every record up to the current schema version; returns rows migrated"""
    legacy = Problem.query.filter(Problem.schema_version < CURRENT_SCHEMA_VERSION).all()

    for problem in legacy:
        if problem.scheduled_repetition_date is None and problem.repetition_date is not None:
            problem.scheduled_repetition_date = problem.repetition_date
        if (
            problem.kind == REPETITION
            and problem.repetition_completed_at is None
            and problem.completed_at is not None
        ):
            problem.repetition_completed_at = problem.completed_at
            problem.completed_at = None
        if problem.kind == ANCHOR and problem.mastery_level not in [m.value for m in MasteryLevel]:
            problem.mastery_level = MasteryLevel.NEW.value
        problem.schema_version = CURRENT_SCHEMA_VERSION

    if legacy:
        db.session.commit()
        logger.info("Migrated %d legacy problem records", len(legacy))
    return len(legacy)


def initialize_database(seed_default_plan: bool = False):
    """Create tables, migrate legacy rows and optionally seed the weekly plan"""
    db.create_all()
    migrate_legacy_records()
    if seed_default_plan:
        initialize_default_plan()
