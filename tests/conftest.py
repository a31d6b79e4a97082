from datetime import date, datetime, timedelta

import pytest
import pytz

from app import create_app
from config import TestConfig
from db import db
from models import ANCHOR, REPETITION, upsert_plan_entry
from services.store import ProblemStore

TODAY = date(2025, 1, 10)  # a Friday
NOW = datetime(2025, 1, 10, 15, 30, tzinfo=pytz.utc)

# Each repetition topic appears once a week; Friday reviews Arrays & Hashing
WEEKLY_PLAN = {
    0: ("Linked Lists", "Binary Search"),
    1: ("Arrays & Hashing", "Stacks"),
    2: ("Two Pointers", "Trees (Basics)"),
    3: ("Sliding Window", "Linked Lists"),
    4: ("Binary Search", "Two Pointers"),
    5: ("Stacks", "Arrays & Hashing"),
    6: ("Trees (Basics)", "Sliding Window"),
}


@pytest.fixture
def app():
    """Flask app backed by a fresh in-memory database."""
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return ProblemStore()


@pytest.fixture
def weekly_plan(app):
    return [upsert_plan_entry(day, anchor, repetition) for day, (anchor, repetition) in WEEKLY_PLAN.items()]


@pytest.fixture
def make_anchor(store):
    counter = {"n": 0}

    def _make(number=None, topic="Arrays & Hashing", difficulty="Medium", scheduled=None, **fields):
        counter["n"] += 1
        fields.setdefault("added_at", NOW - timedelta(days=30))
        return store.create(
            problem_number=number or str(counter["n"]),
            topic=topic,
            difficulty=difficulty,
            kind=ANCHOR,
            scheduled_repetition_date=scheduled,
            **fields,
        )

    return _make


@pytest.fixture
def make_repetition(store):
    def _make(anchor, scheduled=None, **fields):
        fields.setdefault("solve_count", anchor.solve_count)
        return store.create(
            problem_number=anchor.problem_number,
            topic=anchor.topic,
            difficulty=anchor.difficulty,
            kind=REPETITION,
            original_ref=anchor.id,
            added_at=anchor.added_at,
            scheduled_repetition_date=scheduled,
            **fields,
        )

    return _make
