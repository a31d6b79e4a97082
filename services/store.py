"""
Problem Store
=============

Thin query/write layer over the ``problems`` table. Criteria are plain dicts
keyed by column name with an optional ``__op`` suffix::

    {"kind": "anchor", "topic": "Stacks", "scheduled_repetition_date__lte": today}

Supported operators: eq (default), ne, lt, lte, gt, gte, in, notin, isnull.
Database failures roll the session back and surface as ``StoreUnavailable``.
"""

from functools import wraps
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from db import db
from models import Problem
from services.cache import stats_cache
from services.errors import InvalidArgument, NotFound, StoreUnavailable
from utils.logging_config import get_logger

logger = get_logger(__name__)

_OPERATORS = {
    "eq": lambda column, value: column.is_(None) if value is None else column == value,
    "ne": lambda column, value: column.isnot(None) if value is None else column != value,
    "lt": lambda column, value: column < value,
    "lte": lambda column, value: column <= value,
    "gt": lambda column, value: column > value,
    "gte": lambda column, value: column >= value,
    "in": lambda column, value: column.in_(list(value)),
    "notin": lambda column, value: column.notin_(list(value)),
    "isnull": lambda column, value: column.is_(None) if value else column.isnot(None),
}


def _store_call(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Problem store failure in %s: %s", func.__name__, exc)
            raise StoreUnavailable(f"Problem store unavailable: {exc.__class__.__name__}") from exc

    return wrapper


class ProblemStore:
    """Problem persistence used by the scheduler"""

    def __init__(self, session=None, cache=stats_cache):
        self._session = session
        self.cache = cache

    @property
    def session(self):
        return self._session or db.session

    # =========================================================================
    # QUERY BUILDING
    # =========================================================================

    def _build_query(self, criteria: Optional[Dict[str, Any]] = None, order_by: Iterable[str] = ()):
        query = self.session.query(Problem)
        for key, value in (criteria or {}).items():
            field, _, op = key.partition("__")
            op = op or "eq"
            column = getattr(Problem, field, None)
            if column is None or not hasattr(column, "property"):
                raise InvalidArgument(f"Unknown problem field: {field}")
            if op not in _OPERATORS:
                raise InvalidArgument(f"Unknown filter operator: {op}")
            # Empty membership lists would otherwise render as always-false SQL
            if op == "notin" and not value:
                continue
            query = query.filter(_OPERATORS[op](column, value))

        for key in order_by or ():
            descending = key.startswith("-")
            column = getattr(Problem, key.lstrip("-"), None)
            if column is None:
                raise InvalidArgument(f"Unknown sort field: {key}")
            query = query.order_by(column.desc() if descending else column.asc())
        return query.order_by(Problem.id.asc())

    # =========================================================================
    # READS
    # =========================================================================

    @_store_call
    def find_by_filter(self, criteria: Optional[Dict[str, Any]] = None, order_by: Iterable[str] = ()) -> List[Problem]:
        return self._build_query(criteria, order_by).all()

    @_store_call
    def find_one(self, criteria: Optional[Dict[str, Any]] = None, order_by: Iterable[str] = ()) -> Optional[Problem]:
        return self._build_query(criteria, order_by).first()

    @_store_call
    def count_by_filter(self, criteria: Optional[Dict[str, Any]] = None) -> int:
        return self._build_query(criteria).count()

    @_store_call
    def get(self, problem_id) -> Problem:
        problem = self.session.get(Problem, problem_id)
        if problem is None:
            raise NotFound("Problem not found")
        return problem

    # =========================================================================
    # WRITES
    # =========================================================================

    @_store_call
    def create(self, **fields) -> Problem:
        problem = Problem(**fields)
        self.session.add(problem)
        self.session.commit()
        self.cache.invalidate()
        return problem

    @_store_call
    def update_by_id(self, problem_id, patch: Dict[str, Any]) -> Problem:
        problem = self.get(problem_id)
        for key, value in patch.items():
            if not hasattr(Problem, key):
                raise InvalidArgument(f"Unknown problem field: {key}")
            setattr(problem, key, value)
        self.session.commit()
        self.cache.invalidate()
        return problem

    @_store_call
    def update_many(self, criteria: Dict[str, Any], patch: Dict[str, Any]) -> int:
        problems = self._build_query(criteria).all()
        for problem in problems:
            for key, value in patch.items():
                setattr(problem, key, value)
        self.session.commit()
        self.cache.invalidate()
        return len(problems)

    @_store_call
    def delete_by_id(self, problem_id) -> Problem:
        problem = self.get(problem_id)
        # ORM delete so the repetition cascade applies
        self.session.delete(problem)
        self.session.commit()
        self.cache.invalidate()
        return problem

    @_store_call
    def delete_many(self, criteria: Dict[str, Any]) -> int:
        problems = self._build_query(criteria).all()
        for problem in problems:
            self.session.delete(problem)
        self.session.commit()
        self.cache.invalidate()
        return len(problems)
