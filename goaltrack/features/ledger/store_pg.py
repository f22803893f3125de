"""
goaltrack/features/ledger/store_pg.py

SQL-backed completion ledger.

The UNIQUE (activity_id, user_id, day) constraint decides concurrent
duplicates: the losing INSERT raises IntegrityError and reports "already there".
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import and_, delete, insert, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from goaltrack.core.database import activity_completions, session_scope
from goaltrack.features.ledger.store import CompletionStore
from goaltrack.models.activity import ActivityCompletion, CompletionKey


def _key_clause(key: CompletionKey):
    activity_id, user_id, day = key
    return and_(
        activity_completions.c.activity_id == activity_id,
        activity_completions.c.user_id == user_id,
        activity_completions.c.day == day,
    )


def _from_row(row) -> ActivityCompletion:
    return ActivityCompletion(
        activity_id=row.activity_id,
        goal_id=row.goal_id,
        user_id=row.user_id,
        day=row.day,
        completed_at=row.completed_at,
    )


class SqlCompletionStore(CompletionStore):
    def __init__(self, engine: Engine):
        self._engine = engine

    def insert(self, completion: ActivityCompletion) -> bool:
        try:
            with session_scope(self._engine) as session:
                session.execute(insert(activity_completions).values(**completion.model_dump()))
            return True
        except IntegrityError:
            # Duplicate key - UNIQUE constraint violation
            return False

    def get(self, key: CompletionKey) -> Optional[ActivityCompletion]:
        with session_scope(self._engine) as session:
            row = session.execute(select(activity_completions).where(_key_clause(key))).first()
            return _from_row(row) if row else None

    def delete(self, key: CompletionKey) -> bool:
        with session_scope(self._engine) as session:
            result = session.execute(delete(activity_completions).where(_key_clause(key)))
            return (result.rowcount or 0) > 0

    def list_for_day(self, goal_id: str, day: date, user_id: Optional[str] = None) -> List[ActivityCompletion]:
        query = select(activity_completions).where(
            and_(activity_completions.c.goal_id == goal_id, activity_completions.c.day == day)
        )
        if user_id is not None:
            query = query.where(activity_completions.c.user_id == user_id)
        with session_scope(self._engine) as session:
            rows = session.execute(query.order_by(activity_completions.c.id)).all()
            return [_from_row(r) for r in rows]

    def delete_for_goal(self, goal_id: str) -> int:
        with session_scope(self._engine) as session:
            result = session.execute(
                delete(activity_completions).where(activity_completions.c.goal_id == goal_id)
            )
            return result.rowcount or 0
