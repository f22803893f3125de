"""
goaltrack/features/streaks/store_pg.py

SQL-backed streak records. The version column turns every write into a
conditional UPDATE; zero affected rows means another writer got there first.
"""

from typing import List, Optional

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from goaltrack.core.database import session_scope, streak_records
from goaltrack.core.errors import ConcurrentModificationError
from goaltrack.features.streaks.store import StreakStore
from goaltrack.models.streak import StreakRecord, StreakType


def _user_key(user_id: Optional[str]) -> str:
    return user_id or ""


def _from_row(row) -> StreakRecord:
    return StreakRecord(
        goal_id=row.goal_id,
        user_id=row.user_id,
        streak_type=StreakType(row.streak_type),
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        total_completions=row.total_completions,
        last_activity_date=row.last_activity_date,
        freeze_uses_remaining=row.freeze_uses_remaining,
        version=row.version,
    )


def _values(record: StreakRecord) -> dict:
    return {
        'current_streak': record.current_streak,
        'longest_streak': record.longest_streak,
        'total_completions': record.total_completions,
        'last_activity_date': record.last_activity_date,
        'freeze_uses_remaining': record.freeze_uses_remaining,
    }


class SqlStreakStore(StreakStore):
    def __init__(self, engine: Engine):
        self._engine = engine

    def get(self, goal_id: str, user_id: Optional[str], streak_type: StreakType) -> Optional[StreakRecord]:
        with session_scope(self._engine) as session:
            row = session.execute(
                select(streak_records).where(
                    and_(
                        streak_records.c.goal_id == goal_id,
                        streak_records.c.user_key == _user_key(user_id),
                        streak_records.c.streak_type == streak_type.value,
                    )
                )
            ).first()
            return _from_row(row) if row else None

    def save(self, record: StreakRecord, expected_version: int) -> StreakRecord:
        new_version = expected_version + 1
        conflict = ConcurrentModificationError(
            f"Streak {record.streak_type.value} for goal {record.goal_id} changed concurrently "
            f"(expected v{expected_version})"
        )

        if expected_version == 0:
            try:
                with session_scope(self._engine) as session:
                    session.execute(
                        insert(streak_records).values(
                            goal_id=record.goal_id,
                            user_key=_user_key(record.user_id),
                            user_id=record.user_id,
                            streak_type=record.streak_type.value,
                            version=new_version,
                            **_values(record),
                        )
                    )
            except IntegrityError:
                raise conflict
            return record.copy(version=new_version)

        with session_scope(self._engine) as session:
            result = session.execute(
                update(streak_records)
                .where(
                    and_(
                        streak_records.c.goal_id == record.goal_id,
                        streak_records.c.user_key == _user_key(record.user_id),
                        streak_records.c.streak_type == record.streak_type.value,
                        streak_records.c.version == expected_version,
                    )
                )
                .values(version=new_version, **_values(record))
            )
            if not result.rowcount:
                raise conflict
        return record.copy(version=new_version)

    def list_for_goal(self, goal_id: str) -> List[StreakRecord]:
        with session_scope(self._engine) as session:
            rows = session.execute(
                select(streak_records).where(streak_records.c.goal_id == goal_id).order_by(streak_records.c.id)
            ).all()
            return [_from_row(r) for r in rows]

    def list_all(self) -> List[StreakRecord]:
        with session_scope(self._engine) as session:
            rows = session.execute(select(streak_records).order_by(streak_records.c.id)).all()
            return [_from_row(r) for r in rows]

    def delete_for_goal(self, goal_id: str) -> int:
        with session_scope(self._engine) as session:
            result = session.execute(delete(streak_records).where(streak_records.c.goal_id == goal_id))
            return result.rowcount or 0

    def discard(self, record: StreakRecord) -> bool:
        with session_scope(self._engine) as session:
            result = session.execute(
                delete(streak_records).where(
                    and_(
                        streak_records.c.goal_id == record.goal_id,
                        streak_records.c.user_key == _user_key(record.user_id),
                        streak_records.c.streak_type == record.streak_type.value,
                        streak_records.c.version == record.version,
                    )
                )
            )
            return (result.rowcount or 0) > 0
