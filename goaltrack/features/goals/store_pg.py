"""
goaltrack/features/goals/store_pg.py

SQL-backed goal storage. Maintains identical interface to InMemoryGoalStore.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy import and_, delete, insert, select, update
from sqlalchemy.engine import Engine

from goaltrack.core.database import goal_activities, goal_members, goals, session_scope
from goaltrack.features.goals.store import GoalStore
from goaltrack.models.activity import GoalActivity, GoalMember, MemberStatus
from goaltrack.models.goal import GoalBase, GoalStatus, parse_goal


def _goal_row(goal: GoalBase) -> dict:
    return {
        'goal_id': goal.goal_id,
        'owner_id': goal.owner_id,
        'type': goal.type,
        'title': goal.title,
        'mode': goal.mode.value,
        'status': goal.status.value,
        'start_date': goal.start_date,
        'created_at': goal.created_at,
        'completed_at': goal.completed_at,
        'paused_at': goal.paused_at,
        'partner_id': goal.partner_id,
        'frequency': getattr(goal, 'frequency', None),
    }


def _goal_from_row(row) -> GoalBase:
    data = {
        'goal_id': row.goal_id,
        'owner_id': row.owner_id,
        'type': row.type,
        'title': row.title,
        'mode': row.mode,
        'status': row.status,
        'start_date': row.start_date,
        'created_at': row.created_at,
        'completed_at': row.completed_at,
        'paused_at': row.paused_at,
        'partner_id': row.partner_id,
    }
    if row.frequency:
        data['frequency'] = row.frequency
    return parse_goal(data)


class SqlGoalStore(GoalStore):
    def __init__(self, engine: Engine):
        self._engine = engine

    def get(self, goal_id: str) -> Optional[GoalBase]:
        with session_scope(self._engine) as session:
            row = session.execute(select(goals).where(goals.c.goal_id == goal_id)).first()
            return _goal_from_row(row) if row else None

    def add(self, goal: GoalBase) -> None:
        with session_scope(self._engine) as session:
            session.execute(insert(goals).values(**_goal_row(goal)))

    def save(self, goal: GoalBase) -> None:
        row = _goal_row(goal)
        row.pop('goal_id')
        with session_scope(self._engine) as session:
            session.execute(update(goals).where(goals.c.goal_id == goal.goal_id).values(**row))

    def delete(self, goal_id: str) -> bool:
        with session_scope(self._engine) as session:
            session.execute(delete(goal_activities).where(goal_activities.c.goal_id == goal_id))
            session.execute(delete(goal_members).where(goal_members.c.goal_id == goal_id))
            result = session.execute(delete(goals).where(goals.c.goal_id == goal_id))
            return (result.rowcount or 0) > 0

    def list_pending_due(self, today: date) -> List[GoalBase]:
        with session_scope(self._engine) as session:
            rows = session.execute(
                select(goals).where(
                    and_(
                        goals.c.status == GoalStatus.PENDING.value,
                        goals.c.start_date.is_not(None),
                        goals.c.start_date <= today,
                    )
                )
            ).all()
            return [_goal_from_row(r) for r in rows]

    def list_by_mode(self, mode) -> List[GoalBase]:
        with session_scope(self._engine) as session:
            rows = session.execute(select(goals).where(goals.c.mode == mode.value)).all()
            return [_goal_from_row(r) for r in rows]

    def add_activity(self, activity: GoalActivity) -> None:
        with session_scope(self._engine) as session:
            session.execute(insert(goal_activities).values(**activity.model_dump()))

    def get_activity(self, activity_id: str) -> Optional[GoalActivity]:
        with session_scope(self._engine) as session:
            row = session.execute(
                select(goal_activities).where(goal_activities.c.activity_id == activity_id)
            ).first()
            return GoalActivity(**row._asdict()) if row else None

    def list_activities(self, goal_id: str) -> List[GoalActivity]:
        with session_scope(self._engine) as session:
            rows = session.execute(
                select(goal_activities)
                .where(goal_activities.c.goal_id == goal_id)
                .order_by(goal_activities.c.activity_id)
            ).all()
            return [GoalActivity(**r._asdict()) for r in rows]

    def save_member(self, member: GoalMember) -> None:
        values = {
            'status': member.status.value,
            'invited_at': member.invited_at,
            'responded_at': member.responded_at,
        }
        with session_scope(self._engine) as session:
            result = session.execute(
                update(goal_members)
                .where(and_(goal_members.c.goal_id == member.goal_id, goal_members.c.user_id == member.user_id))
                .values(**values)
            )
            if not result.rowcount:
                session.execute(
                    insert(goal_members).values(goal_id=member.goal_id, user_id=member.user_id, **values)
                )

    def get_member(self, goal_id: str, user_id: str) -> Optional[GoalMember]:
        with session_scope(self._engine) as session:
            row = session.execute(
                select(goal_members).where(
                    and_(goal_members.c.goal_id == goal_id, goal_members.c.user_id == user_id)
                )
            ).first()
            return _member_from_row(row) if row else None

    def list_members(self, goal_id: str, status: Optional[MemberStatus] = None) -> List[GoalMember]:
        query = select(goal_members).where(goal_members.c.goal_id == goal_id)
        if status is not None:
            query = query.where(goal_members.c.status == status.value)
        with session_scope(self._engine) as session:
            rows = session.execute(query.order_by(goal_members.c.id)).all()
            return [_member_from_row(r) for r in rows]


def _member_from_row(row) -> GoalMember:
    return GoalMember(
        goal_id=row.goal_id,
        user_id=row.user_id,
        status=MemberStatus(row.status),
        invited_at=row.invited_at,
        responded_at=row.responded_at,
    )
