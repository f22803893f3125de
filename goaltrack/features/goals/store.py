"""
goaltrack/features/goals/store.py

Goal, activity and membership storage.
In-memory implementation; store_pg.py holds the SQL one with the same interface.
"""

import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional, Tuple

from goaltrack.models.activity import GoalActivity, GoalMember, MemberStatus
from goaltrack.models.goal import GoalBase, GoalStatus


class GoalStore(ABC):
    """Repository for goals and the rows that hang off them."""

    @abstractmethod
    def get(self, goal_id: str) -> Optional[GoalBase]: ...

    @abstractmethod
    def add(self, goal: GoalBase) -> None: ...

    @abstractmethod
    def save(self, goal: GoalBase) -> None: ...

    @abstractmethod
    def delete(self, goal_id: str) -> bool: ...

    @abstractmethod
    def list_pending_due(self, today: date) -> List[GoalBase]:
        """Pending goals whose start date is on or before today."""

    @abstractmethod
    def list_by_mode(self, mode) -> List[GoalBase]: ...

    @abstractmethod
    def add_activity(self, activity: GoalActivity) -> None: ...

    @abstractmethod
    def get_activity(self, activity_id: str) -> Optional[GoalActivity]: ...

    @abstractmethod
    def list_activities(self, goal_id: str) -> List[GoalActivity]: ...

    @abstractmethod
    def save_member(self, member: GoalMember) -> None: ...

    @abstractmethod
    def get_member(self, goal_id: str, user_id: str) -> Optional[GoalMember]: ...

    @abstractmethod
    def list_members(self, goal_id: str, status: Optional[MemberStatus] = None) -> List[GoalMember]: ...


class InMemoryGoalStore(GoalStore):
    def __init__(self):
        self._goals: Dict[str, GoalBase] = {}
        self._activities: Dict[str, GoalActivity] = {}
        self._members: Dict[Tuple[str, str], GoalMember] = {}
        self._lock = threading.RLock()

    def get(self, goal_id: str) -> Optional[GoalBase]:
        return self._goals.get(goal_id)

    def add(self, goal: GoalBase) -> None:
        with self._lock:
            if goal.goal_id in self._goals:
                raise ValueError(f"Goal {goal.goal_id} already exists")
            self._goals[goal.goal_id] = goal

    def save(self, goal: GoalBase) -> None:
        with self._lock:
            self._goals[goal.goal_id] = goal

    def delete(self, goal_id: str) -> bool:
        with self._lock:
            removed = self._goals.pop(goal_id, None)
            for activity_id in [a for a, act in self._activities.items() if act.goal_id == goal_id]:
                del self._activities[activity_id]
            for key in [k for k in self._members if k[0] == goal_id]:
                del self._members[key]
            return removed is not None

    def list_pending_due(self, today: date) -> List[GoalBase]:
        return [
            g for g in self._goals.values()
            if g.status == GoalStatus.PENDING and g.start_date is not None and g.start_date <= today
        ]

    def list_by_mode(self, mode) -> List[GoalBase]:
        return [g for g in self._goals.values() if g.mode == mode]

    def add_activity(self, activity: GoalActivity) -> None:
        with self._lock:
            self._activities[activity.activity_id] = activity

    def get_activity(self, activity_id: str) -> Optional[GoalActivity]:
        return self._activities.get(activity_id)

    def list_activities(self, goal_id: str) -> List[GoalActivity]:
        return [a for a in self._activities.values() if a.goal_id == goal_id]

    def save_member(self, member: GoalMember) -> None:
        with self._lock:
            self._members[(member.goal_id, member.user_id)] = member

    def get_member(self, goal_id: str, user_id: str) -> Optional[GoalMember]:
        return self._members.get((goal_id, user_id))

    def list_members(self, goal_id: str, status: Optional[MemberStatus] = None) -> List[GoalMember]:
        return [
            m for (gid, _), m in self._members.items()
            if gid == goal_id and (status is None or m.status == status)
        ]
