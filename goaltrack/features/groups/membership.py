"""
goaltrack/features/groups/membership.py

Activities and memberships of a goal: who may log what.
"""

import logging
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from goaltrack.core.clock import Clock, SystemClock
from goaltrack.core.errors import (
    ActivityNotFoundError,
    ConflictError,
    GoalCompletedError,
    GoalNotFoundError,
    NotFoundError,
    PermissionError,
    ValidationError,
)
from goaltrack.core.logging import log_event
from goaltrack.features.goals.store import GoalStore
from goaltrack.models.activity import GoalActivity, GoalMember, MemberStatus
from goaltrack.models.goal import GoalBase, GoalMode

logger = logging.getLogger("goaltrack")


def is_assignee(activity: GoalActivity, user_id: str, member: Optional[GoalMember]) -> bool:
    """Direct assignee, or an accepted member when the activity is assigned to all."""
    if activity.assigned_to_all:
        return member is not None and member.status == MemberStatus.ACCEPTED
    return activity.assigned_to == user_id


def can_user_update_activity(
    goal: GoalBase, activity: GoalActivity, user_id: str, member: Optional[GoalMember]
) -> bool:
    return goal.owner_id == user_id or is_assignee(activity, user_id, member)


class MembershipService:
    def __init__(self, goals: GoalStore, clock: Optional[Clock] = None):
        self.goals = goals
        self.clock = clock or SystemClock()

    def _goal(self, goal_id: str) -> GoalBase:
        goal = self.goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found")
        return goal

    def get_activity(self, activity_id: str) -> GoalActivity:
        activity = self.goals.get_activity(activity_id)
        if activity is None:
            raise ActivityNotFoundError(f"Activity {activity_id} not found")
        return activity

    def list_activities(self, goal_id: str) -> List[GoalActivity]:
        self._goal(goal_id)
        return self.goals.list_activities(goal_id)

    def list_members(self, goal_id: str) -> List[GoalMember]:
        self._goal(goal_id)
        return self.goals.list_members(goal_id)

    def add_activity(
        self,
        goal_id: str,
        user_id: str,
        *,
        title: str,
        assigned_to: Optional[str] = None,
        assigned_to_all: bool = False,
        activity_id: Optional[str] = None,
    ) -> GoalActivity:
        goal = self._goal(goal_id)
        if goal.owner_id != user_id:
            raise PermissionError("Only the goal owner can add activities")
        if goal.is_completed:
            raise GoalCompletedError(f"Goal {goal_id} is completed")

        existing = self.goals.list_activities(goal_id)
        if goal.max_activities is not None and len(existing) >= goal.max_activities:
            raise ValidationError(f"A {goal.type} goal holds at most {goal.max_activities} activity")

        if assigned_to is None and not assigned_to_all:
            if goal.is_shared:
                raise ValidationError("Shared goals need assigned_to or assigned_to_all")
            assigned_to = goal.owner_id
        if assigned_to is not None:
            member = self.goals.get_member(goal_id, assigned_to)
            if member is None or member.status == MemberStatus.DECLINED:
                raise ValidationError(f"{assigned_to} is not a member of goal {goal_id}")

        try:
            activity = GoalActivity(
                activity_id=activity_id or str(uuid4()),
                goal_id=goal_id,
                title=title,
                assigned_to=assigned_to,
                assigned_to_all=assigned_to_all,
            )
        except ValueError as exc:
            raise ValidationError(str(exc))

        self.goals.add_activity(activity)
        log_event("info", "activity.added", user_id=user_id, goal_id=goal_id,
                  extra={"activity_id": activity.activity_id, "assigned_to_all": assigned_to_all})
        return activity

    def invite_member(self, goal_id: str, user_id: str, invitee_id: str, now: Optional[datetime] = None) -> GoalMember:
        now = now or self.clock.now()
        goal = self._goal(goal_id)
        if goal.owner_id != user_id:
            raise PermissionError("Only the goal owner can invite members")
        if goal.mode != GoalMode.GROUP:
            raise ValidationError("Only group goals accept invitations")
        if goal.is_completed:
            raise GoalCompletedError(f"Goal {goal_id} is completed")

        current = self.goals.get_member(goal_id, invitee_id)
        if current is not None and current.status == MemberStatus.ACCEPTED:
            raise ConflictError(f"{invitee_id} is already a member of goal {goal_id}")

        member = GoalMember(goal_id=goal_id, user_id=invitee_id, status=MemberStatus.INVITED, invited_at=now)
        self.goals.save_member(member)
        log_event("info", "member.invited", user_id=user_id, goal_id=goal_id, extra={"invitee": invitee_id})
        return member

    def accept_invitation(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> GoalMember:
        return self._respond(goal_id, user_id, MemberStatus.ACCEPTED, now)

    def decline_invitation(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> GoalMember:
        return self._respond(goal_id, user_id, MemberStatus.DECLINED, now)

    def _respond(self, goal_id: str, user_id: str, status: MemberStatus, now: Optional[datetime]) -> GoalMember:
        now = now or self.clock.now()
        self._goal(goal_id)
        current = self.goals.get_member(goal_id, user_id)
        if current is None or current.status != MemberStatus.INVITED:
            raise NotFoundError(f"No open invitation to goal {goal_id} for {user_id}")

        member = current.model_copy(update={"status": status, "responded_at": now})
        self.goals.save_member(member)
        log_event("info", f"member.{status.value}", user_id=user_id, goal_id=goal_id)
        return member
