"""
goaltrack/features/lifecycle/guard.py

Pure lifecycle rules: derived status and the edit/delete/update gates.

Nothing here touches storage; every function takes the goal and `now`
and returns a value. The ensure_* helpers raise the matching AppError so
services and routers share one message per rule.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from goaltrack.core.clock import Calendar, ensure_aware
from goaltrack.core.errors import (
    DeleteWindowClosedError,
    EditWindowClosedError,
    GoalCompletedError,
    GoalNotStartedError,
)
from goaltrack.models.goal import GoalBase, GoalStatus


@dataclass(frozen=True)
class LifecyclePolicy:
    edit_window: timedelta = timedelta(hours=5)
    delete_window: timedelta = timedelta(hours=24)
    calendar: Calendar = field(default_factory=Calendar)

    @classmethod
    def from_settings(cls, cfg) -> "LifecyclePolicy":
        return cls(
            edit_window=timedelta(hours=cfg.EDIT_WINDOW_HOURS),
            delete_window=timedelta(hours=cfg.DELETE_WINDOW_HOURS),
            calendar=Calendar.from_settings(cfg),
        )


DEFAULT_POLICY = LifecyclePolicy()


def derive_status(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> GoalStatus:
    """
    completed_at wins; a start date after today means pending; otherwise the
    stored status stands (pause is an owner action, never derived).
    """
    policy = policy or DEFAULT_POLICY
    if goal.completed_at is not None:
        return GoalStatus.COMPLETED
    if goal.start_date is not None and goal.start_date > policy.calendar.today(now):
        return GoalStatus.PENDING
    if goal.status == GoalStatus.PENDING:
        # Start day has arrived but the promotion job has not run yet.
        return GoalStatus.ACTIVE
    return goal.status


def edit_deadline(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> Optional[datetime]:
    """Last moment at which the goal may still be edited (None once completed)."""
    policy = policy or DEFAULT_POLICY
    status = derive_status(goal, now, policy)
    if status == GoalStatus.COMPLETED:
        return None
    if status == GoalStatus.PENDING:
        return policy.calendar.start_of_day(goal.start_date) - policy.edit_window
    return ensure_aware(goal.created_at) + policy.edit_window


def can_edit(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> bool:
    deadline = edit_deadline(goal, now, policy)
    return deadline is not None and ensure_aware(now) <= deadline


def edit_time_remaining(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> timedelta:
    deadline = edit_deadline(goal, now, policy)
    if deadline is None:
        return timedelta(0)
    return max(timedelta(0), deadline - ensure_aware(now))


def can_delete(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> bool:
    policy = policy or DEFAULT_POLICY
    if derive_status(goal, now, policy) == GoalStatus.COMPLETED:
        return False
    return ensure_aware(now) - ensure_aware(goal.created_at) <= policy.delete_window


def can_update_activities(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> bool:
    # Paused goals still accept completions; pausing only affects continuity.
    return derive_status(goal, now, policy) != GoalStatus.PENDING


def ensure_editable(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> None:
    if derive_status(goal, now, policy) == GoalStatus.COMPLETED:
        raise GoalCompletedError(f"Goal {goal.goal_id} is completed and can no longer be edited")
    if not can_edit(goal, now, policy):
        raise EditWindowClosedError(f"Edit window for goal {goal.goal_id} has closed")


def ensure_deletable(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> None:
    if derive_status(goal, now, policy) == GoalStatus.COMPLETED:
        raise DeleteWindowClosedError(f"Goal {goal.goal_id} is completed and cannot be deleted")
    if not can_delete(goal, now, policy):
        raise DeleteWindowClosedError(f"Delete window for goal {goal.goal_id} has closed")


def ensure_activities_updatable(goal: GoalBase, now: datetime, policy: Optional[LifecyclePolicy] = None) -> None:
    if not can_update_activities(goal, now, policy):
        raise GoalNotStartedError(f"Goal {goal.goal_id} starts on {goal.start_date.isoformat()}")
