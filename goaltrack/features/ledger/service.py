"""
goaltrack/features/ledger/service.py

ActivityLedger: at most one completion per (activity, user, calendar day).

record() is the single write path for completions:
  guard -> assignment check -> insert (unique key decides races)
  -> streak update -> on streak failure the insert is removed again.
A duplicate is reported as AlreadyCompleted, which is a success.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Tuple, Union

from goaltrack.core.clock import Calendar, Clock, SystemClock
from goaltrack.core.errors import ActivityNotFoundError, GoalNotFoundError, NotAssignedError, PermissionError
from goaltrack.core.logging import log_event
from goaltrack.features.goals.store import GoalStore
from goaltrack.features.groups.membership import can_user_update_activity, is_assignee
from goaltrack.features.ledger.store import CompletionStore
from goaltrack.features.lifecycle import guard
from goaltrack.features.lifecycle.guard import LifecyclePolicy
from goaltrack.features.streaks.engine import StreakEngine
from goaltrack.models.activity import ActivityCompletion, GoalActivity
from goaltrack.models.goal import GoalBase
from goaltrack.models.streak import StreakOutcome


@dataclass(frozen=True)
class AlreadyCompleted:
    completion: ActivityCompletion
    status: Literal["already_completed"] = "already_completed"

    def to_dict(self) -> dict:
        return {"status": self.status, "completion": self.completion.model_dump(mode="json")}


@dataclass(frozen=True)
class Recorded:
    completion: ActivityCompletion
    outcome: StreakOutcome
    status: Literal["recorded"] = "recorded"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "completion": self.completion.model_dump(mode="json"),
            "outcome": self.outcome.to_dict(),
        }


CompletionResult = Union[AlreadyCompleted, Recorded]


class ActivityLedger:
    def __init__(
        self,
        goals: GoalStore,
        completions: CompletionStore,
        engine: StreakEngine,
        policy: Optional[LifecyclePolicy] = None,
        clock: Optional[Clock] = None,
    ):
        self.goals = goals
        self.completions = completions
        self.engine = engine
        self.policy = policy or LifecyclePolicy()
        self.clock = clock or SystemClock()

    @property
    def calendar(self) -> Calendar:
        return self.policy.calendar

    def _load(self, activity_id: str, goal_id: Optional[str] = None) -> Tuple[GoalBase, GoalActivity]:
        activity = self.goals.get_activity(activity_id)
        if activity is None or (goal_id is not None and activity.goal_id != goal_id):
            raise ActivityNotFoundError(f"Activity {activity_id} not found")
        goal = self.goals.get(activity.goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {activity.goal_id} not found")
        return goal, activity

    def record(
        self,
        user_id: str,
        activity_id: str,
        goal_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CompletionResult:
        now = now or self.clock.now()
        goal, activity = self._load(activity_id, goal_id)
        guard.ensure_activities_updatable(goal, now, self.policy)
        member = self.goals.get_member(goal.goal_id, user_id)
        if not is_assignee(activity, user_id, member):
            raise NotAssignedError(f"Activity {activity_id} is not assigned to {user_id}")

        completion = ActivityCompletion(
            activity_id=activity_id,
            goal_id=goal.goal_id,
            user_id=user_id,
            day=self.calendar.day_of(now),
            completed_at=now,
        )
        if not self.completions.insert(completion):
            existing = self.completions.get(completion.key) or completion
            log_event("info", "completion.duplicate", user_id=user_id, goal_id=goal.goal_id,
                      extra={"activity_id": activity_id, "day": completion.day.isoformat()})
            return AlreadyCompleted(completion=existing)

        try:
            outcome = self.engine.on_completion(goal, user_id, completion.day, now)
        except Exception:
            # Keep ledger and streaks consistent: a completion without its streak effect is undone.
            self.completions.delete(completion.key)
            log_event("error", "completion.rolled_back", user_id=user_id, goal_id=goal.goal_id,
                      error_code="streak_update_failed", extra={"activity_id": activity_id})
            raise

        log_event("info", "completion.recorded", user_id=user_id, goal_id=goal.goal_id,
                  extra={"activity_id": activity_id, "day": completion.day.isoformat()})
        return Recorded(completion=completion, outcome=outcome)

    def uncomplete(
        self,
        user_id: str,
        activity_id: str,
        target_user_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Remove today's completion. Earlier days are immutable. The owner may
        clear another member's row by naming target_user_id.
        """
        now = now or self.clock.now()
        goal, activity = self._load(activity_id)
        member = self.goals.get_member(goal.goal_id, user_id)
        if not can_user_update_activity(goal, activity, user_id, member):
            raise PermissionError(f"{user_id} cannot update activity {activity_id}")
        target = target_user_id or user_id
        if target != user_id and goal.owner_id != user_id:
            raise PermissionError("Only the goal owner can clear another member's completion")

        key = (activity_id, target, self.calendar.day_of(now))
        removed = self.completions.delete(key)
        log_event("info", "completion.removed" if removed else "completion.remove_noop",
                  user_id=target, goal_id=goal.goal_id, extra={"activity_id": activity_id, "by": user_id})
        return removed
