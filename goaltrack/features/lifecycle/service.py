"""
goaltrack/features/lifecycle/service.py

Goal lifecycle operations: create, edit, delete, pause/resume, complete,
and the pending -> active promotion used by the daily job.

All status writes go through _transition so every change emits exactly one
GoalStatusChanged and one structured log line.
"""

import calendar as _calendar
import logging
from datetime import date, datetime, timedelta
from typing import List, Optional
from uuid import uuid4

from goaltrack.core.clock import Clock, SystemClock
from goaltrack.core.errors import (
    GoalCompletedError,
    GoalNotFoundError,
    GoalNotStartedError,
    PermissionError,
    ValidationError,
)
from goaltrack.core.logging import log_event
from goaltrack.features.events.emitter import EventEmitter, GoalStatusChanged
from goaltrack.features.goals.store import GoalStore
from goaltrack.features.ledger.store import CompletionStore
from goaltrack.features.lifecycle import guard
from goaltrack.features.lifecycle.guard import LifecyclePolicy
from goaltrack.features.streaks.engine import StreakEngine
from goaltrack.features.streaks.store import StreakStore
from goaltrack.models.activity import GoalMember, MemberStatus
from goaltrack.models.goal import GoalBase, GoalMode, GoalStatus, GoalType, parse_goal

logger = logging.getLogger("goaltrack")


def add_months(day: date, months: int) -> date:
    """Calendar-month addition, clamped to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = _calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def format_remaining(remaining: timedelta) -> Optional[str]:
    """'3h 20m' style label, None once the window has closed."""
    total_minutes = int(remaining.total_seconds() // 60)
    if total_minutes <= 0:
        return None
    return f"{total_minutes // 60}h {total_minutes % 60}m"


class LifecycleService:
    def __init__(
        self,
        goals: GoalStore,
        completions: CompletionStore,
        streaks: StreakStore,
        emitter: EventEmitter,
        policy: Optional[LifecyclePolicy] = None,
        clock: Optional[Clock] = None,
        max_start_months: int = 2,
        streak_engine: Optional[StreakEngine] = None,
    ):
        self.goals = goals
        self.completions = completions
        self.streaks = streaks
        self.emitter = emitter
        self.policy = policy or LifecyclePolicy()
        self.clock = clock or SystemClock()
        self.max_start_months = max_start_months
        self.streak_engine = streak_engine

    # Queries ----------------------------------------------------------
    def get_goal(self, goal_id: str) -> GoalBase:
        goal = self.goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found")
        return goal

    def derive_status(self, goal: GoalBase, now: Optional[datetime] = None) -> GoalStatus:
        return guard.derive_status(goal, now or self.clock.now(), self.policy)

    def edit_time_remaining(self, goal: GoalBase, now: Optional[datetime] = None) -> timedelta:
        return guard.edit_time_remaining(goal, now or self.clock.now(), self.policy)

    def describe(self, goal: GoalBase, now: Optional[datetime] = None) -> dict:
        """Goal payload with the derived status and lifecycle gates filled in."""
        now = now or self.clock.now()
        remaining = guard.edit_time_remaining(goal, now, self.policy)
        data = goal.model_dump(mode="json")
        data.update(
            {
                "status": guard.derive_status(goal, now, self.policy).value,
                "can_edit": guard.can_edit(goal, now, self.policy),
                "can_delete": guard.can_delete(goal, now, self.policy),
                "can_update_activities": guard.can_update_activities(goal, now, self.policy),
                "edit_time_remaining_seconds": int(remaining.total_seconds()),
                "edit_time_remaining": format_remaining(remaining),
            }
        )
        return data

    def validate_start_date(self, start_date: Optional[date], now: datetime) -> None:
        if start_date is None:
            return
        latest = add_months(self.policy.calendar.today(now), self.max_start_months)
        if start_date > latest:
            raise ValidationError(
                f"Start date cannot be more than {self.max_start_months} months in the future"
            )

    # Commands ---------------------------------------------------------
    def create_goal(
        self,
        *,
        owner_id: str,
        title: str,
        goal_type: GoalType = GoalType.SINGLE_ACTIVITY,
        mode: GoalMode = GoalMode.INDIVIDUAL,
        start_date: Optional[date] = None,
        partner_id: Optional[str] = None,
        frequency: Optional[str] = None,
        goal_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> GoalBase:
        now = now or self.clock.now()
        self.validate_start_date(start_date, now)

        pending = start_date is not None and start_date > self.policy.calendar.today(now)
        data = {
            "goal_id": goal_id or str(uuid4()),
            "type": GoalType(goal_type).value,
            "owner_id": owner_id,
            "title": title,
            "mode": mode,
            "status": GoalStatus.PENDING if pending else GoalStatus.ACTIVE,
            "start_date": start_date,
            "created_at": now,
            "partner_id": partner_id,
        }
        if frequency is not None:
            data["frequency"] = frequency
        try:
            goal = parse_goal(data)
        except ValueError as exc:
            raise ValidationError(str(exc))

        self.goals.add(goal)
        self.goals.save_member(
            GoalMember(goal_id=goal.goal_id, user_id=owner_id, status=MemberStatus.ACCEPTED, invited_at=now, responded_at=now)
        )
        if goal.mode == GoalMode.PARTNER:
            # Partner relationships are agreed outside the core; the pair is seeded as accepted.
            self.goals.save_member(
                GoalMember(goal_id=goal.goal_id, user_id=partner_id, status=MemberStatus.ACCEPTED, invited_at=now, responded_at=now)
            )

        log_event("info", "goal.created", user_id=owner_id, goal_id=goal.goal_id,
                  extra={"type": goal.type, "mode": goal.mode.value, "status": goal.status.value})
        self.emitter.emit(
            GoalStatusChanged(goal_id=goal.goal_id, occurred_at=now, from_status=None, to_status=goal.status)
        )
        return goal

    def edit_goal(
        self,
        goal_id: str,
        user_id: str,
        *,
        title: Optional[str] = None,
        start_date: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> GoalBase:
        now = now or self.clock.now()
        goal = self.get_goal(goal_id)
        self._ensure_owner(goal, user_id)
        guard.ensure_editable(goal, now, self.policy)

        changes = {}
        if title is not None:
            changes["title"] = title
        if start_date is not None and start_date != goal.start_date:
            self.validate_start_date(start_date, now)
            changes["start_date"] = start_date
        if not changes:
            return goal

        try:
            updated = parse_goal({**goal.model_dump(), **changes})
        except ValueError as exc:
            raise ValidationError(str(exc))

        # Moving the start date may push the goal in or out of pending.
        target = updated.status
        if target in (GoalStatus.PENDING, GoalStatus.ACTIVE):
            future = updated.start_date is not None and updated.start_date > self.policy.calendar.today(now)
            target = GoalStatus.PENDING if future else GoalStatus.ACTIVE
        if target != goal.status:
            updated = self._transition(updated, target, now)
        else:
            self.goals.save(updated)

        log_event("info", "goal.edited", user_id=user_id, goal_id=goal_id, extra={"fields": sorted(changes)})
        return updated

    def delete_goal(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> None:
        now = now or self.clock.now()
        goal = self.get_goal(goal_id)
        self._ensure_owner(goal, user_id)
        guard.ensure_deletable(goal, now, self.policy)

        removed_completions = self.completions.delete_for_goal(goal_id)
        removed_streaks = self.streaks.delete_for_goal(goal_id)
        self.goals.delete(goal_id)
        log_event(
            "info",
            "goal.deleted",
            user_id=user_id,
            goal_id=goal_id,
            extra={"completions": removed_completions, "streaks": removed_streaks},
        )

    def pause_goal(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> GoalBase:
        now = now or self.clock.now()
        goal = self.get_goal(goal_id)
        self._ensure_owner(goal, user_id)
        status = guard.derive_status(goal, now, self.policy)
        self._ensure_started(goal, status)
        if status == GoalStatus.PAUSED:
            return goal
        return self._transition(goal, GoalStatus.PAUSED, now)

    def resume_goal(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> GoalBase:
        now = now or self.clock.now()
        goal = self.get_goal(goal_id)
        self._ensure_owner(goal, user_id)
        status = guard.derive_status(goal, now, self.policy)
        self._ensure_started(goal, status)
        if status == GoalStatus.ACTIVE:
            return goal
        if self.streak_engine is not None and goal.paused_at is not None:
            calendar = self.policy.calendar
            self.streak_engine.carry_over_pause(goal, calendar.day_of(goal.paused_at), calendar.today(now))
        return self._transition(goal, GoalStatus.ACTIVE, now)

    def complete_goal(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> GoalBase:
        now = now or self.clock.now()
        goal = self.get_goal(goal_id)
        self._ensure_owner(goal, user_id)
        status = guard.derive_status(goal, now, self.policy)
        self._ensure_started(goal, status)
        return self._transition(goal, GoalStatus.COMPLETED, now)

    def promote_pending(self, now: Optional[datetime] = None) -> List[GoalBase]:
        """Activate every pending goal whose start day has arrived."""
        now = now or self.clock.now()
        today = self.policy.calendar.today(now)
        promoted = []
        for goal in self.goals.list_pending_due(today):
            promoted.append(self._transition(goal, GoalStatus.ACTIVE, now))
        if promoted:
            logger.info("lifecycle.promoted", extra={"count": len(promoted)})
        return promoted

    # Internal helpers -------------------------------------------------
    @staticmethod
    def _ensure_owner(goal: GoalBase, user_id: str) -> None:
        if goal.owner_id != user_id:
            raise PermissionError(f"Only the owner can change goal {goal.goal_id}")

    @staticmethod
    def _ensure_started(goal: GoalBase, status: GoalStatus) -> None:
        if status == GoalStatus.COMPLETED:
            raise GoalCompletedError(f"Goal {goal.goal_id} is already completed")
        if status == GoalStatus.PENDING:
            raise GoalNotStartedError(f"Goal {goal.goal_id} has not started yet")

    def _transition(self, goal: GoalBase, to_status: GoalStatus, now: datetime) -> GoalBase:
        from_status = goal.status
        update = {"status": to_status, "paused_at": now if to_status == GoalStatus.PAUSED else None}
        if to_status == GoalStatus.COMPLETED:
            update["completed_at"] = now
        updated = parse_goal({**goal.model_dump(), **update})
        self.goals.save(updated)

        log_event(
            "info",
            "goal.status_changed",
            user_id=goal.owner_id,
            goal_id=goal.goal_id,
            event_type="GoalStatusChanged",
            extra={"from": from_status.value, "to": to_status.value},
        )
        self.emitter.emit(
            GoalStatusChanged(goal_id=goal.goal_id, occurred_at=now, from_status=from_status, to_status=to_status)
        )
        return updated
