"""
goaltrack/features/streaks/engine.py

StreakEngine: turns completions, missed periods and freezes into persisted
StreakRecord updates.

Each record is updated with read -> compute -> compare-and-swap. A lost
race re-reads and recomputes, up to max_retries times, then surfaces
ConcurrentModificationError. When one completion touches several records
(personal plus group or partner) and a later write fails, the earlier
writes are reverted before the error propagates. Events are emitted only
after every write has landed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple

from goaltrack.core.clock import Calendar, Clock, Granularity, SystemClock
from goaltrack.core.errors import ConcurrentModificationError, GoalCompletedError, GoalNotFoundError, PermissionError
from goaltrack.core.logging import log_event
from goaltrack.features.events.emitter import DomainEvent, EventEmitter, FreezeUsed, StreakBroken, StreakUpdated
from goaltrack.features.goals.store import GoalStore
from goaltrack.features.groups.aggregator import GroupParticipationAggregator
from goaltrack.features.streaks import rules
from goaltrack.features.streaks.store import StreakStore
from goaltrack.models.activity import MemberStatus
from goaltrack.models.goal import GoalBase, GoalMode, GoalStatus
from goaltrack.models.streak import StreakKey, StreakOutcome, StreakRecord, StreakType, StreakUpdate

logger = logging.getLogger("goaltrack")

Compute = Callable[[Optional[StreakRecord], StreakKey], StreakUpdate]
# (stored record after the write, record before the write)
Applied = Tuple[StreakRecord, Optional[StreakRecord]]


class StreakEngine:
    def __init__(
        self,
        goals: GoalStore,
        streaks: StreakStore,
        aggregator: GroupParticipationAggregator,
        emitter: EventEmitter,
        calendar: Optional[Calendar] = None,
        clock: Optional[Clock] = None,
        default_freeze_uses: int = 2,
        max_retries: int = 3,
    ):
        self.goals = goals
        self.streaks = streaks
        self.aggregator = aggregator
        self.emitter = emitter
        self.calendar = calendar or Calendar()
        self.clock = clock or SystemClock()
        self.default_freeze_uses = default_freeze_uses
        self.max_retries = max_retries

    # Completions ------------------------------------------------------
    def on_completion(self, goal: GoalBase, user_id: str, day: date, now: Optional[datetime] = None) -> StreakOutcome:
        """Apply one recorded completion to every streak it feeds."""
        now = now or self.clock.now()
        personal = rules.personal_streak_type(goal)
        granularity = rules.granularity_for(goal, personal)

        def personal_compute(record, key):
            return rules.apply_completion(record, key, day, self.calendar, granularity, self.default_freeze_uses)

        plans: List[Tuple[StreakKey, Compute]] = [((goal.goal_id, user_id, personal), personal_compute)]
        shared = self._shared_key(goal)
        if shared is not None:
            plans.append((shared, self._collective_compute(goal, shared[2], day)))

        updates = self._apply_all(plans)
        self._publish(updates, now)
        return StreakOutcome(goal_id=goal.goal_id, user_id=user_id, day=day, updates=updates)

    def _collective_compute(self, goal: GoalBase, streak_type: StreakType, day: date) -> Compute:
        granularity = rules.granularity_for(goal, streak_type)

        def compute(record, key):
            # Re-evaluated on every attempt so a retry sees the other members' latest completions.
            success = self.collective_success(goal, day)
            return rules.apply_collective(record, key, day, success, self.calendar, granularity)

        return compute

    def collective_success(self, goal: GoalBase, day: date) -> bool:
        if goal.mode == GoalMode.PARTNER:
            pair = [goal.owner_id, goal.partner_id]
            return self.aggregator.evaluate_members(goal.goal_id, pair, day, threshold=1.0).success
        return self.aggregator.evaluate_day(goal.goal_id, day).success

    @staticmethod
    def _shared_key(goal: GoalBase) -> Optional[StreakKey]:
        if goal.mode == GoalMode.GROUP:
            return (goal.goal_id, None, StreakType.GROUP)
        if goal.mode == GoalMode.PARTNER:
            return (goal.goal_id, goal.owner_id, StreakType.PARTNER)
        return None

    # Missed periods ---------------------------------------------------
    def record_missed_day(self, goal: GoalBase, record: StreakRecord, day: date, now: Optional[datetime] = None) -> StreakUpdate:
        """Signal that `day` was not completed for this record."""
        now = now or self.clock.now()
        granularity = rules.granularity_for(goal, record.streak_type)

        def compute(current, key):
            if key[2] in (StreakType.GROUP, StreakType.PARTNER) and granularity == Granularity.DAY:
                # Late completions may still have tipped the day; settle it before breaking anything.
                if self.collective_success(goal, day):
                    return rules.apply_completion(current, key, day, self.calendar, granularity)
            return rules.apply_miss(current, key, day, self.calendar, granularity)

        updates = self._apply_all([(record.key, compute)])
        self._publish(updates, now)
        return updates[0]

    def record_missed_days(self, now: Optional[datetime] = None) -> List[StreakUpdate]:
        """
        Sweep every record of every running goal and break the ones whose
        previous period went uncovered. Safe to run more than once a day.
        """
        now = now or self.clock.now()
        today = self.calendar.today(now)
        changed: List[StreakUpdate] = []
        goals_cache = {}

        for record in self.streaks.list_all():
            if record.goal_id not in goals_cache:
                goals_cache[record.goal_id] = self.goals.get(record.goal_id)
            goal = goals_cache[record.goal_id]
            # Paused, pending and completed goals keep their numbers untouched.
            if goal is None or goal.status != GoalStatus.ACTIVE:
                continue

            granularity = rules.granularity_for(goal, record.streak_type)
            missed = self.calendar.previous_period(today, granularity)
            gap = self.calendar.gap(record.last_activity_date, missed, granularity)
            if gap is None or gap < 1:
                continue

            try:
                update = self.record_missed_day(goal, record, missed, now)
            except ConcurrentModificationError:
                # A live completion won the race; the next sweep re-checks this record.
                log_event("warning", "streak.sweep_conflict", user_id=record.user_id, goal_id=record.goal_id,
                          error_code=ConcurrentModificationError.code)
                continue
            if update.changed:
                changed.append(update)

        logger.info("streak.sweep_complete", extra={"checked_day": today.isoformat(), "changed": len(changed)})
        return changed

    # Pause -----------------------------------------------------------
    def carry_over_pause(self, goal: GoalBase, paused_on: date, resumed_on: date) -> List[StreakUpdate]:
        """Bridge every live record of the goal across a pause so it continues on resume."""
        plans: List[Tuple[StreakKey, Compute]] = []
        for record in self.streaks.list_for_goal(goal.goal_id):
            granularity = rules.granularity_for(goal, record.streak_type)

            def compute(current, key, granularity=granularity):
                if current is None:
                    return StreakUpdate(record=rules.new_record(key), status="unchanged")
                return rules.apply_resume(current, paused_on, resumed_on, self.calendar, granularity)

            plans.append((record.key, compute))

        updates = [u for u in self._apply_all(plans) if u.changed]
        for update in updates:
            log_event("info", "streak.pause_bridged", user_id=update.record.user_id, goal_id=goal.goal_id,
                      extra={"streak_type": update.record.streak_type.value,
                             "last_activity_date": update.record.last_activity_date.isoformat()})
        return updates

    # Freeze -----------------------------------------------------------
    def use_freeze(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> StreakUpdate:
        """
        Spend one freeze on the caller's personal record to cover the current period.

        Raises NoFreezeRemainingError when no record or no uses are left, and
        ConflictError with code period_already_covered when the current period
        already counts (a completion or an earlier freeze).
        """
        now = now or self.clock.now()
        goal = self.goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found")
        if goal.is_completed:
            raise GoalCompletedError(f"Goal {goal_id} is completed")
        member = self.goals.get_member(goal_id, user_id)
        if member is None or member.status != MemberStatus.ACCEPTED:
            raise PermissionError(f"{user_id} is not a member of goal {goal_id}")

        streak_type = rules.personal_streak_type(goal)
        granularity = rules.granularity_for(goal, streak_type)
        day = self.calendar.today(now)

        def compute(record, key):
            return rules.apply_freeze(record, day, self.calendar, granularity)

        update = self._apply_all([((goal_id, user_id, streak_type), compute)])[0]
        log_event("info", "streak.freeze_used", user_id=user_id, goal_id=goal_id, event_type="FreezeUsed",
                  extra={"remaining": update.record.freeze_uses_remaining})
        self.emitter.emit(
            FreezeUsed(
                goal_id=goal_id,
                occurred_at=now,
                user_id=user_id,
                streak_type=streak_type,
                remaining=update.record.freeze_uses_remaining,
            )
        )
        return update

    # Queries ----------------------------------------------------------
    def get_streak(self, goal_id: str, user_id: Optional[str] = None, streak_type: Optional[StreakType] = None) -> StreakRecord:
        """
        Stored record, or an all-zero record when nothing has been logged yet.
        Without user_id the goal's shared record is returned.
        """
        goal = self.goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(f"Goal {goal_id} not found")
        if streak_type is None:
            if user_id is not None:
                streak_type = rules.personal_streak_type(goal)
            elif goal.mode == GoalMode.PARTNER:
                streak_type, user_id = StreakType.PARTNER, goal.owner_id
            else:
                streak_type = StreakType.GROUP
        record = self.streaks.get(goal_id, user_id, streak_type)
        if record is None:
            return rules.new_record((goal_id, user_id, streak_type))
        return record

    def list_streaks(self, goal_id: str) -> List[StreakRecord]:
        return self.streaks.list_for_goal(goal_id)

    # Write path -------------------------------------------------------
    def _apply_all(self, plans: List[Tuple[StreakKey, Compute]]) -> List[StreakUpdate]:
        applied: List[Applied] = []
        updates: List[StreakUpdate] = []
        try:
            for key, compute in plans:
                update, stored = self._update_with_retry(key, compute)
                updates.append(update)
                if stored is not None:
                    applied.append((stored, update.previous))
        except Exception:
            self._revert(applied)
            raise
        return updates

    def _update_with_retry(self, key: StreakKey, compute: Compute) -> Tuple[StreakUpdate, Optional[StreakRecord]]:
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            current = self.streaks.get(*key)
            update = compute(current, key)
            if not update.changed:
                return update, None
            expected = current.version if current else 0
            try:
                stored = self.streaks.save(update.record, expected_version=expected)
            except ConcurrentModificationError:
                if attempt == attempts:
                    log_event("error", "streak.conflict_exhausted", user_id=key[1], goal_id=key[0],
                              error_code=ConcurrentModificationError.code, extra={"attempts": attempts})
                    raise
                log_event("warning", "streak.conflict_retry", user_id=key[1], goal_id=key[0],
                          error_code=ConcurrentModificationError.code, extra={"attempt": attempt})
                continue
            return StreakUpdate(record=stored, status=update.status, broke=update.broke, previous=current), stored
        raise ConcurrentModificationError(f"Streak {key[2].value} for goal {key[0]} could not be updated")

    def _revert(self, applied: List[Applied]) -> None:
        for stored, previous in reversed(applied):
            try:
                if previous is None:
                    self.streaks.discard(stored)
                else:
                    self.streaks.save(previous.copy(), expected_version=stored.version)
            except Exception:
                logger.exception(
                    "streak.revert_failed",
                    extra={"goal_id": stored.goal_id, "user_id": stored.user_id, "error_code": "revert_failed"},
                )

    def _publish(self, updates: List[StreakUpdate], now: datetime) -> None:
        events: List[DomainEvent] = []
        for update in updates:
            if not update.changed:
                continue
            record = update.record
            log_event(
                "info",
                "streak.broken" if update.broke else "streak.updated",
                user_id=record.user_id,
                goal_id=record.goal_id,
                event_type="StreakUpdated",
                extra={
                    "streak_type": record.streak_type.value,
                    "status": update.status,
                    "current": record.current_streak,
                    "longest": record.longest_streak,
                },
            )
            events.append(
                StreakUpdated(
                    goal_id=record.goal_id,
                    occurred_at=now,
                    user_id=record.user_id,
                    streak_type=record.streak_type,
                    current=record.current_streak,
                    longest=record.longest_streak,
                    broke=update.broke,
                )
            )
            if update.broke:
                events.append(
                    StreakBroken(
                        goal_id=record.goal_id,
                        occurred_at=now,
                        user_id=record.user_id,
                        streak_type=record.streak_type,
                        previous_streak=update.previous.current_streak if update.previous else 0,
                    )
                )
        self.emitter.emit_all(events)
