"""
goaltrack/features/streaks/rules.py

The continuity rule as pure functions over StreakRecord.

gap = period_index(day) - period_index(last_activity_date)
  no prior completion -> current = 1           (first_completion)
  gap <= 0            -> no change             (unchanged)
  gap == 1            -> current += 1          (continued)
  gap >= 2            -> current = 1           (reset)
A successful completion never leaves current at 0. Missed-period signals
drop current to 0 without touching total_completions. Freezes cover the
current period without counting as a completion. Resuming a paused goal
bridges the paused periods for streaks that were alive at the pause.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from goaltrack.core.clock import Calendar, Granularity
from goaltrack.core.errors import ConflictError, NoFreezeRemainingError
from goaltrack.models.goal import GoalBase, GoalMode
from goaltrack.models.streak import StreakKey, StreakRecord, StreakType, StreakUpdate

PERSONAL_TYPES = (StreakType.INDIVIDUAL, StreakType.SEASONAL)


def personal_streak_type(goal: GoalBase) -> StreakType:
    return StreakType.SEASONAL if goal.mode == GoalMode.SEASONAL else StreakType.INDIVIDUAL


def granularity_for(goal: GoalBase, streak_type: StreakType) -> Granularity:
    if streak_type == StreakType.SEASONAL or getattr(goal, "frequency", None) == "weekly":
        return Granularity.WEEK
    return Granularity.DAY


def new_record(key: StreakKey, freeze_uses: int = 0) -> StreakRecord:
    goal_id, user_id, streak_type = key
    return StreakRecord(
        goal_id=goal_id,
        user_id=user_id,
        streak_type=streak_type,
        freeze_uses_remaining=freeze_uses if streak_type in PERSONAL_TYPES else 0,
    )


def apply_completion(
    record: Optional[StreakRecord],
    key: StreakKey,
    day: date,
    calendar: Calendar,
    granularity: Granularity,
    freeze_uses: int = 0,
) -> StreakUpdate:
    previous = record.copy() if record else None
    base = record.copy() if record else new_record(key, freeze_uses)

    gap = calendar.gap(base.last_activity_date, day, granularity)
    if gap is None:
        current, status = 1, "first_completion"
    elif gap <= 0:
        return StreakUpdate(record=base, status="unchanged", previous=previous)
    elif gap == 1:
        current, status = base.current_streak + 1, "continued"
    else:
        current, status = 1, "reset"

    broke = status == "reset" and base.current_streak > 0
    updated = base.copy(
        current_streak=current,
        longest_streak=max(base.longest_streak, current),
        total_completions=base.total_completions + 1,
        last_activity_date=day,
    )
    return StreakUpdate(record=updated, status=status, broke=broke, previous=previous)


def apply_collective(
    record: Optional[StreakRecord],
    key: StreakKey,
    day: date,
    success: bool,
    calendar: Calendar,
    granularity: Granularity,
) -> StreakUpdate:
    """Shared records only move on a successful day; misses come from the sweep."""
    if success:
        return apply_completion(record, key, day, calendar, granularity)
    base = record.copy() if record else new_record(key)
    return StreakUpdate(record=base, status="pending_collective", previous=record.copy() if record else None)


def apply_miss(
    record: Optional[StreakRecord],
    key: StreakKey,
    day: date,
    calendar: Calendar,
    granularity: Granularity,
) -> StreakUpdate:
    """`day` was not completed; break the streak if it was not already covered."""
    if record is None:
        return StreakUpdate(record=new_record(key), status="unchanged")
    previous = record.copy()
    gap = calendar.gap(record.last_activity_date, day, granularity)
    if gap is None or gap < 1 or record.current_streak == 0:
        return StreakUpdate(record=record.copy(), status="unchanged", previous=previous)
    updated = record.copy(current_streak=0)
    return StreakUpdate(record=updated, status="missed", broke=True, previous=previous)


def apply_freeze(
    record: Optional[StreakRecord],
    day: date,
    calendar: Calendar,
    granularity: Granularity,
) -> StreakUpdate:
    if record is None or record.freeze_uses_remaining <= 0:
        raise NoFreezeRemainingError("No streak freezes remaining")
    gap = calendar.gap(record.last_activity_date, day, granularity)
    if gap is not None and gap <= 0:
        raise ConflictError("This period is already covered; no freeze needed", code="period_already_covered")
    updated = record.copy(
        freeze_uses_remaining=record.freeze_uses_remaining - 1,
        last_activity_date=day,
    )
    return StreakUpdate(record=updated, status="frozen", previous=record.copy())


def apply_resume(
    record: StreakRecord,
    paused_on: date,
    resumed_on: date,
    calendar: Calendar,
    granularity: Granularity,
) -> StreakUpdate:
    """
    Carry a streak that was still alive when its goal was paused across the
    pause: last_activity_date moves up to the period before the resume, so
    the next completion continues it. Applying it twice changes nothing.
    """
    previous = record.copy()
    at_pause = calendar.gap(record.last_activity_date, paused_on, granularity)
    if record.current_streak == 0 or at_pause is None or at_pause > 1:
        return StreakUpdate(record=record.copy(), status="unchanged", previous=previous)
    bridge = calendar.previous_period(resumed_on, granularity)
    if calendar.gap(bridge, record.last_activity_date, granularity) >= 0:
        return StreakUpdate(record=record.copy(), status="unchanged", previous=previous)
    return StreakUpdate(record=record.copy(last_activity_date=bridge), status="resumed", previous=previous)
