from datetime import date, timedelta

import pytest

from goaltrack.core.clock import Calendar, Granularity
from goaltrack.features.streaks import rules
from goaltrack.models.streak import StreakRecord, StreakType

KEY = ("g1", "alice", StreakType.INDIVIDUAL)
CAL = Calendar()


def _complete(record, day):
    return rules.apply_completion(record, KEY, day, CAL, Granularity.DAY, freeze_uses=2)


def test_first_completion_starts_at_one():
    update = _complete(None, date(2024, 3, 4))
    assert update.status == "first_completion"
    assert (update.record.current_streak, update.record.longest_streak, update.record.total_completions) == (1, 1, 1)
    assert update.record.freeze_uses_remaining == 2


def test_consecutive_days_continue():
    first = _complete(None, date(2024, 3, 4)).record
    update = _complete(first, date(2024, 3, 5))
    assert update.status == "continued"
    assert update.record.current_streak == 2


def test_gap_resets_to_one_not_zero():
    record = StreakRecord("g1", "alice", StreakType.INDIVIDUAL, current_streak=5, longest_streak=5,
                          total_completions=5, last_activity_date=date(2024, 3, 4))
    update = _complete(record, date(2024, 3, 7))

    assert update.status == "reset"
    assert update.broke is True
    assert update.record.current_streak == 1
    assert update.record.longest_streak == 5
    assert update.record.total_completions == 6


def test_same_day_is_a_no_op():
    first = _complete(None, date(2024, 3, 4)).record
    update = _complete(first, date(2024, 3, 4))
    assert update.status == "unchanged"
    assert update.changed is False
    assert update.record.total_completions == 1


def test_missed_day_drops_to_zero_without_counting():
    record = _complete(None, date(2024, 3, 4)).record
    update = rules.apply_miss(record, KEY, date(2024, 3, 5), CAL, Granularity.DAY)

    assert update.status == "missed"
    assert update.broke is True
    assert update.record.current_streak == 0
    assert update.record.longest_streak == 1
    assert update.record.total_completions == 1
    assert update.record.last_activity_date == date(2024, 3, 4)


def test_missed_signal_for_covered_day_is_ignored():
    record = _complete(None, date(2024, 3, 4)).record
    assert rules.apply_miss(record, KEY, date(2024, 3, 4), CAL, Granularity.DAY).status == "unchanged"
    assert rules.apply_miss(None, KEY, date(2024, 3, 4), CAL, Granularity.DAY).changed is False


@pytest.mark.parametrize("days", [[0, 1, 2], [0, 3, 4, 5, 9], [0, 1, 2, 3, 10, 11]])
def test_longest_never_below_current(days):
    record = None
    for offset in days:
        record = _complete(record, date(2024, 3, 1) + timedelta(days=offset)).record
        assert record.longest_streak >= record.current_streak >= 1


def test_engine_continuity_across_days(tracker, clock, make_goal):
    goal, activity = make_goal(tracker)

    tracker.record_completion(goal.goal_id, "alice", activity.activity_id)
    clock.advance(days=1)
    outcome = tracker.record_completion(goal.goal_id, "alice", activity.activity_id).outcome
    assert outcome.for_type(StreakType.INDIVIDUAL).record.current_streak == 2

    clock.advance(days=3)
    outcome = tracker.record_completion(goal.goal_id, "alice", activity.activity_id).outcome
    update = outcome.for_type(StreakType.INDIVIDUAL)
    assert update.status == "reset"
    assert update.record.current_streak == 1
    assert update.record.longest_streak == 2


def test_get_streak_without_history_is_zero(tracker, make_goal):
    goal, _ = make_goal(tracker)
    record = tracker.get_streak(goal.goal_id, "alice")
    assert record.current_streak == 0
    assert record.last_activity_date is None


def test_weekly_recurring_goal_counts_weeks(tracker, clock, make_goal):
    from goaltrack.models.goal import GoalType

    goal, activity = make_goal(tracker, goal_type=GoalType.RECURRING, frequency="weekly")
    tracker.record_completion(goal.goal_id, "alice", activity.activity_id)
    clock.advance(days=7)
    tracker.record_completion(goal.goal_id, "alice", activity.activity_id)

    assert tracker.get_streak(goal.goal_id, "alice").current_streak == 2


def test_resume_bridges_a_live_streak():
    record = StreakRecord("g1", "alice", StreakType.INDIVIDUAL, current_streak=2, longest_streak=2,
                          total_completions=2, last_activity_date=date(2024, 3, 5))

    update = rules.apply_resume(record, date(2024, 3, 5), date(2024, 3, 8), CAL, Granularity.DAY)

    assert update.status == "resumed"
    assert update.record.last_activity_date == date(2024, 3, 7)
    assert update.record.current_streak == 2
    assert update.record.total_completions == 2
    again = rules.apply_resume(update.record, date(2024, 3, 5), date(2024, 3, 8), CAL, Granularity.DAY)
    assert again.status == "unchanged"


def test_resume_leaves_broken_or_stale_streaks_alone():
    broken = StreakRecord("g1", "alice", StreakType.INDIVIDUAL, longest_streak=4, last_activity_date=date(2024, 3, 1))
    stale = broken.copy(current_streak=3)

    assert rules.apply_resume(broken, date(2024, 3, 5), date(2024, 3, 9), CAL, Granularity.DAY).status == "unchanged"
    # Already two days behind when the goal was paused.
    assert rules.apply_resume(stale, date(2024, 3, 5), date(2024, 3, 9), CAL, Granularity.DAY).status == "unchanged"


def test_resume_on_week_granularity():
    record = StreakRecord("g1", "alice", StreakType.SEASONAL, current_streak=1, longest_streak=1,
                          total_completions=1, last_activity_date=date(2024, 3, 4))

    update = rules.apply_resume(record, date(2024, 3, 6), date(2024, 3, 27), CAL, Granularity.WEEK)

    assert update.record.last_activity_date == date(2024, 3, 20)
    assert CAL.gap(update.record.last_activity_date, date(2024, 3, 27), Granularity.WEEK) == 1
