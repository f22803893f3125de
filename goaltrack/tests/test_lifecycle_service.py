from datetime import date, timedelta

import pytest

from goaltrack.core.errors import (
    DeleteWindowClosedError,
    EditWindowClosedError,
    GoalCompletedError,
    GoalNotFoundError,
    GoalNotStartedError,
    PermissionError,
    ValidationError,
)
from goaltrack.features.events.emitter import GoalStatusChanged
from goaltrack.features.lifecycle.service import add_months, format_remaining
from goaltrack.models.goal import GoalMode, GoalStatus, GoalType


def test_create_goal_with_future_start_is_pending(tracker, recorder):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Learn piano", start_date=date(2024, 3, 20))

    assert goal.status == GoalStatus.PENDING
    events = recorder.of_type(GoalStatusChanged)
    assert events[-1].from_status is None
    assert events[-1].to_status == GoalStatus.PENDING


def test_create_goal_without_start_is_active(tracker):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Learn piano")
    assert goal.status == GoalStatus.ACTIVE
    member = tracker.stores.goals.get_member(goal.goal_id, "alice")
    assert member.status.value == "accepted"


def test_start_date_limited_to_two_months(tracker):
    # Clock is 2024-03-04; two months ahead is 2024-05-04.
    tracker.lifecycle.create_goal(owner_id="alice", title="ok", start_date=date(2024, 5, 4))
    with pytest.raises(ValidationError):
        tracker.lifecycle.create_goal(owner_id="alice", title="too far", start_date=date(2024, 5, 5))


def test_add_months_clamps_to_month_end():
    assert add_months(date(2024, 12, 31), 2) == date(2025, 2, 28)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)


def test_partner_goal_requires_partner(tracker):
    with pytest.raises(ValidationError):
        tracker.lifecycle.create_goal(owner_id="alice", title="Gym", mode=GoalMode.PARTNER)

    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Gym", mode=GoalMode.PARTNER, partner_id="bob")
    assert tracker.stores.goals.get_member(goal.goal_id, "bob").status.value == "accepted"


def test_promote_pending(tracker, clock, recorder):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run", start_date=date(2024, 3, 6))
    assert tracker.promote_pending() == []

    clock.advance(days=2)
    promoted = tracker.promote_pending()

    assert [g.goal_id for g in promoted] == [goal.goal_id]
    assert tracker.lifecycle.get_goal(goal.goal_id).status == GoalStatus.ACTIVE
    last = recorder.of_type(GoalStatusChanged)[-1]
    assert (last.from_status, last.to_status) == (GoalStatus.PENDING, GoalStatus.ACTIVE)


def test_edit_within_window_and_after(tracker, clock):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run")

    clock.advance(hours=4)
    edited = tracker.lifecycle.edit_goal(goal.goal_id, "alice", title="Run 5k")
    assert edited.title == "Run 5k"

    clock.advance(hours=2)
    with pytest.raises(EditWindowClosedError):
        tracker.lifecycle.edit_goal(goal.goal_id, "alice", title="Run 10k")


def test_edit_moves_goal_into_pending(tracker, recorder):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run")
    edited = tracker.lifecycle.edit_goal(goal.goal_id, "alice", start_date=date(2024, 3, 15))

    assert edited.status == GoalStatus.PENDING
    assert recorder.of_type(GoalStatusChanged)[-1].to_status == GoalStatus.PENDING


def test_only_owner_can_edit(tracker):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run")
    with pytest.raises(PermissionError):
        tracker.lifecycle.edit_goal(goal.goal_id, "mallory", title="Nope")


def test_delete_window_and_cleanup(tracker, clock, make_goal):
    goal, activity = make_goal(tracker)
    tracker.record_completion(goal.goal_id, "alice", activity.activity_id)

    tracker.lifecycle.delete_goal(goal.goal_id, "alice")

    with pytest.raises(GoalNotFoundError):
        tracker.lifecycle.get_goal(goal.goal_id)
    assert tracker.stores.streaks.list_for_goal(goal.goal_id) == []

    late = tracker.lifecycle.create_goal(owner_id="alice", title="Later")
    clock.advance(hours=25)
    with pytest.raises(DeleteWindowClosedError):
        tracker.lifecycle.delete_goal(late.goal_id, "alice")


def test_pause_resume_complete(tracker, recorder):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run")

    assert tracker.lifecycle.pause_goal(goal.goal_id, "alice").status == GoalStatus.PAUSED
    assert tracker.lifecycle.resume_goal(goal.goal_id, "alice").status == GoalStatus.ACTIVE
    completed = tracker.lifecycle.complete_goal(goal.goal_id, "alice")

    assert completed.status == GoalStatus.COMPLETED
    assert completed.completed_at is not None
    transitions = [(e.from_status, e.to_status) for e in recorder.of_type(GoalStatusChanged)][1:]
    assert transitions == [
        (GoalStatus.ACTIVE, GoalStatus.PAUSED),
        (GoalStatus.PAUSED, GoalStatus.ACTIVE),
        (GoalStatus.ACTIVE, GoalStatus.COMPLETED),
    ]


def test_completed_is_terminal(tracker):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run")
    tracker.lifecycle.complete_goal(goal.goal_id, "alice")

    with pytest.raises(GoalCompletedError):
        tracker.lifecycle.resume_goal(goal.goal_id, "alice")
    with pytest.raises(GoalCompletedError):
        tracker.lifecycle.complete_goal(goal.goal_id, "alice")
    with pytest.raises(DeleteWindowClosedError):
        tracker.lifecycle.delete_goal(goal.goal_id, "alice")


def test_pending_goal_cannot_be_paused(tracker):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run", start_date=date(2024, 3, 10))
    with pytest.raises(GoalNotStartedError):
        tracker.lifecycle.pause_goal(goal.goal_id, "alice")


def test_single_activity_goal_holds_one_activity(tracker, make_goal):
    goal, _ = make_goal(tracker, goal_type=GoalType.SINGLE_ACTIVITY)
    with pytest.raises(ValidationError):
        tracker.membership.add_activity(goal.goal_id, "alice", title="Second")


def test_describe_reports_gates(tracker, clock):
    goal = tracker.lifecycle.create_goal(owner_id="alice", title="Run")
    clock.advance(hours=1, minutes=30)

    data = tracker.lifecycle.describe(goal)

    assert data["status"] == "active"
    assert data["can_edit"] is True
    assert data["edit_time_remaining"] == "3h 30m"
    assert format_remaining(timedelta(0)) is None
