# goaltrack/conftest.py
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from goaltrack.core.clock import FixedClock
from goaltrack.core.database import build_engine, drop_all_tables
from goaltrack.features.events.emitter import EventEmitter, RecordingSubscriber
from goaltrack.features.stores import sql_stores
from goaltrack.features.tracker import GoalTracker
from goaltrack.models.goal import GoalMode, GoalType

# Monday; week indexes start here with the default WEEK_START_DAY.
START = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def emitter():
    return EventEmitter()


@pytest.fixture
def recorder(emitter):
    return RecordingSubscriber(emitter)


@pytest.fixture
def tracker(clock, emitter):
    return GoalTracker.in_memory(clock=clock, emitter=emitter)


@pytest.fixture
def sql_engine():
    """
    Provide an in-memory SQLite engine.

    StaticPool keeps the single connection alive, so the schema survives
    across sessions for the whole test.
    """
    engine = build_engine("sqlite://")
    yield engine
    drop_all_tables(engine)
    engine.dispose()


@pytest.fixture
def sql_tracker(sql_engine, clock, emitter):
    return GoalTracker(sql_stores(sql_engine), clock=clock, emitter=emitter)


@pytest.fixture
def client(tracker):
    from goaltrack.main import create_app

    return TestClient(create_app(tracker))


@pytest.fixture
def make_goal():
    """Factory: a goal owned by `owner` with one activity the owner can complete."""

    def _make(t: GoalTracker, owner="alice", mode=GoalMode.INDIVIDUAL, goal_type=GoalType.MULTI_ACTIVITY, **kwargs):
        goal = t.lifecycle.create_goal(owner_id=owner, title="Read every day", goal_type=goal_type, mode=mode, **kwargs)
        if goal.is_shared:
            activity = t.membership.add_activity(goal.goal_id, owner, title="Read 20 pages", assigned_to_all=True)
        else:
            activity = t.membership.add_activity(goal.goal_id, owner, title="Read 20 pages")
        return goal, activity

    return _make


@pytest.fixture
def make_group(make_goal):
    """Factory: a group goal with `size` accepted members sharing one assigned_to_all activity."""

    def _make(t: GoalTracker, size: int):
        goal, activity = make_goal(t, owner="owner", mode=GoalMode.GROUP)
        members = ["owner"]
        for i in range(1, size):
            user_id = f"member-{i}"
            t.membership.invite_member(goal.goal_id, "owner", user_id)
            t.membership.accept_invitation(goal.goal_id, user_id)
            members.append(user_id)
        return goal, activity, members

    return _make
