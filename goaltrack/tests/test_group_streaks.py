from goaltrack.features.events.emitter import StreakBroken
from goaltrack.models.streak import StreakType


def _complete_all(tracker, goal, activity, users):
    results = []
    for user_id in users:
        results.append(tracker.record_completion(goal.goal_id, user_id, activity.activity_id))
    return results


def _group(tracker, goal):
    return tracker.get_streak(goal.goal_id)


def test_four_of_four_continues(tracker, clock, make_group):
    goal, activity, members = make_group(tracker, 4)

    _complete_all(tracker, goal, activity, members)
    clock.advance(days=1)
    _complete_all(tracker, goal, activity, members)

    record = _group(tracker, goal)
    assert record.user_id is None
    assert record.current_streak == 2
    assert record.total_completions == 2


def test_collective_day_waits_for_threshold(tracker, make_group):
    goal, activity, members = make_group(tracker, 4)

    results = _complete_all(tracker, goal, activity, members[:3])
    statuses = [r.outcome.for_type(StreakType.GROUP).status for r in results]
    assert statuses == ["pending_collective"] * 3
    assert _group(tracker, goal).current_streak == 0

    last = tracker.record_completion(goal.goal_id, members[3], activity.activity_id)
    assert last.outcome.for_type(StreakType.GROUP).status == "first_completion"


def test_three_of_four_breaks_the_collective_streak(tracker, clock, make_group, recorder):
    goal, activity, members = make_group(tracker, 4)
    _complete_all(tracker, goal, activity, members)

    clock.advance(days=1)
    _complete_all(tracker, goal, activity, members[:3])  # 75%
    assert _group(tracker, goal).current_streak == 1

    clock.advance(days=1)
    tracker.record_missed_days()

    record = _group(tracker, goal)
    assert record.current_streak == 0
    assert record.longest_streak == 1
    broken = [e for e in recorder.of_type(StreakBroken) if e.streak_type == StreakType.GROUP]
    assert broken[-1].previous_streak == 1


def test_exactly_eighty_percent_is_success(tracker, clock, make_group):
    goal, activity, members = make_group(tracker, 5)

    _complete_all(tracker, goal, activity, members[:4])
    clock.advance(days=1)
    _complete_all(tracker, goal, activity, members[:4])

    assert _group(tracker, goal).current_streak == 2


def test_member_needs_every_assigned_activity(tracker, make_group):
    goal, shared, members = make_group(tracker, 2)
    extra = tracker.membership.add_activity(goal.goal_id, "owner", title="Stretch", assigned_to=members[1])

    _complete_all(tracker, goal, shared, members)
    result = tracker.aggregator.evaluate_day(goal.goal_id, tracker.calendar.today(tracker.clock.now()))
    by_user = {m.user_id: m for m in result.members}
    assert by_user["owner"].succeeded is True
    assert by_user[members[1]].ratio == 0.5
    assert result.success is False

    tracker.record_completion(goal.goal_id, members[1], extra.activity_id)
    assert _group(tracker, goal).current_streak == 1


def test_invited_members_do_not_count(tracker, make_group):
    goal, activity, members = make_group(tracker, 2)
    tracker.membership.invite_member(goal.goal_id, "owner", "lurker")

    _complete_all(tracker, goal, activity, members)

    assert _group(tracker, goal).current_streak == 1


def test_each_member_keeps_a_personal_streak(tracker, make_group):
    goal, activity, members = make_group(tracker, 3)
    tracker.record_completion(goal.goal_id, members[1], activity.activity_id)

    assert tracker.get_streak(goal.goal_id, members[1]).current_streak == 1
    assert tracker.get_streak(goal.goal_id, "owner").current_streak == 0


def test_sweep_leaves_covered_group_days_alone(tracker, clock, make_group):
    goal, activity, members = make_group(tracker, 2)
    _complete_all(tracker, goal, activity, members)
    clock.advance(days=1)
    _complete_all(tracker, goal, activity, members)

    clock.advance(days=1)
    changed = tracker.record_missed_days()

    assert all(u.record.streak_type != StreakType.GROUP for u in changed)
    assert _group(tracker, goal).current_streak == 2
