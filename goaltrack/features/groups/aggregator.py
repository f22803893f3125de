"""
goaltrack/features/groups/aggregator.py

Same-day participation across the members of a shared goal.

A member succeeds a day when they completed every activity assigned to them
(directly or via assigned_to_all). The group succeeds when the share of
succeeding members reaches the threshold; the boundary is inclusive.
"""

from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction
from typing import Iterable, List

from goaltrack.features.goals.store import GoalStore
from goaltrack.features.ledger.store import CompletionStore
from goaltrack.models.activity import MemberStatus


@dataclass(frozen=True)
class MemberDayResult:
    user_id: str
    assigned: int
    completed: int

    @property
    def ratio(self) -> float:
        return self.completed / self.assigned if self.assigned else 0.0

    @property
    def succeeded(self) -> bool:
        # Nothing assigned means nothing to succeed at.
        return self.assigned > 0 and self.completed >= self.assigned


@dataclass(frozen=True)
class GroupDayResult:
    goal_id: str
    day: date
    threshold: float
    members: List[MemberDayResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.members)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for m in self.members if m.succeeded)

    @property
    def ratio(self) -> float:
        return self.succeeded_count / self.total if self.total else 0.0

    @property
    def success(self) -> bool:
        if not self.total:
            return False
        # Exact rational comparison so 4/5 against 0.80 is not lost to float rounding.
        return Fraction(self.succeeded_count, self.total) >= Fraction(str(self.threshold))

    def to_dict(self) -> dict:
        return {
            "goal_id": self.goal_id,
            "day": self.day.isoformat(),
            "threshold": self.threshold,
            "total_members": self.total,
            "succeeded_members": self.succeeded_count,
            "ratio": round(self.ratio, 4),
            "success": self.success,
            "members": [
                {"user_id": m.user_id, "assigned": m.assigned, "completed": m.completed, "succeeded": m.succeeded}
                for m in self.members
            ],
        }


class GroupParticipationAggregator:
    def __init__(self, goals: GoalStore, completions: CompletionStore, threshold: float = 0.80):
        self.goals = goals
        self.completions = completions
        self.threshold = threshold

    def evaluate_day(self, goal_id: str, day: date) -> GroupDayResult:
        """Evaluate all accepted members of the goal against the group threshold."""
        members = [m.user_id for m in self.goals.list_members(goal_id, status=MemberStatus.ACCEPTED)]
        return self.evaluate_members(goal_id, members, day, self.threshold)

    def evaluate_members(self, goal_id: str, user_ids: Iterable[str], day: date, threshold: float) -> GroupDayResult:
        activities = self.goals.list_activities(goal_id)
        done = {(c.activity_id, c.user_id) for c in self.completions.list_for_day(goal_id, day)}

        results = []
        for user_id in user_ids:
            assigned = [a.activity_id for a in activities if a.is_assigned_to(user_id)]
            completed = sum(1 for activity_id in assigned if (activity_id, user_id) in done)
            results.append(MemberDayResult(user_id=user_id, assigned=len(assigned), completed=completed))

        return GroupDayResult(goal_id=goal_id, day=day, threshold=threshold, members=results)
