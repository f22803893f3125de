"""
Shared router dependencies: the tracker instance and the optional `now` override.
"""

from datetime import datetime
from typing import Optional

from fastapi import Query, Request

from goaltrack.core.clock import ensure_aware
from goaltrack.core.errors import PermissionError, ValidationError
from goaltrack.features.tracker import GoalTracker
from goaltrack.models.activity import MemberStatus


def get_tracker(request: Request) -> GoalTracker:
    return request.app.state.tracker


def parse_now(
    now: Optional[str] = Query(None, description="Fixed timestamp for deterministic testing (ISO format)"),
) -> Optional[datetime]:
    if not now:
        return None
    try:
        return ensure_aware(datetime.fromisoformat(now.replace("Z", "+00:00")))
    except ValueError:
        raise ValidationError("Invalid ISO timestamp format for 'now' parameter")


def ensure_goal_visible(tracker: GoalTracker, goal_id: str, user_id: str) -> None:
    """Owners and non-declined members may read a goal; everyone else gets 403."""
    goal = tracker.lifecycle.get_goal(goal_id)
    if goal.owner_id == user_id:
        return
    member = tracker.stores.goals.get_member(goal_id, user_id)
    if member is None or member.status == MemberStatus.DECLINED:
        raise PermissionError(f"{user_id} cannot view goal {goal_id}")
