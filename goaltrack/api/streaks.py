from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from goaltrack.api.deps import ensure_goal_visible, get_tracker, parse_now
from goaltrack.core.auth import get_current_user_id
from goaltrack.features.tracker import GoalTracker

router = APIRouter(prefix="/v1/goals", tags=["streaks"])


@router.get("/{goal_id}/streaks")
def get_streaks(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    member: Optional[str] = Query(None, description="Only this member's personal streak"),
    tracker: GoalTracker = Depends(get_tracker),
):
    """Return every streak record of the goal, or one member's personal record."""
    ensure_goal_visible(tracker, goal_id, user_id)
    if member:
        return {"data": [tracker.get_streak(goal_id, member).to_dict()], "count": 1}
    records = tracker.engine.list_streaks(goal_id)
    return {"data": [r.to_dict() for r in records], "count": len(records)}


@router.post("/{goal_id}/streaks/freeze")
def use_freeze(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    update = tracker.use_freeze(goal_id, user_id, now=now)
    return {"data": {"remaining": update.record.freeze_uses_remaining, "streak": update.record.to_dict()}}
