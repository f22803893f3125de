"""
goaltrack/api/activities.py
Completion endpoints. Repeating a completion on the same day is a 200 no-op.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from goaltrack.api.deps import get_tracker, parse_now
from goaltrack.core.auth import get_current_user_id
from goaltrack.features.tracker import GoalTracker

router = APIRouter(prefix="/v1/activities", tags=["activities"])


@router.post("/{activity_id}/completions")
def record_completion(
    activity_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    result = tracker.record_completion(None, user_id, activity_id, now=now)
    return {"data": result.to_dict()}


@router.delete("/{activity_id}/completions")
def uncomplete(
    activity_id: str,
    target_user_id: Optional[str] = Query(None, alias="user_id", description="Owner only: member whose row to clear"),
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    removed = tracker.uncomplete(activity_id, user_id, target_user_id=target_user_id, now=now)
    return {"data": {"activity_id": activity_id, "removed": removed}}
