"""
goaltrack/api/goals.py
Goal lifecycle, activities and membership endpoints.
"""

from datetime import date, datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from goaltrack.api.deps import ensure_goal_visible, get_tracker, parse_now
from goaltrack.core.auth import get_current_user_id
from goaltrack.features.tracker import GoalTracker
from goaltrack.models.goal import GoalMode, GoalType

router = APIRouter(prefix="/v1/goals", tags=["goals"])


class CreateGoalRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    type: GoalType = GoalType.SINGLE_ACTIVITY
    mode: GoalMode = GoalMode.INDIVIDUAL
    start_date: Optional[date] = None
    partner_id: Optional[str] = None
    frequency: Optional[Literal["daily", "weekly"]] = None


class EditGoalRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    start_date: Optional[date] = None


class AddActivityRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    assigned_to: Optional[str] = None
    assigned_to_all: bool = False


class InviteMemberRequest(BaseModel):
    user_id: str = Field(..., min_length=1)


def _goal_payload(tracker: GoalTracker, goal_id: str, now: Optional[datetime]) -> dict:
    goal = tracker.lifecycle.get_goal(goal_id)
    data = tracker.lifecycle.describe(goal, now)
    data["activities"] = [a.model_dump() for a in tracker.stores.goals.list_activities(goal_id)]
    data["members"] = [m.model_dump(mode="json") for m in tracker.stores.goals.list_members(goal_id)]
    return data


@router.post("")
def create_goal(
    request: CreateGoalRequest,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    """Create a goal; a future start date makes it pending."""
    goal = tracker.lifecycle.create_goal(
        owner_id=user_id,
        title=request.title,
        goal_type=request.type,
        mode=request.mode,
        start_date=request.start_date,
        partner_id=request.partner_id,
        frequency=request.frequency,
        now=now,
    )
    return {"data": _goal_payload(tracker, goal.goal_id, now)}


@router.get("/{goal_id}")
def get_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    ensure_goal_visible(tracker, goal_id, user_id)
    return {"data": _goal_payload(tracker, goal_id, now)}


@router.patch("/{goal_id}")
def edit_goal(
    goal_id: str,
    request: EditGoalRequest,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    tracker.lifecycle.edit_goal(goal_id, user_id, title=request.title, start_date=request.start_date, now=now)
    return {"data": _goal_payload(tracker, goal_id, now)}


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    tracker.lifecycle.delete_goal(goal_id, user_id, now=now)
    return {"data": {"goal_id": goal_id, "deleted": True}}


@router.post("/{goal_id}/pause")
def pause_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    tracker.lifecycle.pause_goal(goal_id, user_id, now=now)
    return {"data": _goal_payload(tracker, goal_id, now)}


@router.post("/{goal_id}/resume")
def resume_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    tracker.lifecycle.resume_goal(goal_id, user_id, now=now)
    return {"data": _goal_payload(tracker, goal_id, now)}


@router.post("/{goal_id}/complete")
def complete_goal(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    tracker.lifecycle.complete_goal(goal_id, user_id, now=now)
    return {"data": _goal_payload(tracker, goal_id, now)}


@router.post("/{goal_id}/activities")
def add_activity(
    goal_id: str,
    request: AddActivityRequest,
    user_id: str = Depends(get_current_user_id),
    tracker: GoalTracker = Depends(get_tracker),
):
    activity = tracker.membership.add_activity(
        goal_id,
        user_id,
        title=request.title,
        assigned_to=request.assigned_to,
        assigned_to_all=request.assigned_to_all,
    )
    return {"data": activity.model_dump()}


@router.post("/{goal_id}/members")
def invite_member(
    goal_id: str,
    request: InviteMemberRequest,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    member = tracker.membership.invite_member(goal_id, user_id, request.user_id, now=now)
    return {"data": member.model_dump(mode="json")}


@router.post("/{goal_id}/members/accept")
def accept_invitation(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    member = tracker.membership.accept_invitation(goal_id, user_id, now=now)
    return {"data": member.model_dump(mode="json")}


@router.post("/{goal_id}/members/decline")
def decline_invitation(
    goal_id: str,
    user_id: str = Depends(get_current_user_id),
    now: Optional[datetime] = Depends(parse_now),
    tracker: GoalTracker = Depends(get_tracker),
):
    member = tracker.membership.decline_invitation(goal_id, user_id, now=now)
    return {"data": member.model_dump(mode="json")}
