"""
goaltrack/models/activity.py
Activities, memberships and the completion rows they produce.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MemberStatus(str, Enum):
    INVITED = "invited"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class GoalActivity(BaseModel):
    """A task inside a goal, assigned to one user or to every member"""

    model_config = ConfigDict(frozen=True)

    activity_id: str
    goal_id: str
    title: str = Field(min_length=1, max_length=200)
    assigned_to: Optional[str] = None
    assigned_to_all: bool = False

    @model_validator(mode="after")
    def _exactly_one_assignment(self):
        if (self.assigned_to is not None) == self.assigned_to_all:
            raise ValueError("exactly one of assigned_to / assigned_to_all must be set")
        return self

    def is_assigned_to(self, user_id: str) -> bool:
        return self.assigned_to_all or self.assigned_to == user_id


class GoalMember(BaseModel):
    model_config = ConfigDict(frozen=True)

    goal_id: str
    user_id: str
    status: MemberStatus = MemberStatus.INVITED
    invited_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None


CompletionKey = Tuple[str, str, date]


class ActivityCompletion(BaseModel):
    """One user finished one activity on one calendar day"""

    model_config = ConfigDict(frozen=True)

    activity_id: str
    goal_id: str
    user_id: str
    day: date
    completed_at: datetime

    @property
    def key(self) -> CompletionKey:
        return (self.activity_id, self.user_id, self.day)
