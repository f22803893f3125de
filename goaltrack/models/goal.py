"""
goaltrack/models/goal.py
Goal models: one variant per goal type, discriminated on `type`.
"""

from datetime import date, datetime
from enum import Enum
from typing import Annotated, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class GoalType(str, Enum):
    SINGLE_ACTIVITY = "single-activity"
    MULTI_ACTIVITY = "multi-activity"
    RECURRING = "recurring"


class GoalStatus(str, Enum):
    """Lifecycle: pending -> active <-> paused -> completed (terminal)"""

    PENDING = "pending"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class GoalMode(str, Enum):
    """How completions aggregate into streaks."""

    INDIVIDUAL = "individual"
    GROUP = "group"
    PARTNER = "partner"
    SEASONAL = "seasonal"


class GoalBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    # None = unlimited
    max_activities: ClassVar[Optional[int]] = None

    goal_id: str
    owner_id: str
    title: str = Field(min_length=1, max_length=200)
    mode: GoalMode = GoalMode.INDIVIDUAL
    status: GoalStatus = GoalStatus.ACTIVE
    start_date: Optional[date] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    partner_id: Optional[str] = Field(default=None, description="Accountability partner for mode=partner")

    @model_validator(mode="after")
    def _check_invariants(self):
        if (self.completed_at is not None) != (self.status == GoalStatus.COMPLETED):
            raise ValueError("completed_at must be set exactly when status is completed")
        if self.paused_at is not None and self.status != GoalStatus.PAUSED:
            raise ValueError("paused_at is only kept while the goal is paused")
        if (self.mode == GoalMode.PARTNER) != (self.partner_id is not None):
            raise ValueError("partner_id is required for partner goals and only for them")
        if self.partner_id is not None and self.partner_id == self.owner_id:
            raise ValueError("partner_id must differ from owner_id")
        return self

    @property
    def is_completed(self) -> bool:
        return self.status == GoalStatus.COMPLETED

    @property
    def is_shared(self) -> bool:
        return self.mode in (GoalMode.GROUP, GoalMode.PARTNER)


class SingleActivityGoal(GoalBase):
    max_activities: ClassVar[Optional[int]] = 1

    type: Literal["single-activity"] = "single-activity"


class MultiActivityGoal(GoalBase):
    type: Literal["multi-activity"] = "multi-activity"


class RecurringGoal(GoalBase):
    type: Literal["recurring"] = "recurring"
    frequency: Literal["daily", "weekly"] = "daily"


Goal = Annotated[
    Union[SingleActivityGoal, MultiActivityGoal, RecurringGoal],
    Field(discriminator="type"),
]

goal_adapter: TypeAdapter = TypeAdapter(Goal)


def parse_goal(data: dict) -> GoalBase:
    return goal_adapter.validate_python(data)
