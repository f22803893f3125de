from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import date
from enum import Enum
from typing import List, Literal, Optional, Tuple


class StreakType(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    PARTNER = "partner"
    SEASONAL = "seasonal"


StreakStatus = Literal[
    "first_completion",
    "continued",
    "reset",
    "unchanged",
    "missed",
    "frozen",
    "pending_collective",
    "resumed",
]

StreakKey = Tuple[str, Optional[str], StreakType]


@dataclass
class StreakRecord:
    """
    Continuity state for one (goal, user, streak type). Period-level, no DB concerns.
    user_id is None only for the single collective record of a group goal.
    """

    goal_id: str
    user_id: Optional[str]
    streak_type: StreakType
    current_streak: int = 0
    longest_streak: int = 0
    total_completions: int = 0
    last_activity_date: Optional[date] = None
    freeze_uses_remaining: int = 0
    # Optimistic concurrency token; 0 means "not yet persisted".
    version: int = 0

    @property
    def key(self) -> StreakKey:
        return (self.goal_id, self.user_id, self.streak_type)

    def copy(self, **changes) -> "StreakRecord":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["streak_type"] = self.streak_type.value
        data["last_activity_date"] = self.last_activity_date.isoformat() if self.last_activity_date else None
        data.pop("version")
        return data


@dataclass(frozen=True)
class StreakUpdate:
    record: StreakRecord
    status: StreakStatus
    broke: bool = False
    previous: Optional[StreakRecord] = None

    @property
    def changed(self) -> bool:
        return self.status not in ("unchanged", "pending_collective")


@dataclass
class StreakOutcome:
    goal_id: str
    user_id: str
    day: date
    updates: List[StreakUpdate] = field(default_factory=list)

    def for_type(self, streak_type: StreakType) -> Optional[StreakUpdate]:
        for update in self.updates:
            if update.record.streak_type == streak_type:
                return update
        return None

    def to_dict(self) -> dict:
        return {
            "goal_id": self.goal_id,
            "user_id": self.user_id,
            "day": self.day.isoformat(),
            "streaks": [
                {**u.record.to_dict(), "status": u.status, "broke": u.broke}
                for u in self.updates
            ],
        }
