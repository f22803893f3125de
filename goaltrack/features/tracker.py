"""
goaltrack/features/tracker.py

GoalTracker wires stores, lifecycle, membership, ledger and streak engine
together. The API and the daily job both talk to this object; nothing else
holds module-level state.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from goaltrack.core.clock import Calendar, Clock, SystemClock
from goaltrack.features.events.emitter import EventEmitter
from goaltrack.features.groups.aggregator import GroupParticipationAggregator
from goaltrack.features.groups.membership import MembershipService
from goaltrack.features.ledger.service import ActivityLedger, CompletionResult
from goaltrack.features.lifecycle.guard import LifecyclePolicy
from goaltrack.features.lifecycle.service import LifecycleService
from goaltrack.features.streaks.engine import StreakEngine
from goaltrack.features.stores import Stores, build_stores, memory_stores
from goaltrack.models.streak import StreakRecord, StreakUpdate


class GoalTracker:
    def __init__(
        self,
        stores: Stores,
        *,
        emitter: Optional[EventEmitter] = None,
        clock: Optional[Clock] = None,
        policy: Optional[LifecyclePolicy] = None,
        group_threshold: float = 0.80,
        default_freeze_uses: int = 2,
        max_retries: int = 3,
        max_start_months: int = 2,
    ):
        self.stores = stores
        self.emitter = emitter or EventEmitter()
        self.clock = clock or SystemClock()
        self.policy = policy or LifecyclePolicy()

        self.aggregator = GroupParticipationAggregator(stores.goals, stores.completions, threshold=group_threshold)
        self.engine = StreakEngine(
            stores.goals,
            stores.streaks,
            self.aggregator,
            self.emitter,
            calendar=self.policy.calendar,
            clock=self.clock,
            default_freeze_uses=default_freeze_uses,
            max_retries=max_retries,
        )
        self.lifecycle = LifecycleService(
            stores.goals,
            stores.completions,
            stores.streaks,
            self.emitter,
            policy=self.policy,
            clock=self.clock,
            max_start_months=max_start_months,
            streak_engine=self.engine,
        )
        self.membership = MembershipService(stores.goals, clock=self.clock)
        self.ledger = ActivityLedger(stores.goals, stores.completions, self.engine, policy=self.policy, clock=self.clock)

    @classmethod
    def from_settings(cls, cfg, stores: Optional[Stores] = None, **kwargs) -> "GoalTracker":
        return cls(
            stores or build_stores(cfg),
            policy=LifecyclePolicy.from_settings(cfg),
            group_threshold=cfg.GROUP_SUCCESS_THRESHOLD,
            default_freeze_uses=cfg.DEFAULT_FREEZE_USES,
            max_retries=cfg.STREAK_UPDATE_MAX_RETRIES,
            max_start_months=cfg.MAX_START_DATE_MONTHS,
            **kwargs,
        )

    @classmethod
    def in_memory(cls, **kwargs) -> "GoalTracker":
        return cls(memory_stores(), **kwargs)

    @property
    def calendar(self) -> Calendar:
        return self.policy.calendar

    # Service-boundary operations -------------------------------------
    def record_completion(
        self,
        goal_id: Optional[str],
        user_id: str,
        activity_id: str,
        now: Optional[datetime] = None,
    ) -> CompletionResult:
        return self.ledger.record(user_id, activity_id, goal_id=goal_id, now=now)

    def uncomplete(self, activity_id: str, user_id: str, target_user_id: Optional[str] = None,
                   now: Optional[datetime] = None) -> bool:
        return self.ledger.uncomplete(user_id, activity_id, target_user_id=target_user_id, now=now)

    def use_freeze(self, goal_id: str, user_id: str, now: Optional[datetime] = None) -> StreakUpdate:
        return self.engine.use_freeze(goal_id, user_id, now=now)

    def get_streak(self, goal_id: str, user_id: Optional[str] = None) -> StreakRecord:
        return self.engine.get_streak(goal_id, user_id)

    def promote_pending(self, now: Optional[datetime] = None):
        return self.lifecycle.promote_pending(now)

    def record_missed_days(self, now: Optional[datetime] = None) -> List[StreakUpdate]:
        return self.engine.record_missed_days(now)
