"""
goaltrack/features/events/emitter.py

Typed domain events and a synchronous emitter.
Achievement/notification collaborators subscribe here; the core never
formats or delivers notifications itself.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict

from goaltrack.models.goal import GoalStatus
from goaltrack.models.streak import StreakType

logger = logging.getLogger("goaltrack.events")


class DomainEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: str
    goal_id: str
    occurred_at: datetime
    schema_version: int = 1


class GoalStatusChanged(DomainEvent):
    event_type: str = "GoalStatusChanged"
    from_status: Optional[GoalStatus] = None
    to_status: GoalStatus


class StreakUpdated(DomainEvent):
    event_type: str = "StreakUpdated"
    user_id: Optional[str] = None
    streak_type: StreakType
    current: int
    longest: int
    broke: bool = False


class StreakBroken(DomainEvent):
    """Emitted alongside StreakUpdated(broke=True) with the lost length."""

    event_type: str = "StreakBroken"
    user_id: Optional[str] = None
    streak_type: StreakType
    previous_streak: int


class FreezeUsed(DomainEvent):
    event_type: str = "FreezeUsed"
    user_id: str
    streak_type: StreakType
    remaining: int


Handler = Callable[[DomainEvent], None]


class EventEmitter:
    """
    In-process publish/subscribe for domain events.

    Handlers subscribed to DomainEvent receive everything. A failing handler
    is logged and skipped; it never undoes the state change that produced
    the event.
    """

    def __init__(self):
        self._handlers: Dict[Type[DomainEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_cls: Type[DomainEvent], handler: Handler) -> None:
        self._handlers[event_cls].append(handler)

    def unsubscribe(self, event_cls: Type[DomainEvent], handler: Handler) -> None:
        if handler in self._handlers.get(event_cls, []):
            self._handlers[event_cls].remove(handler)

    def emit(self, event: DomainEvent) -> None:
        for event_cls, handlers in list(self._handlers.items()):
            if not isinstance(event, event_cls):
                continue
            for handler in list(handlers):
                try:
                    handler(event)
                except Exception:
                    logger.exception(
                        "event.handler_failed",
                        extra={
                            "goal_id": event.goal_id,
                            "event_type": event.event_type,
                            "error_code": "handler_error",
                            "handler": getattr(handler, "__name__", repr(handler)),
                        },
                    )

    def emit_all(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.emit(event)


class RecordingSubscriber:
    """Collects every event it sees. Used by tests and debugging tools."""

    def __init__(self, emitter: Optional[EventEmitter] = None):
        self.events: List[DomainEvent] = []
        if emitter is not None:
            emitter.subscribe(DomainEvent, self)

    def __call__(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_cls: Type[DomainEvent]) -> List[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_cls)]

    def clear(self) -> None:
        self.events.clear()
