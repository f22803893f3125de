"""
goaltrack/features/streaks/store.py

Streak record storage with optimistic concurrency.

save(record, expected_version) is a compare-and-swap: it only succeeds if the
stored version still equals the one the caller read. expected_version == 0
means "insert, the record must not exist yet".
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from goaltrack.core.errors import ConcurrentModificationError
from goaltrack.models.streak import StreakKey, StreakRecord, StreakType


class StreakStore(ABC):
    @abstractmethod
    def get(self, goal_id: str, user_id: Optional[str], streak_type: StreakType) -> Optional[StreakRecord]:
        """Return a detached copy of the stored record, or None."""

    @abstractmethod
    def save(self, record: StreakRecord, expected_version: int) -> StreakRecord:
        """Persist record; returns the stored copy with its new version."""

    @abstractmethod
    def discard(self, record: StreakRecord) -> bool:
        """Remove a record only if it is still at record.version."""

    @abstractmethod
    def list_for_goal(self, goal_id: str) -> List[StreakRecord]: ...

    @abstractmethod
    def list_all(self) -> List[StreakRecord]: ...

    @abstractmethod
    def delete_for_goal(self, goal_id: str) -> int: ...


class InMemoryStreakStore(StreakStore):
    def __init__(self):
        self._records: Dict[StreakKey, StreakRecord] = {}
        self._lock = threading.Lock()

    def get(self, goal_id: str, user_id: Optional[str], streak_type: StreakType) -> Optional[StreakRecord]:
        with self._lock:
            record = self._records.get((goal_id, user_id, streak_type))
            return record.copy() if record else None

    def save(self, record: StreakRecord, expected_version: int) -> StreakRecord:
        with self._lock:
            current = self._records.get(record.key)
            current_version = current.version if current else 0
            if current_version != expected_version:
                raise ConcurrentModificationError(
                    f"Streak {record.streak_type.value} for goal {record.goal_id} changed concurrently "
                    f"(expected v{expected_version}, found v{current_version})"
                )
            stored = record.copy(version=expected_version + 1)
            self._records[record.key] = stored
            return stored.copy()

    def list_for_goal(self, goal_id: str) -> List[StreakRecord]:
        with self._lock:
            return [r.copy() for r in self._records.values() if r.goal_id == goal_id]

    def list_all(self) -> List[StreakRecord]:
        with self._lock:
            return [r.copy() for r in self._records.values()]

    def delete_for_goal(self, goal_id: str) -> int:
        with self._lock:
            keys = [k for k in self._records if k[0] == goal_id]
            for key in keys:
                del self._records[key]
            return len(keys)

    def discard(self, record: StreakRecord) -> bool:
        with self._lock:
            current = self._records.get(record.key)
            if current is None or current.version != record.version:
                return False
            del self._records[record.key]
            return True
