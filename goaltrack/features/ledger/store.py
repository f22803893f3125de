"""
goaltrack/features/ledger/store.py

Append-mostly completion storage keyed by (activity_id, user_id, day).
In-memory implementation; store_pg.py relies on the table's UNIQUE constraint instead.
"""

import threading
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional

from goaltrack.models.activity import ActivityCompletion, CompletionKey


class CompletionStore(ABC):
    @abstractmethod
    def insert(self, completion: ActivityCompletion) -> bool:
        """
        Insert a completion row.

        Returns:
            True  -> inserted by this call
            False -> a row with the same key already exists
        """

    @abstractmethod
    def get(self, key: CompletionKey) -> Optional[ActivityCompletion]: ...

    @abstractmethod
    def delete(self, key: CompletionKey) -> bool: ...

    @abstractmethod
    def list_for_day(self, goal_id: str, day: date, user_id: Optional[str] = None) -> List[ActivityCompletion]: ...

    @abstractmethod
    def delete_for_goal(self, goal_id: str) -> int: ...


class InMemoryCompletionStore(CompletionStore):
    def __init__(self):
        self._rows: Dict[CompletionKey, ActivityCompletion] = {}
        self._lock = threading.Lock()

    def insert(self, completion: ActivityCompletion) -> bool:
        with self._lock:
            if completion.key in self._rows:
                return False
            self._rows[completion.key] = completion
            return True

    def get(self, key: CompletionKey) -> Optional[ActivityCompletion]:
        return self._rows.get(key)

    def delete(self, key: CompletionKey) -> bool:
        with self._lock:
            return self._rows.pop(key, None) is not None

    def list_for_day(self, goal_id: str, day: date, user_id: Optional[str] = None) -> List[ActivityCompletion]:
        with self._lock:
            rows = list(self._rows.values())
        return [
            c for c in rows
            if c.goal_id == goal_id and c.day == day and (user_id is None or c.user_id == user_id)
        ]

    def delete_for_goal(self, goal_id: str) -> int:
        with self._lock:
            keys = [k for k, c in self._rows.items() if c.goal_id == goal_id]
            for key in keys:
                del self._rows[key]
            return len(keys)
