"""
goaltrack/features/stores.py

Store selection: SQL when a database URL is configured, else in-memory.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from goaltrack.core.database import build_engine, create_all_tables, get_database_url
from goaltrack.features.goals.store import GoalStore, InMemoryGoalStore
from goaltrack.features.goals.store_pg import SqlGoalStore
from goaltrack.features.ledger.store import CompletionStore, InMemoryCompletionStore
from goaltrack.features.ledger.store_pg import SqlCompletionStore
from goaltrack.features.streaks.store import InMemoryStreakStore, StreakStore
from goaltrack.features.streaks.store_pg import SqlStreakStore

logger = logging.getLogger("goaltrack")


@dataclass
class Stores:
    goals: GoalStore
    completions: CompletionStore
    streaks: StreakStore
    engine: Optional[Engine] = None

    @property
    def backend(self) -> str:
        return "sql" if self.engine is not None else "memory"


def memory_stores() -> Stores:
    return Stores(
        goals=InMemoryGoalStore(),
        completions=InMemoryCompletionStore(),
        streaks=InMemoryStreakStore(),
    )


def sql_stores(engine: Engine) -> Stores:
    create_all_tables(engine)
    return Stores(
        goals=SqlGoalStore(engine),
        completions=SqlCompletionStore(engine),
        streaks=SqlStreakStore(engine),
        engine=engine,
    )


def build_stores(cfg=None) -> Stores:
    url = get_database_url(cfg)
    if url:
        logger.info("Using SQL stores")
        return sql_stores(build_engine(url))
    logger.info("DATABASE_URL not set, using in-memory stores")
    return memory_stores()
