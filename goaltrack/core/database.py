"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine construction with sane pooling defaults
- Session scope helper
- Table definitions for goals, activities, members, completions and streaks

Engines are built and handed to the stores that need them; nothing here
keeps a process-wide connection.
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, Date, DateTime, Boolean, Text, Index, UniqueConstraint, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import os


# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour


def get_database_url(cfg=None) -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url
    if cfg is None:
        from goaltrack.core.config import settings as cfg
    return cfg.DATABASE_URL


def build_engine(database_url: str) -> Engine:
    """
    Build a SQLAlchemy engine.

    SQLite URLs (used by tests) share one connection through StaticPool so
    in-memory databases survive across sessions.
    """
    if not database_url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=False,  # Set to True for SQL query logging
    )


@contextmanager
def session_scope(engine: Engine):
    """
    Context manager for database sessions.

    Usage:
        with session_scope(engine) as session:
            session.execute(...)
    """
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine: Engine) -> None:
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=engine)


def drop_all_tables(engine: Engine) -> None:
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    metadata.drop_all(bind=engine)


def check_connection(engine: Engine) -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        import logging
        logging.getLogger("goaltrack").warning(f"Database connection check failed: {e}")
        return False


goals = Table(
    'goals',
    metadata,
    Column('goal_id', String(100), primary_key=True),
    Column('owner_id', String(100), nullable=False, index=True),
    Column('type', String(30), nullable=False),
    Column('title', Text, nullable=False),
    Column('mode', String(20), nullable=False, server_default='individual'),
    Column('status', String(20), nullable=False, index=True),
    Column('start_date', Date, nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=True),
    Column('paused_at', DateTime(timezone=True), nullable=True),
    Column('partner_id', String(100), nullable=True, index=True),
    Column('frequency', String(20), nullable=True),  # recurring goals only
    # Promotion job scans pending goals by start date
    Index('idx_goals_status_start', 'status', 'start_date'),
)

goal_activities = Table(
    'goal_activities',
    metadata,
    Column('activity_id', String(100), primary_key=True),
    Column('goal_id', String(100), nullable=False, index=True),
    Column('title', Text, nullable=False),
    Column('assigned_to', String(100), nullable=True, index=True),
    Column('assigned_to_all', Boolean, nullable=False, server_default='false'),
)

goal_members = Table(
    'goal_members',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('goal_id', String(100), nullable=False, index=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('status', String(20), nullable=False),  # 'invited', 'accepted', 'declined'
    Column('invited_at', DateTime(timezone=True), nullable=True),
    Column('responded_at', DateTime(timezone=True), nullable=True),
    UniqueConstraint('goal_id', 'user_id', name='uq_goal_members_goal_user'),
)

# At most one row per (activity, user, calendar day): the idempotency boundary
activity_completions = Table(
    'activity_completions',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('activity_id', String(100), nullable=False),
    Column('goal_id', String(100), nullable=False),
    Column('user_id', String(100), nullable=False),
    Column('day', Date, nullable=False),
    Column('completed_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('activity_id', 'user_id', 'day', name='uq_activity_completions_key'),
    # Aggregator reads a whole goal's completions for one day
    Index('idx_activity_completions_goal_day', 'goal_id', 'day'),
)

# user_key is user_id, or '' for the collective group record (NULLs never collide in UNIQUE)
streak_records = Table(
    'streak_records',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('goal_id', String(100), nullable=False, index=True),
    Column('user_key', String(100), nullable=False),
    Column('user_id', String(100), nullable=True),
    Column('streak_type', String(20), nullable=False),
    Column('current_streak', Integer, nullable=False, server_default='0'),
    Column('longest_streak', Integer, nullable=False, server_default='0'),
    Column('total_completions', Integer, nullable=False, server_default='0'),
    Column('last_activity_date', Date, nullable=True),
    Column('freeze_uses_remaining', Integer, nullable=False, server_default='0'),
    Column('version', Integer, nullable=False, server_default='1'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
    UniqueConstraint('goal_id', 'user_key', 'streak_type', name='uq_streak_records_key'),
    # Missed-day sweep scans by last activity
    Index('idx_streak_records_last_activity', 'last_activity_date'),
)
