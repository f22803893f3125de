"""
Liveness and readiness checks.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from goaltrack.api.deps import get_tracker
from goaltrack.core.database import check_connection
from goaltrack.features.tracker import GoalTracker

logger = logging.getLogger("goaltrack")

root_router = APIRouter(tags=["health"])

REQUIRED_TABLES = ["goals", "goal_activities", "goal_members", "activity_completions", "streak_records"]


@root_router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@root_router.get("/readyz")
def readyz(tracker: GoalTracker = Depends(get_tracker)):
    """Readiness check: store backend reachable and tables present."""
    engine = tracker.stores.engine
    if engine is None:
        return {"status": "ok", "backend": "memory"}

    try:
        if not check_connection(engine):
            raise RuntimeError("connection check failed")
        inspector = inspect(engine)
        missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
    except Exception as e:
        logger.error(f"[readyz] readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})
    return {"status": "ok", "backend": "sql"}
