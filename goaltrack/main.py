import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

# Load env before settings are read
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from goaltrack.api import activities, goals, health, streaks
from goaltrack.core.config import settings, validate_config
from goaltrack.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_error_handler,
    unhandled_exception_handler,
)
from goaltrack.core.logging import configure_logging
from goaltrack.core.middleware.request_id import RequestIdMiddleware
from goaltrack.features.tracker import GoalTracker


def create_app(tracker: Optional[GoalTracker] = None) -> FastAPI:
    """Build the API. Tests pass their own tracker; otherwise one is built from settings."""
    configure_logging(settings.ENV)
    validate_config(strict=getattr(settings, "CONFIG_STRICT", False))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger = logging.getLogger("goaltrack")
        logger.info(f"Starting goaltrack ({app.state.tracker.stores.backend} stores)...")
        try:
            yield
        finally:
            logger.info("Stopping goaltrack...")

    app = FastAPI(title="goaltrack", lifespan=lifespan)
    app.state.tracker = tracker or GoalTracker.from_settings(settings)

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(goals.router)
    app.include_router(activities.router)
    app.include_router(streaks.router)
    app.include_router(health.root_router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
