import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional

class Settings(BaseSettings):
    # Environment
    ENV: str = "development"
    CONFIG_STRICT: bool = False

    # Database (unset = in-memory stores)
    DATABASE_URL: Optional[str] = None
    TEST_DATABASE_URL: Optional[str] = None

    # Calendar policy: one timezone cuts every calendar day
    DAY_BOUNDARY_TZ: str = "UTC"
    WEEK_START_DAY: int = 0  # 0 = Monday ... 6 = Sunday

    # Lifecycle windows
    EDIT_WINDOW_HOURS: int = 5
    DELETE_WINDOW_HOURS: int = 24
    MAX_START_DATE_MONTHS: int = 2

    # Streaks
    GROUP_SUCCESS_THRESHOLD: float = 0.80
    DEFAULT_FREEZE_USES: int = 2
    STREAK_UPDATE_MAX_RETRIES: int = 3

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
settings = Settings()


def validate_config(strict: Optional[bool] = None, settings_obj: Optional[Settings] = None, logger: Optional[logging.Logger] = None) -> bool:
    """Validate streak and calendar configuration.

    In strict mode raise RuntimeError; otherwise emit warnings only.
    """
    cfg = settings_obj or settings
    log = logger or logging.getLogger("goaltrack")
    strict_mode = strict if strict is not None else getattr(cfg, "CONFIG_STRICT", False)

    problems = []
    if not 0 < cfg.GROUP_SUCCESS_THRESHOLD <= 1:
        problems.append("GROUP_SUCCESS_THRESHOLD must be in (0, 1]")
    if cfg.EDIT_WINDOW_HOURS < 0 or cfg.DELETE_WINDOW_HOURS < 0:
        problems.append("lifecycle windows must be non-negative")
    if not 0 <= cfg.WEEK_START_DAY <= 6:
        problems.append("WEEK_START_DAY must be between 0 and 6")
    if cfg.DEFAULT_FREEZE_USES < 0:
        problems.append("DEFAULT_FREEZE_USES must be non-negative")
    try:
        ZoneInfo(cfg.DAY_BOUNDARY_TZ)
    except (ZoneInfoNotFoundError, ValueError):
        problems.append(f"Unknown DAY_BOUNDARY_TZ: {cfg.DAY_BOUNDARY_TZ}")

    if problems:
        message = f"Invalid configuration: {'; '.join(problems)}"
        if strict_mode:
            raise RuntimeError(message)
        log.warning(message)
        return False

    return True
