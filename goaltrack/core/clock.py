"""
Clock and calendar arithmetic.

Every day boundary in goaltrack is cut in exactly one timezone
(settings.DAY_BOUNDARY_TZ, UTC by default). Naive datetimes are treated as UTC.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

# 1970-01-05 was a Monday; week indexes count whole weeks from this anchor.
_WEEK_ANCHOR = date(1970, 1, 5)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class Granularity(str, Enum):
    DAY = "day"
    WEEK = "week"


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """Clock pinned to a moment; advance() moves it forward."""

    def __init__(self, moment: datetime):
        self._moment = ensure_aware(moment)

    def now(self) -> datetime:
        return self._moment

    def set(self, moment: datetime) -> None:
        self._moment = ensure_aware(moment)

    def advance(self, **kwargs) -> datetime:
        self._moment = self._moment + timedelta(**kwargs)
        return self._moment


class Calendar:
    def __init__(self, tz: str = "UTC", week_start: int = 0):
        self.tz = ZoneInfo(tz)
        self.week_start = week_start
        self._week_anchor = _WEEK_ANCHOR + timedelta(days=week_start)

    def day_of(self, moment: datetime) -> date:
        return ensure_aware(moment).astimezone(self.tz).date()

    def today(self, now: Optional[datetime] = None) -> date:
        return self.day_of(now or utc_now())

    def start_of_day(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)

    @staticmethod
    def day_index(day: date) -> int:
        return day.toordinal()

    def week_index(self, day: date) -> int:
        return (day - self._week_anchor).days // 7

    def period_index(self, day: date, granularity: Granularity) -> int:
        if granularity == Granularity.WEEK:
            return self.week_index(day)
        return self.day_index(day)

    def gap(self, earlier: Optional[date], later: date, granularity: Granularity) -> Optional[int]:
        """Whole periods between two days; None when there is no earlier day."""
        if earlier is None:
            return None
        return self.period_index(later, granularity) - self.period_index(earlier, granularity)

    @staticmethod
    def previous_period(day: date, granularity: Granularity) -> date:
        step = 7 if granularity == Granularity.WEEK else 1
        return day - timedelta(days=step)

    @classmethod
    def from_settings(cls, cfg) -> "Calendar":
        return cls(tz=cfg.DAY_BOUNDARY_TZ, week_start=cfg.WEEK_START_DAY)
