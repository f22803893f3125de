"""Daily rollover: promote pending goals, then break streaks whose previous period went uncovered."""
from datetime import datetime
import logging
from typing import Optional

from goaltrack.core.config import settings
from goaltrack.features.tracker import GoalTracker

logger = logging.getLogger("goaltrack.workers.rollover")


def run_daily_rollover(tracker: GoalTracker, now: Optional[datetime] = None) -> dict:
    now = now or tracker.clock.now()
    promoted = tracker.promote_pending(now)
    changed = tracker.record_missed_days(now)
    broken = [u for u in changed if u.broke]

    summary = {
        "day": tracker.calendar.today(now).isoformat(),
        "promoted": len(promoted),
        "streaks_changed": len(changed),
        "streaks_broken": len(broken),
    }
    logger.info("[rollover] daily rollover complete", extra=summary)
    return summary


if __name__ == "__main__":
    result = run_daily_rollover(GoalTracker.from_settings(settings))
    print(result)
