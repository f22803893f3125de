from datetime import date, datetime, timedelta, timezone

from goaltrack.core.clock import Calendar, FixedClock, Granularity, ensure_aware


def test_naive_datetimes_are_treated_as_utc():
    moment = ensure_aware(datetime(2024, 3, 4, 23, 30))
    assert moment.tzinfo == timezone.utc


def test_day_boundary_follows_configured_timezone():
    late_utc = datetime(2024, 3, 4, 23, 30, tzinfo=timezone.utc)

    assert Calendar("UTC").day_of(late_utc) == date(2024, 3, 4)
    # Tokyo is UTC+9, so 23:30 UTC is already the next calendar day there.
    assert Calendar("Asia/Tokyo").day_of(late_utc) == date(2024, 3, 5)


def test_start_of_day_is_midnight_in_calendar_tz():
    start = Calendar("UTC").start_of_day(date(2024, 3, 4))
    assert start == datetime(2024, 3, 4, 0, 0, tzinfo=timezone.utc)


def test_day_gap_counts_calendar_days():
    cal = Calendar()
    assert cal.gap(None, date(2024, 3, 4), Granularity.DAY) is None
    assert cal.gap(date(2024, 3, 4), date(2024, 3, 4), Granularity.DAY) == 0
    assert cal.gap(date(2024, 2, 28), date(2024, 3, 1), Granularity.DAY) == 2  # leap year


def test_week_index_respects_week_start():
    monday_start = Calendar(week_start=0)
    # Sunday 2024-03-10 and Monday 2024-03-11 straddle a Monday week boundary.
    assert monday_start.gap(date(2024, 3, 10), date(2024, 3, 11), Granularity.WEEK) == 1
    assert monday_start.gap(date(2024, 3, 4), date(2024, 3, 10), Granularity.WEEK) == 0

    sunday_start = Calendar(week_start=6)
    assert sunday_start.gap(date(2024, 3, 10), date(2024, 3, 11), Granularity.WEEK) == 0
    assert sunday_start.gap(date(2024, 3, 9), date(2024, 3, 10), Granularity.WEEK) == 1


def test_previous_period():
    assert Calendar.previous_period(date(2024, 3, 4), Granularity.DAY) == date(2024, 3, 3)
    assert Calendar.previous_period(date(2024, 3, 4), Granularity.WEEK) == date(2024, 2, 26)


def test_fixed_clock_advances():
    clock = FixedClock(datetime(2024, 3, 4, 9, 0))
    clock.advance(days=1, hours=2)
    assert clock.now() == datetime(2024, 3, 5, 11, 0, tzinfo=timezone.utc)
    assert clock.now() - timedelta(days=1) == datetime(2024, 3, 4, 11, 0, tzinfo=timezone.utc)
