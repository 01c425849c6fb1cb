"""Unit tests for race dates and task period boundaries.

Races run on UTC days; task periods run on Asia/Seoul days with weeks
starting on Sunday.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.config.game import RaceStatus
from app.services.betting.races import race_dates, race_status, utc_today
from app.services.plans.boundaries import (
    daily_boundary,
    local_date,
    month_bounds,
    week_start_date,
    weekly_boundary,
)

SEOUL = ZoneInfo("Asia/Seoul")


class TestRaceDates:
    """Race dates follow the UTC calendar."""

    def test_dates_around_now(self):
        dates = race_dates(datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc))
        assert dates.yesterday == date(2026, 10, 17)
        assert dates.today == date(2026, 10, 18)
        assert dates.tomorrow == date(2026, 10, 19)

    def test_non_utc_instant_is_converted(self):
        """01:00 in Seoul on the 19th is still the 18th in UTC."""
        now = datetime(2026, 10, 19, 1, 0, tzinfo=SEOUL)
        assert utc_today(now) == date(2026, 10, 18)

    def test_month_rollover(self):
        dates = race_dates(datetime(2026, 12, 31, 23, 59, tzinfo=timezone.utc))
        assert dates.tomorrow == date(2027, 1, 1)

    def test_status_is_derived_from_calendar(self):
        today = date(2026, 10, 18)
        assert race_status(date(2026, 10, 19), today) == RaceStatus.UPCOMING
        assert race_status(today, today) == RaceStatus.RACING
        assert race_status(date(2026, 10, 17), today) == RaceStatus.COMPLETED
        assert race_status(date(2026, 1, 1), today) == RaceStatus.COMPLETED


class TestDailyBoundary:
    """A new task day starts at 00:00 Seoul time (15:00 UTC)."""

    def test_just_before_midnight_seoul(self):
        now = datetime(2026, 10, 18, 14, 59, tzinfo=timezone.utc)
        day, start = daily_boundary(now, SEOUL)
        assert day == date(2026, 10, 18)
        assert start == datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)

    def test_at_midnight_seoul(self):
        now = datetime(2026, 10, 18, 15, 0, tzinfo=timezone.utc)
        day, start = daily_boundary(now, SEOUL)
        assert day == date(2026, 10, 19)
        assert start == now

    def test_boundary_is_utc(self):
        _, start = daily_boundary(datetime(2026, 10, 18, tzinfo=timezone.utc), SEOUL)
        assert start.utcoffset() == timedelta(0)

    def test_local_date(self):
        assert local_date(datetime(2026, 10, 18, 16, 0, tzinfo=timezone.utc), SEOUL) == date(2026, 10, 19)


class TestWeeklyBoundary:
    """A new task week starts on Sunday at 00:00 Seoul time."""

    def test_week_start_date(self):
        # 2026-10-18 is a Sunday
        assert week_start_date(date(2026, 10, 18)) == date(2026, 10, 18)
        assert week_start_date(date(2026, 10, 21)) == date(2026, 10, 18)
        assert week_start_date(date(2026, 10, 24)) == date(2026, 10, 18)
        assert week_start_date(date(2026, 10, 17)) == date(2026, 10, 11)

    def test_saturday_night_seoul_is_previous_week(self):
        now = datetime(2026, 10, 17, 14, 0, tzinfo=timezone.utc)  # Sat 23:00 KST
        sunday, start = weekly_boundary(now, SEOUL)
        assert sunday == date(2026, 10, 11)
        assert start == datetime(2026, 10, 10, 15, 0, tzinfo=timezone.utc)

    def test_sunday_morning_seoul_starts_new_week(self):
        now = datetime(2026, 10, 17, 15, 30, tzinfo=timezone.utc)  # Sun 00:30 KST
        sunday, start = weekly_boundary(now, SEOUL)
        assert sunday == date(2026, 10, 18)
        assert start == datetime(2026, 10, 17, 15, 0, tzinfo=timezone.utc)


class TestMonthBounds:
    """Calendar months are interpreted in Seoul time."""

    def test_regular_month(self):
        start, end = month_bounds(2026, 10, SEOUL)
        assert start == datetime(2026, 9, 30, 15, 0, tzinfo=timezone.utc)
        assert end == datetime(2026, 10, 31, 15, 0, tzinfo=timezone.utc)

    def test_december_rolls_into_next_year(self):
        start, end = month_bounds(2026, 12, SEOUL)
        assert start == datetime(2026, 11, 30, 15, 0, tzinfo=timezone.utc)
        assert end == datetime(2026, 12, 31, 15, 0, tzinfo=timezone.utc)
