"""Task period boundaries.

Task periods follow the reset zone (Asia/Seoul by default), not UTC: a new
day starts at local midnight and a new week at local midnight on Sunday.
Boundaries are returned as aware UTC instants so they compare directly with
the stored ``completed_at`` values.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from app.config import get_settings


def reset_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().reset_timezone)


def local_date(now: datetime | None = None, tz: ZoneInfo | None = None) -> date:
    """Calendar date in the reset zone at ``now``."""
    tz = tz or reset_zone()
    now = now or datetime.now(timezone.utc)
    return now.astimezone(tz).date()


def week_start_date(day: date) -> date:
    """The Sunday on or before ``day``."""
    # Monday is 0, Sunday is 6.
    return day - timedelta(days=(day.weekday() + 1) % 7)


def start_of_local_day(day: date, tz: ZoneInfo | None = None) -> datetime:
    """UTC instant of local midnight on ``day``."""
    tz = tz or reset_zone()
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def daily_boundary(now: datetime | None = None, tz: ZoneInfo | None = None) -> tuple[date, datetime]:
    """Current local day and the UTC instant it started."""
    tz = tz or reset_zone()
    day = local_date(now, tz)
    return day, start_of_local_day(day, tz)


def weekly_boundary(now: datetime | None = None, tz: ZoneInfo | None = None) -> tuple[date, datetime]:
    """Sunday starting the current local week and the UTC instant it started."""
    tz = tz or reset_zone()
    sunday = week_start_date(local_date(now, tz))
    return sunday, start_of_local_day(sunday, tz)


def month_bounds(year: int, month: int, tz: ZoneInfo | None = None) -> tuple[datetime, datetime]:
    """UTC instants [start, end) of a local calendar month."""
    tz = tz or reset_zone()
    first = date(year, month, 1)
    following = date(year + month // 12, month % 12 + 1, 1)
    return start_of_local_day(first, tz), start_of_local_day(following, tz)
