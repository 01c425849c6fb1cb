"""Race calendar.

Races are identified by their UTC calendar date. Their state is a pure
function of the current date: tomorrow's race takes bets, today's race is
running, and earlier races are completed and due for settlement.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.game import RaceStatus
from app.models.domain import BettingRace


@dataclass(frozen=True)
class RaceDates:
    """The three races visible at a given instant."""

    yesterday: date
    today: date
    tomorrow: date


def utc_today(now: datetime | None = None) -> date:
    """Current UTC calendar date."""
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date()


def race_dates(now: datetime | None = None) -> RaceDates:
    """Completed, running, and upcoming race dates at ``now``."""
    today = utc_today(now)
    return RaceDates(
        yesterday=today - timedelta(days=1),
        today=today,
        tomorrow=today + timedelta(days=1),
    )


def race_status(race_date: date, today: date) -> RaceStatus:
    """Derive a race's state from the calendar."""
    if race_date > today:
        return RaceStatus.UPCOMING
    if race_date == today:
        return RaceStatus.RACING
    return RaceStatus.COMPLETED


async def get_race(
    session: AsyncSession, race_date: date, for_update: bool = False
) -> BettingRace | None:
    """Load the race row for a date, optionally row-locked."""
    query = select(BettingRace).where(BettingRace.race_date == race_date)
    if for_update:
        query = query.with_for_update()
    return await session.scalar(query)


async def get_or_create_race(
    session: AsyncSession, race_date: date, for_update: bool = False
) -> BettingRace:
    """
    Load the race row for a date, creating it if needed.

    Creation happens in a savepoint so that losing an insert race to another
    transaction only discards the savepoint, not the caller's work.
    """
    race = await get_race(session, race_date, for_update=for_update)
    if race is not None:
        return race

    try:
        async with session.begin_nested():
            race = BettingRace(race_date=race_date)
            session.add(race)
    except IntegrityError:
        race = await get_race(session, race_date, for_update=for_update)
        if race is None:
            raise
    return race
