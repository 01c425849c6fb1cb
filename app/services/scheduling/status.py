"""Read-only views of the scheduler's state.

Used by the readiness probe and the admin endpoints to answer two
questions: did the pollers run, and is anything waiting to be settled.
"""

from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.game import BetStatus
from app.models.domain import Bet, JobRun
from app.services.betting.races import race_dates


@dataclass
class BacklogEntry:
    """Pending bets on a race that has already finished."""

    race_date: date
    pending_bets: int
    pending_stake: int
    overdue: bool


async def settlement_backlog(
    session: AsyncSession, now: datetime | None = None
) -> list[BacklogEntry]:
    """
    Finished race dates that still have pending bets, oldest first.

    Yesterday's race is expected to show up here for a few minutes after
    midnight UTC until the next settlement poll. Anything older is marked
    ``overdue``: its prices never became available or settlement keeps
    failing.
    """
    yesterday = race_dates(now).yesterday
    rows = await session.execute(
        select(
            Bet.race_date,
            func.count(Bet.id),
            func.coalesce(func.sum(Bet.stake), 0),
        )
        .where(
            Bet.status == BetStatus.PENDING.value,
            Bet.race_date <= yesterday,
        )
        .group_by(Bet.race_date)
        .order_by(Bet.race_date)
    )
    return [
        BacklogEntry(
            race_date=race_date,
            pending_bets=count,
            pending_stake=int(stake),
            overdue=race_date < yesterday,
        )
        for race_date, count, stake in rows
    ]


async def recent_job_runs(
    session: AsyncSession, limit: int = 20, job_name: str | None = None
) -> list[JobRun]:
    """Newest audited job runs, optionally for one job."""
    query = select(JobRun).order_by(JobRun.started_at.desc(), JobRun.id.desc())
    if job_name:
        query = query.where(JobRun.job_name == job_name)
    result = await session.scalars(query.limit(max(1, min(limit, 200))))
    return list(result)


async def last_success(session: AsyncSession, job_name: str) -> datetime | None:
    """When a job last finished successfully."""
    return await session.scalar(
        select(func.max(JobRun.completed_at)).where(
            JobRun.job_name == job_name, JobRun.status == "success"
        )
    )
