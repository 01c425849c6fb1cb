"""Betting settlement task.

Polls for completed races and settles them. Safe to run at any time:
settled races are skipped by their ``settled_at`` marker, and a race whose
prices are not yet available is simply retried on the next poll.
"""

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import get_task_session
from app.services.betting.settlement import settle_due_races
from app.services.price_feed import PriceFeedClient
from app.services.scheduling import record_job_run
from app.tasks import celery_app

logger = structlog.get_logger(__name__)

JOB_NAME = "check_bet_settlement"


@celery_app.task(bind=True, soft_time_limit=50, time_limit=58)
def check_bet_settlement(self):
    """
    Scheduled: Every minute
    Timeout: 1 minute

    1. Find yesterday's race and any older race with pending bets
    2. Fetch each race day's prices and pick the winner
    3. Settle its pending bets in one transaction
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_check_bet_settlement_async(self))
    finally:
        loop.close()


async def _check_bet_settlement_async(task):
    async with get_task_session() as session:
        async with PriceFeedClient() as feed:
            return await run_bet_settlement(session, feed, task_id=task.request.id)


async def run_bet_settlement(
    session: AsyncSession,
    feed,
    now: datetime | None = None,
    task_id: str | None = None,
) -> dict:
    """Settle due races and audit the run when anything was settled or failed."""
    started_at = datetime.now(timezone.utc)
    stats = {
        "races_settled": 0,
        "races_skipped": 0,
        "races_failed": 0,
        "bets_settled": 0,
        "total_payout": 0,
    }

    try:
        results = await settle_due_races(session, feed, now=now)
    except Exception as e:
        logger.error("bet_settlement_task_failed", error=str(e), task_id=task_id)
        await record_job_run(
            session, JOB_NAME, started_at, "failed", metadata=stats, error_message=str(e)
        )
        return stats

    for result in results:
        if result.status == "settled":
            stats["races_settled"] += 1
            stats["bets_settled"] += result.bets_settled
            stats["total_payout"] += result.total_payout
        elif result.status == "skipped_no_data":
            stats["races_skipped"] += 1
        elif result.status == "failed":
            stats["races_failed"] += 1

    if stats["races_settled"] or stats["races_failed"]:
        stats["races"] = [
            r.as_dict() for r in results if r.status in ("settled", "failed")
        ]
        errors = [f"{r.race_date.isoformat()}: {r.error}" for r in results if r.error]
        await record_job_run(
            session,
            JOB_NAME,
            started_at,
            "failed" if errors else "success",
            records_processed=stats["bets_settled"],
            metadata=stats,
            error_message="; ".join(errors) or None,
        )
        logger.info(
            "bet_settlement_task_complete",
            races=stats["races_settled"],
            failed=stats["races_failed"],
            bets=stats["bets_settled"],
            duration_seconds=(datetime.now(timezone.utc) - started_at).total_seconds(),
        )

    return stats
