"""Daily / weekly task reset task."""

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import get_task_session
from app.services.plans.reset import run_task_reset
from app.services.scheduling import record_job_run
from app.tasks import celery_app

logger = structlog.get_logger(__name__)

JOB_NAME = "check_task_reset"


@celery_app.task(bind=True, soft_time_limit=50, time_limit=58)
def check_task_reset(self):
    """
    Scheduled: Every minute
    Timeout: 1 minute

    Applies the daily (00:00 KST) and weekly (Sunday 00:00 KST) resets once
    per boundary, guarded by persisted markers.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(_check_task_reset_async(self))
    finally:
        loop.close()


async def _check_task_reset_async(task):
    async with get_task_session() as session:
        return await run_task_reset_job(session, task_id=task.request.id)


async def run_task_reset_job(
    session: AsyncSession,
    now: datetime | None = None,
    task_id: str | None = None,
) -> dict:
    """Run the reset and audit it when a boundary was processed or it failed."""
    started_at = datetime.now(timezone.utc)

    try:
        result = await run_task_reset(session, now=now)
    except Exception as e:
        logger.error("task_reset_task_failed", error=str(e), task_id=task_id)
        await record_job_run(
            session, JOB_NAME, started_at, "failed", error_message=str(e)
        )
        return {"status": "failed"}

    stats = result.as_dict()
    if result.did_work:
        await record_job_run(
            session,
            JOB_NAME,
            started_at,
            "success",
            records_processed=result.rows_reset,
            metadata=stats,
        )
    return stats
