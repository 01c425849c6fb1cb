"""Job run audit log."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.domain import JobRun


async def record_job_run(
    session: AsyncSession,
    job_name: str,
    started_at: datetime,
    status: str,
    records_processed: int = 0,
    metadata: dict[str, Any] | None = None,
    error_message: str | None = None,
) -> JobRun:
    """Write a finished job run and commit it."""
    job_run = JobRun(
        job_name=job_name,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc),
        status=status,
        records_processed=records_processed,
        error_message=error_message,
        job_metadata=metadata,
    )
    session.add(job_run)
    await session.commit()
    return job_run
