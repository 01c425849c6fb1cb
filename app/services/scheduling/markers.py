"""Persisted job markers.

A marker stores the last boundary a scheduled job processed. Reading it and
writing it inside the job's own transaction means a boundary is processed
at most once, across restarts and across workers.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.domain import JobMarker


async def get_marker(
    session: AsyncSession, job_name: str, for_update: bool = False
) -> str | None:
    """Last processed boundary for a job, if it has ever run."""
    query = select(JobMarker.last_boundary).where(JobMarker.job_name == job_name)
    if for_update:
        query = query.with_for_update()
    return await session.scalar(query)


async def set_marker(session: AsyncSession, job_name: str, boundary: str) -> None:
    """Record a processed boundary. Does not commit."""
    marker = await session.get(JobMarker, job_name)
    if marker is None:
        session.add(JobMarker(job_name=job_name, last_boundary=boundary))
    else:
        marker.last_boundary = boundary
    await session.flush()
