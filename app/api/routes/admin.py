"""Operator endpoints: job triggers, the job audit log and the settlement backlog."""

from datetime import date, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_current_user_id, get_db
from app.models.domain import User
from app.services.scheduling import recent_job_runs, settlement_backlog

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = structlog.get_logger(__name__)

# Public job name -> registered Celery task. Both jobs are idempotent polls,
# so a manual run next to the beat schedule does no harm.
TRIGGERABLE_JOBS = {
    "check-bet-settlement": "app.tasks.betting.check_bet_settlement",
    "check-task-reset": "app.tasks.task_reset.check_task_reset",
}


class TriggeredJob(BaseModel):
    job: str
    celery_task_id: str
    status: str


class JobRunOut(BaseModel):
    id: int
    job_name: str
    status: str
    started_at: datetime
    completed_at: datetime | None
    records_processed: int
    error_message: str | None
    metadata: dict[str, Any] | None


class BacklogOut(BaseModel):
    race_date: date
    pending_bets: int
    pending_stake: int
    overdue: bool


async def require_admin(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> int:
    is_admin = await db.scalar(select(User.is_admin).where(User.id == user_id))
    if not is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user_id


@router.get("/tasks", response_model=dict[str, str])
async def list_jobs(admin_id: int = Depends(require_admin)):
    """Jobs that can be queued by hand."""
    return TRIGGERABLE_JOBS


@router.post("/trigger-task/{job}", response_model=TriggeredJob)
async def trigger_job(job: str, admin_id: int = Depends(require_admin)):
    """Queue one run of a scheduled job on the Celery workers."""
    celery_task = TRIGGERABLE_JOBS.get(job)
    if celery_task is None:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown task: {job}. Available: {sorted(TRIGGERABLE_JOBS)}",
        )

    from app.tasks import celery_app

    try:
        result = celery_app.send_task(celery_task)
    except Exception as e:
        logger.error("job_trigger_failed", job=job, error=str(e), admin_id=admin_id)
        raise HTTPException(status_code=503, detail=f"Could not queue {job}: {e}")

    logger.info("job_triggered", job=job, celery_task_id=result.id, admin_id=admin_id)
    return TriggeredJob(job=job, celery_task_id=result.id, status="submitted")


@router.get("/job-runs", response_model=list[JobRunOut])
async def job_runs(
    job_name: str | None = None,
    limit: int = Query(20, ge=1, le=200),
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Audit log of poller runs that did work or failed, newest first."""
    runs = await recent_job_runs(db, limit=limit, job_name=job_name)
    return [
        JobRunOut(
            id=run.id,
            job_name=run.job_name,
            status=run.status,
            started_at=run.started_at,
            completed_at=run.completed_at,
            records_processed=run.records_processed,
            error_message=run.error_message,
            metadata=run.job_metadata,
        )
        for run in runs
    ]


@router.get("/settlement-backlog", response_model=list[BacklogOut])
async def backlog(
    admin_id: int = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Finished races that still hold pending bets."""
    entries = await settlement_backlog(db)
    return [BacklogOut(**vars(entry)) for entry in entries]
