"""Liveness and readiness probes."""

from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db, get_redis
from app.services.scheduling import settlement_backlog

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class ReadyCheck(BaseModel):
    status: str  # ok, warn, error
    message: str | None = None


class ReadyResponse(BaseModel):
    ready: bool
    checks: dict[str, ReadyCheck]


@router.get("/health", response_model=HealthResponse)
async def health():
    """Process is up and serving requests."""
    return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc))


async def _check_settlement(db: AsyncSession) -> ReadyCheck:
    backlog = await settlement_backlog(db)
    overdue = [entry for entry in backlog if entry.overdue]
    if overdue:
        dates = ", ".join(entry.race_date.isoformat() for entry in overdue)
        return ReadyCheck(status="warn", message=f"Unsettled races: {dates}")
    return ReadyCheck(status="ok")


@router.get("/ready", response_model=ReadyResponse)
async def ready(
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
):
    """
    Database and broker reachability, plus the settlement backlog.

    An overdue race is reported as a warning only. The API keeps serving
    while prices for an old race are missing.
    """
    checks: dict[str, ReadyCheck] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["db"] = ReadyCheck(status="ok")
        checks["settlement"] = await _check_settlement(db)
    except SQLAlchemyError as e:
        checks["db"] = ReadyCheck(status="error", message=str(e))

    try:
        await redis_client.ping()
        checks["redis"] = ReadyCheck(status="ok")
    except (RedisError, OSError) as e:
        checks["redis"] = ReadyCheck(status="error", message=str(e))

    return ReadyResponse(
        ready=all(check.status != "error" for check in checks.values()),
        checks=checks,
    )
