"""Daily and weekly task reset.

At the start of every local day (00:00 Asia/Seoul) each completed daily plan
task is reverted and its points taken back; at the start of every local week
(Sunday 00:00) the same happens for weekly tasks. One-time tasks never reset.

The job can be polled at any time. Persisted markers record the last day and
week processed, and are written in the same transaction as the resets, so a
boundary is applied exactly once even across restarts. A missed boundary is
caught up on the next poll because the marker simply differs.

Rows are reset one savepoint at a time: a failing row is rolled back, logged
and skipped while the rest of the run commits.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_game_config
from app.config.game import GameConfig, TaskFrequency
from app.models.domain import Task, UserPlan
from app.services.economy import ledger
from app.services.plans.boundaries import daily_boundary, weekly_boundary
from app.services.scheduling.markers import get_marker, set_marker

logger = structlog.get_logger(__name__)

DAILY_MARKER = "daily_task_reset"
WEEKLY_MARKER = "weekly_task_reset"


@dataclass
class ResetResult:
    """Outcome of one reset run."""

    daily_boundary: date | None = None
    weekly_boundary: date | None = None
    rows_reset: int = 0
    rows_failed: int = 0
    points_removed: int = 0
    per_frequency: dict[str, int] = field(default_factory=dict)

    @property
    def did_work(self) -> bool:
        return self.daily_boundary is not None or self.weekly_boundary is not None

    def as_dict(self) -> dict[str, Any]:
        return {
            "daily_boundary": self.daily_boundary.isoformat() if self.daily_boundary else None,
            "weekly_boundary": self.weekly_boundary.isoformat() if self.weekly_boundary else None,
            "rows_reset": self.rows_reset,
            "rows_failed": self.rows_failed,
            "points_removed": self.points_removed,
            "per_frequency": self.per_frequency,
        }


async def _reset_row(
    session: AsyncSession, plan_id: int, user_id: int, task_id: int,
    frequency: str, points: int,
) -> bool:
    """Revert one plan row and debit its points. False if it was already reverted."""
    reverted = await session.scalar(
        update(UserPlan)
        .where(UserPlan.id == plan_id, UserPlan.completed.is_(True))
        .values(completed=False, completed_at=None, cost=None)
        .returning(UserPlan.id)
        .execution_options(synchronize_session=False)
    )
    if reverted is None:
        return False
    await ledger.debit(
        session,
        user_id,
        points,
        reason=f"Task reset ({frequency})",
        task_id=task_id,
    )
    return True


async def _reset_frequency(
    session: AsyncSession,
    frequency: TaskFrequency,
    boundary: datetime,
    config: GameConfig,
    result: ResetResult,
) -> None:
    rows = (
        await session.execute(
            select(UserPlan.id, UserPlan.user_id, UserPlan.task_id)
            .join(Task, Task.id == UserPlan.task_id)
            .where(
                Task.frequency == frequency.value,
                UserPlan.completed.is_(True),
                UserPlan.completed_at < boundary,
            )
            .order_by(UserPlan.id)
        )
    ).all()

    logger.info(
        "task_reset_candidates",
        frequency=frequency.value,
        boundary=boundary.isoformat(),
        count=len(rows),
    )

    points = config.points_for(frequency)
    reset = 0
    for plan_id, user_id, task_id in rows:
        try:
            async with session.begin_nested():
                if await _reset_row(
                    session, plan_id, user_id, task_id, frequency.value, points
                ):
                    reset += 1
        except Exception as e:
            result.rows_failed += 1
            logger.error(
                "task_reset_row_failed",
                plan_id=plan_id,
                user_id=user_id,
                frequency=frequency.value,
                error=str(e),
            )

    result.rows_reset += reset
    result.points_removed += reset * points
    result.per_frequency[frequency.value] = reset


async def run_task_reset(
    session: AsyncSession,
    now: datetime | None = None,
    config: GameConfig | None = None,
) -> ResetResult:
    """
    Apply any daily or weekly reset whose boundary has not been processed.

    Commits on success. A no-op when both markers are current.
    """
    config = config or get_game_config()
    now = now or datetime.now(timezone.utc)
    result = ResetResult()

    day, day_start = daily_boundary(now)
    week, week_start = weekly_boundary(now)

    try:
        if await get_marker(session, DAILY_MARKER, for_update=True) != day.isoformat():
            await _reset_frequency(session, TaskFrequency.DAILY, day_start, config, result)
            await set_marker(session, DAILY_MARKER, day.isoformat())
            result.daily_boundary = day

        if await get_marker(session, WEEKLY_MARKER, for_update=True) != week.isoformat():
            await _reset_frequency(session, TaskFrequency.WEEKLY, week_start, config, result)
            await set_marker(session, WEEKLY_MARKER, week.isoformat())
            result.weekly_boundary = week

        await session.commit()

    except Exception as e:
        await session.rollback()
        logger.error("task_reset_failed", error=str(e))
        raise

    if result.did_work:
        logger.info("task_reset_completed", **result.as_dict())
    return result
