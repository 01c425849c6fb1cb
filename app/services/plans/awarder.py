"""Point awarder for plan tasks.

Points are tied to transitions of ``user_plans.completed``:
- false -> true credits the task frequency's points
- true -> false debits the same amount (floor-clamped at zero)

Each transition is a conditional UPDATE on the plan row, so two concurrent
requests cannot both observe "not completed" and award twice. The ledger
change and the plan change commit together.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import get_game_config
from app.config.game import GameConfig
from app.models.domain import Task, UserPlan
from app.services.economy import ledger

logger = structlog.get_logger(__name__)


@dataclass
class CompletionResult:
    plan: UserPlan
    points_awarded: int


async def _task_frequency(session: AsyncSession, task_id: int) -> str | None:
    return await session.scalar(select(Task.frequency).where(Task.id == task_id))


async def get_plan(session: AsyncSession, user_id: int, task_id: int) -> UserPlan | None:
    """Fresh copy of a plan row, bypassing any stale identity-map state."""
    return await session.scalar(
        select(UserPlan)
        .where(UserPlan.user_id == user_id, UserPlan.task_id == task_id)
        .options(selectinload(UserPlan.task).selectinload(Task.article))
        .execution_options(populate_existing=True)
    )


def _plan_row(user_id: int, task_id: int):
    return (UserPlan.user_id == user_id, UserPlan.task_id == task_id)


async def complete_task(
    session: AsyncSession,
    user_id: int,
    task_id: int,
    cost: Decimal | float | None = None,
    now: datetime | None = None,
    config: GameConfig | None = None,
) -> CompletionResult | None:
    """
    Mark a plan task complete and award its points.

    Completing an already-completed task awards nothing and leaves
    ``completed_at`` untouched; a given ``cost`` is still recorded.

    Returns:
        The updated plan and points awarded, or None if the task is not in
        the user's plan.
    """
    config = config or get_game_config()
    now = now or datetime.now(timezone.utc)

    try:
        frequency = await _task_frequency(session, task_id)
        if frequency is None:
            await session.rollback()
            return None

        transitioned = await session.scalar(
            update(UserPlan)
            .where(*_plan_row(user_id, task_id), UserPlan.completed.is_(False))
            .values(completed=True, completed_at=now, cost=cost)
            .returning(UserPlan.id)
            .execution_options(synchronize_session=False)
        )

        points = 0
        if transitioned is not None:
            points = config.points_for(frequency)
            await ledger.credit(
                session,
                user_id,
                points,
                reason=f"Task completed ({frequency})",
                task_id=task_id,
            )
        elif cost is not None:
            await session.execute(
                update(UserPlan)
                .where(*_plan_row(user_id, task_id))
                .values(cost=cost)
                .execution_options(synchronize_session=False)
            )

        plan = await get_plan(session, user_id, task_id)
        if plan is None:
            await session.rollback()
            return None
        await session.commit()

    except Exception:
        await session.rollback()
        raise

    if points:
        logger.info(
            "task_completed",
            user_id=user_id,
            task_id=task_id,
            frequency=frequency,
            points=points,
        )
    return CompletionResult(plan=plan, points_awarded=points)


async def uncomplete_task(
    session: AsyncSession,
    user_id: int,
    task_id: int,
    config: GameConfig | None = None,
) -> UserPlan | None:
    """
    Revert a completed plan task and take its points back.

    Returns:
        The updated plan, or None if the task is not in the plan or is not
        completed.
    """
    config = config or get_game_config()

    try:
        frequency = await _task_frequency(session, task_id)
        if frequency is None:
            await session.rollback()
            return None

        transitioned = await session.scalar(
            update(UserPlan)
            .where(*_plan_row(user_id, task_id), UserPlan.completed.is_(True))
            .values(completed=False, completed_at=None, cost=None)
            .returning(UserPlan.id)
            .execution_options(synchronize_session=False)
        )
        if transitioned is None:
            await session.rollback()
            return None

        points = config.points_for(frequency)
        await ledger.debit(
            session,
            user_id,
            points,
            reason=f"Task uncompleted ({frequency})",
            task_id=task_id,
        )
        plan = await get_plan(session, user_id, task_id)
        await session.commit()

    except Exception:
        await session.rollback()
        raise

    logger.info(
        "task_uncompleted",
        user_id=user_id,
        task_id=task_id,
        frequency=frequency,
        points=-points,
    )
    return plan


async def toggle_task(
    session: AsyncSession,
    user_id: int,
    task_id: int,
    now: datetime | None = None,
    config: GameConfig | None = None,
) -> UserPlan | None:
    """Flip a plan task's completion with the same point effects as above."""
    plan = await get_plan(session, user_id, task_id)
    if plan is None:
        await session.rollback()
        return None

    if plan.completed:
        return await uncomplete_task(session, user_id, task_id, config=config)

    result = await complete_task(session, user_id, task_id, now=now, config=config)
    return result.plan if result else None
