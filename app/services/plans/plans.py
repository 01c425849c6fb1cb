"""User plan queries and membership changes."""

from dataclasses import dataclass
from decimal import Decimal

import structlog
from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config.game import TaskFrequency
from app.models.domain import Task, User, UserPlan
from app.services.plans.boundaries import month_bounds

logger = structlog.get_logger(__name__)


@dataclass
class UserStats:
    total_points: int = 0
    total_cost: Decimal = Decimal("0")
    completed_count: int = 0


def _with_task():
    return selectinload(UserPlan.task).selectinload(Task.article)


async def list_plan(session: AsyncSession, user_id: int) -> list[UserPlan]:
    """The user's plan, newest first, with tasks and articles loaded."""
    result = await session.scalars(
        select(UserPlan)
        .where(UserPlan.user_id == user_id)
        .options(_with_task())
        .order_by(UserPlan.added_at.desc(), UserPlan.id.desc())
    )
    return list(result)


async def get_task_ids(session: AsyncSession, user_id: int) -> list[int]:
    result = await session.scalars(
        select(UserPlan.task_id).where(UserPlan.user_id == user_id)
    )
    return list(result)


async def add_task(session: AsyncSession, user_id: int, task_id: int) -> UserPlan | None:
    """
    Add a task to the user's plan.

    Adding a task twice returns the existing row. Returns None when the task
    does not exist.
    """
    if await session.get(Task, task_id) is None:
        return None

    query = (
        select(UserPlan)
        .where(UserPlan.user_id == user_id, UserPlan.task_id == task_id)
        .options(_with_task())
    )
    plan = await session.scalar(query)
    if plan is not None:
        return plan

    try:
        async with session.begin_nested():
            session.add(UserPlan(user_id=user_id, task_id=task_id, completed=False))
    except IntegrityError:
        logger.debug("plan_add_raced", user_id=user_id, task_id=task_id)

    plan = await session.scalar(query.execution_options(populate_existing=True))
    await session.commit()
    logger.info("task_added_to_plan", user_id=user_id, task_id=task_id)
    return plan


async def remove_task(session: AsyncSession, user_id: int, task_id: int) -> bool:
    """
    Remove a task from the plan. Points already awarded are kept.

    Returns:
        True if a row was deleted.
    """
    result = await session.execute(
        delete(UserPlan)
        .where(UserPlan.user_id == user_id, UserPlan.task_id == task_id)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return result.rowcount > 0


async def get_user_stats(session: AsyncSession, user_id: int) -> UserStats:
    """Points, total spend and completed count for a user."""
    row = (
        await session.execute(
            select(
                User.total_points,
                func.coalesce(func.sum(UserPlan.cost), 0).label("total_cost"),
                func.count(case((UserPlan.completed.is_(True), 1))).label(
                    "completed_count"
                ),
            )
            .outerjoin(UserPlan, UserPlan.user_id == User.id)
            .where(User.id == user_id)
            .group_by(User.id, User.total_points)
        )
    ).first()
    if row is None:
        return UserStats()
    return UserStats(
        total_points=row.total_points or 0,
        total_cost=Decimal(str(row.total_cost or 0)),
        completed_count=row.completed_count or 0,
    )


async def get_calendar_data(
    session: AsyncSession, user_id: int, year: int, month: int
) -> list[UserPlan]:
    """
    Plan rows relevant to a local calendar month.

    Includes tasks completed during the month plus every recurring task
    added before the month ended, so the calendar can show expected work.
    """
    start, end = month_bounds(year, month)
    recurring = (TaskFrequency.DAILY.value, TaskFrequency.WEEKLY.value)
    result = await session.scalars(
        select(UserPlan)
        .join(Task, Task.id == UserPlan.task_id)
        .where(
            UserPlan.user_id == user_id,
            or_(
                and_(
                    UserPlan.completed.is_(True),
                    UserPlan.completed_at >= start,
                    UserPlan.completed_at < end,
                ),
                and_(Task.frequency.in_(recurring), UserPlan.added_at < end),
            ),
        )
        .options(_with_task())
        .order_by(UserPlan.completed_at.desc().nulls_last(), UserPlan.id)
    )
    return list(result)
