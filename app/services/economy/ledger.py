"""Point ledger.

All mutations of ``users.total_points`` go through this module. Each one is a
single UPDATE evaluated by the database against the current row value, so
concurrent writers cannot lose updates, and every debit is floor-clamped at
zero in SQL rather than computed from an earlier read.

None of these functions commit: the caller owns the transaction, which is
what lets bet placement, settlement, and task resets apply balance changes
atomically with their own writes.
"""

import structlog
from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.domain import PointHistory, User
from app.models.functions import greatest

logger = structlog.get_logger(__name__)


def _check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise ValueError(f"Point amounts must be non-negative integers, got {amount!r}")


async def record_history(
    session: AsyncSession,
    user_id: int,
    points: int,
    reason: str,
    task_id: int | None = None,
    bet_id: int | None = None,
) -> None:
    """Append a row to the point history."""
    await session.execute(
        insert(PointHistory).values(
            user_id=user_id,
            task_id=task_id,
            bet_id=bet_id,
            points=points,
            reason=reason,
        )
    )


async def get_balance(session: AsyncSession, user_id: int) -> int | None:
    """Current balance, or None if the user does not exist."""
    return await session.scalar(select(User.total_points).where(User.id == user_id))


async def credit(
    session: AsyncSession,
    user_id: int,
    amount: int,
    reason: str | None = None,
    task_id: int | None = None,
    bet_id: int | None = None,
) -> int | None:
    """
    Add points to a user's balance.

    Returns:
        The new balance, or None if the user does not exist.
    """
    _check_amount(amount)
    new_balance = await session.scalar(
        update(User)
        .where(User.id == user_id)
        .values(total_points=User.total_points + amount)
        .returning(User.total_points)
        .execution_options(synchronize_session=False)
    )
    if new_balance is not None and reason:
        await record_history(session, user_id, amount, reason, task_id, bet_id)
    return new_balance


async def debit(
    session: AsyncSession,
    user_id: int,
    amount: int,
    reason: str | None = None,
    task_id: int | None = None,
    bet_id: int | None = None,
) -> int | None:
    """
    Remove points from a user's balance, never going below zero.

    The history row records the requested amount even when the clamp
    absorbs part of it.

    Returns:
        The new balance, or None if the user does not exist.
    """
    _check_amount(amount)
    new_balance = await session.scalar(
        update(User)
        .where(User.id == user_id)
        .values(total_points=greatest(0, User.total_points - amount))
        .returning(User.total_points)
        .execution_options(synchronize_session=False)
    )
    if new_balance is not None and reason:
        await record_history(session, user_id, -amount, reason, task_id, bet_id)
    return new_balance


async def try_debit(session: AsyncSession, user_id: int, amount: int) -> int | None:
    """
    Remove exactly ``amount`` points if, and only if, the balance covers it.

    The balance check and the decrement are one statement, closing the
    check-then-spend race between two concurrent spends by the same user.

    Returns:
        The new balance, or None if the user is missing or short of points.
    """
    _check_amount(amount)
    return await session.scalar(
        update(User)
        .where(User.id == user_id, User.total_points >= amount)
        .values(total_points=User.total_points - amount)
        .returning(User.total_points)
        .execution_options(synchronize_session=False)
    )
