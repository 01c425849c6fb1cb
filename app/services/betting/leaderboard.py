"""Points leaderboard with per-user betting statistics."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.game import BetStatus
from app.models.domain import Bet, User

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: int
    username: str
    total_points: int
    total_bets: int
    wins: int
    losses: int
    win_rate: int
    total_winnings: int
    joined_at: datetime | None
    is_current_user: bool = False


@dataclass
class Leaderboard:
    entries: list[LeaderboardEntry]
    current_user_rank: LeaderboardEntry | None
    total_users: int


def _ranked_users():
    """Users with a positive balance, ranked by points."""
    return (
        select(
            User.id,
            User.username,
            User.total_points,
            User.created_at,
            func.row_number().over(order_by=(User.total_points.desc(), User.id)).label("rank"),
        )
        .where(User.total_points > 0)
        .subquery()
    )


def _bet_stats():
    return (
        select(
            Bet.user_id,
            func.count(Bet.id).label("total_bets"),
            func.count(case((Bet.status == BetStatus.WON.value, 1))).label("wins"),
            func.count(case((Bet.status == BetStatus.LOST.value, 1))).label("losses"),
            func.coalesce(
                func.sum(case((Bet.status == BetStatus.WON.value, Bet.payout), else_=0)),
                0,
            ).label("total_winnings"),
        )
        .group_by(Bet.user_id)
        .subquery()
    )


def _entry(row, current_user_id: int | None) -> LeaderboardEntry:
    total_bets = row.total_bets or 0
    wins = row.wins or 0
    return LeaderboardEntry(
        rank=row.rank,
        user_id=row.id,
        username=row.username,
        total_points=row.total_points,
        total_bets=total_bets,
        wins=wins,
        losses=row.losses or 0,
        win_rate=round(wins / total_bets * 100) if total_bets else 0,
        total_winnings=row.total_winnings or 0,
        joined_at=row.created_at,
        is_current_user=row.id == current_user_id,
    )


async def get_leaderboard(
    session: AsyncSession,
    limit: int = DEFAULT_LIMIT,
    current_user_id: int | None = None,
) -> Leaderboard:
    """
    Top users by points.

    The caller's own entry is reported separately when it falls outside the
    requested page.
    """
    limit = max(1, min(limit, MAX_LIMIT))
    ranked = _ranked_users()
    stats = _bet_stats()

    query = (
        select(
            ranked.c.id,
            ranked.c.username,
            ranked.c.total_points,
            ranked.c.created_at,
            ranked.c.rank,
            stats.c.total_bets,
            stats.c.wins,
            stats.c.losses,
            stats.c.total_winnings,
        )
        .outerjoin(stats, stats.c.user_id == ranked.c.id)
        .order_by(ranked.c.rank)
    )

    rows = (await session.execute(query.limit(limit))).all()
    entries = [_entry(row, current_user_id) for row in rows]

    current = None
    if current_user_id is not None and not any(e.is_current_user for e in entries):
        row = (
            await session.execute(query.where(ranked.c.id == current_user_id))
        ).first()
        if row is not None:
            current = _entry(row, current_user_id)

    total_users = await session.scalar(
        select(func.count(User.id)).where(User.total_points > 0)
    )
    return Leaderboard(
        entries=entries, current_user_rank=current, total_users=total_users or 0
    )
