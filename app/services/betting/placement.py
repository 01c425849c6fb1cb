"""Bet placement.

A user may stake points on one coin for tomorrow's race. The stake is
debited and the bet inserted in the same transaction, so either both apply
or neither does.

Validation order (first failure wins):
1. Stake is a positive integer no larger than the maximum
2. Coin is one of the four race coins
3. User exists and their balance covers the stake
4. User has no bet for tomorrow yet

Concurrency: checks 3 and 4 are repeated by the database itself. The debit
is a conditional UPDATE (balance >= stake), and the insert is guarded by the
unique (user_id, race_date) constraint, so two racing submissions cannot
both succeed or overdraw the balance.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_game_config
from app.config.game import BetStatus, GameConfig
from app.models.domain import Bet
from app.services.betting.errors import (
    DuplicateBetError,
    InsufficientPointsError,
    InvalidCoinError,
    InvalidStakeError,
    UserNotFoundError,
)
from app.services.betting.races import get_or_create_race, race_dates
from app.services.economy import ledger

logger = structlog.get_logger(__name__)


@dataclass
class PlacedBet:
    """Result of a successful placement."""

    bet: Bet
    coin_symbol: str
    remaining_points: int
    potential_payout: int


def validate_stake(stake: object, config: GameConfig) -> int:
    """Return the stake if it is a positive integer within the maximum.

    Integral floats (JSON ``100.0``) count as integers; booleans do not.
    """
    if isinstance(stake, float) and stake.is_integer():
        stake = int(stake)
    if isinstance(stake, bool) or not isinstance(stake, int) or stake <= 0:
        raise InvalidStakeError("Invalid stake amount")
    if stake > config.max_stake:
        raise InvalidStakeError(f"Maximum bet is {config.max_stake} points")
    return stake


async def get_user_bet(session: AsyncSession, user_id: int, race_date) -> Bet | None:
    """The user's bet for a race date, if any."""
    return await session.scalar(
        select(Bet).where(Bet.user_id == user_id, Bet.race_date == race_date)
    )


async def place_bet(
    session: AsyncSession,
    user_id: int,
    coin_id: str,
    stake: object,
    now: datetime | None = None,
    config: GameConfig | None = None,
) -> PlacedBet:
    """
    Place a bet on tomorrow's race.

    Args:
        session: Database session (committed on success, rolled back on failure)
        user_id: Betting user
        coin_id: Coin the user expects to gain the most
        stake: Points to stake
        now: Current instant (defaults to the wall clock)
        config: Game configuration (defaults to get_game_config())

    Returns:
        The created bet with remaining balance and potential payout.

    Raises:
        BettingError: A subclass naming the first failed precondition.
    """
    config = config or get_game_config()
    stake = validate_stake(stake, config)

    coin = config.get_coin(coin_id)
    if coin is None:
        raise InvalidCoinError("Invalid coin")

    race_date = race_dates(now).tomorrow

    try:
        balance = await ledger.get_balance(session, user_id)
        if balance is None:
            raise UserNotFoundError("User not found")
        if balance < stake:
            raise InsufficientPointsError("Insufficient points")

        if await get_user_bet(session, user_id, race_date) is not None:
            raise DuplicateBetError("You already have a bet for tomorrow")

        remaining = await ledger.try_debit(session, user_id, stake)
        if remaining is None:
            raise InsufficientPointsError("Insufficient points")

        await get_or_create_race(session, race_date)

        bet = Bet(
            user_id=user_id,
            race_date=race_date,
            coin_id=coin.id,
            stake=stake,
            payout=0,
            status=BetStatus.PENDING.value,
        )
        session.add(bet)
        await session.flush()
        await session.refresh(bet)

        await ledger.record_history(
            session,
            user_id,
            -stake,
            f"Bet placed on {coin.symbol} ({race_date.isoformat()})",
            bet_id=bet.id,
        )
        await session.commit()

    except IntegrityError:
        await session.rollback()
        logger.info("duplicate_bet_rejected", user_id=user_id, race_date=str(race_date))
        raise DuplicateBetError("You already have a bet for tomorrow")
    except Exception:
        await session.rollback()
        raise

    logger.info(
        "bet_placed",
        user_id=user_id,
        bet_id=bet.id,
        race_date=race_date.isoformat(),
        coin_id=coin.id,
        stake=stake,
        remaining_points=remaining,
    )

    return PlacedBet(
        bet=bet,
        coin_symbol=coin.symbol,
        remaining_points=remaining,
        potential_payout=stake * config.multiplier,
    )
