"""Integration tests for bet placement.

CRITICAL TESTS:
- Stake is debited and the bet stored together, or neither happens
- At most one bet per user per race date
- A rejected placement never changes the balance
"""

import pytest
from sqlalchemy import func, select
from support import NOW, TOMORROW, balance_of

from app.models.domain import Bet, BettingRace, PointHistory
from app.services.betting import (
    DuplicateBetError,
    InsufficientPointsError,
    InvalidCoinError,
    InvalidStakeError,
    UserNotFoundError,
    place_bet,
)


async def _bet_count(session, user_id: int) -> int:
    return await session.scalar(select(func.count(Bet.id)).where(Bet.user_id == user_id))


class TestPlaceBet:
    async def test_successful_bet(self, session, make_user):
        user_id = await make_user(points=1000)

        placed = await place_bet(session, user_id, "btc", 200, now=NOW)

        assert placed.remaining_points == 800
        assert placed.potential_payout == 800
        assert placed.coin_symbol == "BTC"
        assert placed.bet.race_date == TOMORROW
        assert placed.bet.status == "pending"
        assert placed.bet.payout == 0
        assert await balance_of(session, user_id) == 800

    async def test_race_row_created_for_tomorrow(self, session, make_user):
        user_id = await make_user(points=1000)
        await place_bet(session, user_id, "eth", 10, now=NOW)

        race = await session.scalar(
            select(BettingRace).where(BettingRace.race_date == TOMORROW)
        )
        assert race is not None
        assert race.settled_at is None

    async def test_history_records_stake(self, session, make_user):
        user_id = await make_user(points=1000)
        placed = await place_bet(session, user_id, "sol", 250, now=NOW)

        row = (
            await session.execute(
                select(PointHistory.points, PointHistory.bet_id).where(
                    PointHistory.user_id == user_id
                )
            )
        ).one()
        assert row == (-250, placed.bet.id)

    async def test_whole_balance_can_be_staked(self, session, make_user):
        user_id = await make_user(points=300)
        placed = await place_bet(session, user_id, "doge", 300, now=NOW)
        assert placed.remaining_points == 0


class TestPlaceBetRejections:
    async def test_second_bet_rejected_without_debit(self, session, make_user):
        user_id = await make_user(points=1000)
        await place_bet(session, user_id, "btc", 100, now=NOW)

        with pytest.raises(DuplicateBetError, match="already have a bet"):
            await place_bet(session, user_id, "eth", 100, now=NOW)

        assert await balance_of(session, user_id) == 900
        assert await _bet_count(session, user_id) == 1

    async def test_insufficient_points(self, session, make_user):
        user_id = await make_user(points=50)
        with pytest.raises(InsufficientPointsError):
            await place_bet(session, user_id, "btc", 51, now=NOW)
        assert await balance_of(session, user_id) == 50
        assert await _bet_count(session, user_id) == 0

    async def test_invalid_coin(self, session, make_user):
        user_id = await make_user(points=1000)
        with pytest.raises(InvalidCoinError):
            await place_bet(session, user_id, "xrp", 100, now=NOW)
        assert await balance_of(session, user_id) == 1000

    @pytest.mark.parametrize("stake", [0, -10, 2.5, "100", None])
    async def test_invalid_stake(self, session, make_user, stake):
        user_id = await make_user(points=1000)
        with pytest.raises(InvalidStakeError, match="Invalid stake amount"):
            await place_bet(session, user_id, "btc", stake, now=NOW)
        assert await balance_of(session, user_id) == 1000

    async def test_stake_above_maximum(self, session, make_user):
        user_id = await make_user(points=5000)
        with pytest.raises(InvalidStakeError, match="Maximum bet is 1000 points"):
            await place_bet(session, user_id, "btc", 1001, now=NOW)
        assert await balance_of(session, user_id) == 5000

    async def test_unknown_user(self, session):
        with pytest.raises(UserNotFoundError):
            await place_bet(session, 4242, "btc", 100, now=NOW)

    async def test_stake_checked_before_coin(self, session, make_user):
        """First failing precondition wins."""
        user_id = await make_user(points=0)
        with pytest.raises(InvalidStakeError):
            await place_bet(session, user_id, "xrp", 5000, now=NOW)

    async def test_coin_checked_before_balance(self, session, make_user):
        user_id = await make_user(points=0)
        with pytest.raises(InvalidCoinError):
            await place_bet(session, user_id, "xrp", 100, now=NOW)

    async def test_balance_checked_before_duplicate(self, session, make_user):
        user_id = await make_user(points=100)
        await place_bet(session, user_id, "btc", 100, now=NOW)
        with pytest.raises(InsufficientPointsError):
            await place_bet(session, user_id, "btc", 100, now=NOW)
