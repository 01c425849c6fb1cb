"""Daily coin race betting API endpoints."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import (
    get_current_user_id,
    get_db,
    get_optional_user_id,
    get_price_feed,
)
from app.config import get_game_config
from app.config.game import RaceStatus
from app.services.betting import (
    BettingError,
    get_betting_overview,
    get_leaderboard,
    place_bet,
)
from app.services.betting.overview import bet_view
from app.services.economy import get_balance
from app.services.price_feed import PriceFeedClient

router = APIRouter(prefix="/api/betting", tags=["betting"])
logger = structlog.get_logger(__name__)


class RaceCoinResponse(BaseModel):
    """One coin's line in a race."""

    model_config = ConfigDict(from_attributes=True)

    coin_id: str
    coin_name: str
    coin_symbol: str
    coin_image: str
    start_price: Decimal | None = None
    current_price: Decimal | None = None
    end_price: Decimal | None = None
    percent_change: Decimal | None = None
    is_winner: bool = False
    available: bool = True


class RaceResponse(BaseModel):
    """A race and its coins."""

    model_config = ConfigDict(from_attributes=True)

    race_date: date
    status: RaceStatus
    coins: list[RaceCoinResponse]
    winner_coin_id: str | None = None
    settled: bool = False


class BetResponse(BaseModel):
    """A user's bet."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    race_date: date
    coin_id: str
    coin_symbol: str
    coin_name: str
    stake: int
    payout: int
    status: str
    created_at: datetime | None = None
    settled_at: datetime | None = None


class BettingDataResponse(BaseModel):
    """Everything the betting page shows."""

    model_config = ConfigDict(from_attributes=True)

    active_race: RaceResponse
    yesterday_race: RaceResponse
    betting_race: RaceResponse
    user_bet: BetResponse | None = None
    user_bet_history: list[BetResponse]
    balance: int
    multiplier: int
    max_bet: int


class PlaceBetRequest(BaseModel):
    """Bet submission. The raw JSON stake is passed through to the service."""

    coin_id: str
    stake: Any = None


class PlaceBetResponse(BaseModel):
    """Result of a placed bet."""

    message: str
    bet: BetResponse
    remaining_points: int
    potential_payout: int


class BalanceResponse(BaseModel):
    points: int


class LeaderboardEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rank: int
    user_id: int
    username: str
    total_points: int
    total_bets: int
    wins: int
    losses: int
    win_rate: int
    total_winnings: int
    joined_at: datetime | None = None
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntryResponse]
    current_user_rank: LeaderboardEntryResponse | None = None
    total_users: int


@router.get("/data", response_model=BettingDataResponse)
async def get_betting_data(
    db: AsyncSession = Depends(get_db),
    feed: PriceFeedClient = Depends(get_price_feed),
    user_id: int | None = Depends(get_optional_user_id),
):
    """
    Get the betting page.

    Today's race with live prices and current leader, yesterday's completed
    race with its winner, and tomorrow's race open for bets. Signed-in users
    also get their bet for tomorrow, recent bets and balance.
    """
    overview = await get_betting_overview(db, feed, user_id=user_id)
    return BettingDataResponse.model_validate(overview)


@router.post("/bet", response_model=PlaceBetResponse)
async def create_bet(
    request: PlaceBetRequest,
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Place a bet on tomorrow's race."""
    try:
        placed = await place_bet(db, user_id, request.coin_id, request.stake)
    except BettingError as e:
        logger.info("bet_rejected", user_id=user_id, reason=str(e))
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return PlaceBetResponse(
        message="Bet placed successfully",
        bet=BetResponse.model_validate(bet_view(placed.bet, get_game_config())),
        remaining_points=placed.remaining_points,
        potential_payout=placed.potential_payout,
    )


@router.get("/balance", response_model=BalanceResponse)
async def balance(
    db: AsyncSession = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Get the caller's point balance."""
    return BalanceResponse(points=await get_balance(db, user_id) or 0)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    db: AsyncSession = Depends(get_db),
    user_id: int | None = Depends(get_optional_user_id),
    limit: int = Query(50, ge=1, le=100),
):
    """Users ranked by points, with betting stats."""
    board = await get_leaderboard(db, limit=limit, current_user_id=user_id)
    return LeaderboardResponse(
        leaderboard=[LeaderboardEntryResponse.model_validate(e) for e in board.entries],
        current_user_rank=(
            LeaderboardEntryResponse.model_validate(board.current_user_rank)
            if board.current_user_rank
            else None
        ),
        total_users=board.total_users,
    )
