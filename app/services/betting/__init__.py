"""Daily coin race betting module."""

from app.services.betting.errors import (
    BettingError,
    DuplicateBetError,
    InsufficientPointsError,
    InvalidCoinError,
    InvalidStakeError,
    UserNotFoundError,
)
from app.services.betting.leaderboard import get_leaderboard
from app.services.betting.overview import get_betting_overview
from app.services.betting.placement import PlacedBet, place_bet
from app.services.betting.settlement import (
    SettlementResult,
    determine_winner,
    settle_bets,
    settle_due_races,
    settle_race,
)

__all__ = [
    "BettingError",
    "DuplicateBetError",
    "InsufficientPointsError",
    "InvalidCoinError",
    "InvalidStakeError",
    "PlacedBet",
    "SettlementResult",
    "UserNotFoundError",
    "determine_winner",
    "get_betting_overview",
    "get_leaderboard",
    "place_bet",
    "settle_bets",
    "settle_due_races",
    "settle_race",
]
