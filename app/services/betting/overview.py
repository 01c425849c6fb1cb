"""Betting page overview.

Assembles the three visible races (yesterday completed, today racing,
tomorrow open for bets) together with the caller's bet, recent history and
balance. Prices come live from the feed; the database only holds bets and
race settlement metadata.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_game_config
from app.config.game import GameConfig, RaceStatus
from app.models.domain import Bet
from app.services.betting.placement import get_user_bet
from app.services.betting.races import get_race, race_dates
from app.services.betting.settlement import determine_winner
from app.services.economy import ledger
from app.services.price_feed.client import CoinPrice

HISTORY_LIMIT = 20


@dataclass
class RaceCoinView:
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


@dataclass
class RaceView:
    race_date: date
    status: RaceStatus
    coins: list[RaceCoinView]
    winner_coin_id: str | None = None
    settled: bool = False


@dataclass
class BetView:
    id: int
    race_date: date
    coin_id: str
    coin_symbol: str
    coin_name: str
    stake: int
    payout: int
    status: str
    created_at: datetime | None
    settled_at: datetime | None


@dataclass
class BettingOverview:
    active_race: RaceView
    yesterday_race: RaceView
    betting_race: RaceView
    multiplier: int
    max_bet: int
    balance: int = 0
    user_bet: BetView | None = None
    user_bet_history: list[BetView] = field(default_factory=list)


def bet_view(bet: Bet, config: GameConfig) -> BetView:
    coin = config.get_coin(bet.coin_id)
    return BetView(
        id=bet.id,
        race_date=bet.race_date,
        coin_id=bet.coin_id,
        coin_symbol=coin.symbol if coin else bet.coin_id,
        coin_name=coin.name if coin else bet.coin_id,
        stake=bet.stake,
        payout=bet.payout,
        status=bet.status,
        created_at=bet.created_at,
        settled_at=bet.settled_at,
    )


def _live_race(race_date: date, prices: list[CoinPrice]) -> RaceView:
    # Current leader, same tie-break as settlement.
    leader = determine_winner(prices)
    coins = [
        RaceCoinView(
            coin_id=p.id,
            coin_name=p.name,
            coin_symbol=p.symbol,
            coin_image=p.image,
            start_price=p.open_price,
            current_price=p.current_price,
            percent_change=p.percent_change,
            is_winner=p.id == leader,
            available=p.available,
        )
        for p in prices
    ]
    return RaceView(race_date=race_date, status=RaceStatus.RACING, coins=coins)


def _completed_race(
    race_date: date, prices: list[CoinPrice], winner_coin_id: str | None, settled: bool
) -> RaceView:
    winner = winner_coin_id or determine_winner(prices)
    coins = []
    for p in prices:
        end_price = p.close_price if p.close_price is not None else p.current_price
        coins.append(
            RaceCoinView(
                coin_id=p.id,
                coin_name=p.name,
                coin_symbol=p.symbol,
                coin_image=p.image,
                start_price=p.open_price,
                current_price=end_price,
                end_price=end_price,
                percent_change=p.percent_change,
                is_winner=p.id == winner,
                available=p.available,
            )
        )
    return RaceView(
        race_date=race_date,
        status=RaceStatus.COMPLETED,
        coins=coins,
        winner_coin_id=winner,
        settled=settled,
    )


def _upcoming_race(race_date: date, config: GameConfig) -> RaceView:
    coins = [
        RaceCoinView(
            coin_id=c.id,
            coin_name=c.name,
            coin_symbol=c.symbol,
            coin_image=c.image,
        )
        for c in config.coins
    ]
    return RaceView(race_date=race_date, status=RaceStatus.UPCOMING, coins=coins)


async def get_betting_overview(
    session: AsyncSession,
    feed,
    user_id: int | None = None,
    now: datetime | None = None,
    config: GameConfig | None = None,
) -> BettingOverview:
    """
    Build the betting page for an optional user.

    Anonymous callers get the races only, with a zero balance.
    """
    config = config or get_game_config()
    dates = race_dates(now)

    today_prices, yesterday_prices = await asyncio.gather(
        feed.get_today_prices(),
        feed.get_day_prices(dates.yesterday),
    )

    yesterday = await get_race(session, dates.yesterday)
    overview = BettingOverview(
        active_race=_live_race(dates.today, today_prices),
        yesterday_race=_completed_race(
            dates.yesterday,
            yesterday_prices,
            yesterday.winner_coin_id if yesterday else None,
            settled=bool(yesterday and yesterday.settled_at),
        ),
        betting_race=_upcoming_race(dates.tomorrow, config),
        multiplier=config.multiplier,
        max_bet=config.max_stake,
    )

    if user_id is None:
        return overview

    bet = await get_user_bet(session, user_id, dates.tomorrow)
    if bet is not None:
        overview.user_bet = bet_view(bet, config)

    history = await session.scalars(
        select(Bet)
        .where(Bet.user_id == user_id)
        .order_by(Bet.race_date.desc())
        .limit(HISTORY_LIMIT)
    )
    overview.user_bet_history = [bet_view(b, config) for b in history]
    overview.balance = await ledger.get_balance(session, user_id) or 0
    return overview
