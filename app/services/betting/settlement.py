"""Betting settlement engine.

Settles a completed race: every pending bet on the race date becomes 'won'
(payout = stake x multiplier, credited to the balance) or 'lost' (payout 0).

Policy: ALL-OR-NOTHING per race. The whole race settles in one transaction;
any failure rolls back every bet and balance change made so far, and the
race stays unsettled for the next scheduler poll to retry.

Idempotence is explicit: the race row is locked and carries ``settled_at``.
A settled race is skipped outright, and only 'pending' bets are selected, so
a bet can never be paid twice.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Protocol

import structlog
from sqlalchemy import distinct, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_game_config
from app.config.game import BetStatus, GameConfig
from app.models.domain import Bet, RaceCoin
from app.services.betting.races import get_or_create_race, get_race, race_dates
from app.services.economy import ledger
from app.services.price_feed.client import CoinPrice

logger = structlog.get_logger(__name__)


class DayPriceSource(Protocol):
    """Anything that can report a completed day's prices."""

    async def get_day_prices(self, day: date) -> list[CoinPrice]: ...


@dataclass
class SettlementResult:
    """Outcome of one settlement attempt."""

    race_date: date
    status: str  # 'settled', 'already_settled', 'skipped_no_data', 'failed'
    winner_coin_id: str | None = None
    bets_settled: int = 0
    bets_won: int = 0
    total_payout: int = 0
    error: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "race_date": self.race_date.isoformat(),
            "status": self.status,
            "winner_coin_id": self.winner_coin_id,
            "bets_settled": self.bets_settled,
            "bets_won": self.bets_won,
            "total_payout": self.total_payout,
            "error": self.error,
        }


def determine_winner(prices: list[CoinPrice]) -> str | None:
    """
    Pick the coin with the highest percentage change.

    Ties go to the coin that comes first in ``prices`` (feed order). Returns
    None when any coin's data is unavailable: a winner is never declared from
    zeroed placeholder rows.
    """
    if not prices or not all(p.available for p in prices):
        return None

    winner = prices[0]
    for price in prices[1:]:
        if price.percent_change > winner.percent_change:
            winner = price
    return winner.id


def _record_race_coins(race, prices: list[CoinPrice], winner_coin_id: str) -> None:
    existing = {c.coin_id: c for c in race.coins}
    for price in prices:
        coin = existing.get(price.id)
        if coin is None:
            coin = RaceCoin(coin_id=price.id)
            race.coins.append(coin)
        coin.start_price = price.open_price
        coin.end_price = price.close_price if price.close_price is not None else price.current_price
        coin.percent_change = Decimal(price.percent_change).quantize(Decimal("0.0001"))
        coin.is_winner = price.id == winner_coin_id


async def settle_bets(
    session: AsyncSession,
    race_date: date,
    winner_coin_id: str,
    prices: list[CoinPrice] | None = None,
    config: GameConfig | None = None,
    now: datetime | None = None,
) -> SettlementResult:
    """
    Settle every pending bet of a race against a known winner.

    Commits on success; rolls back and re-raises on any failure.
    """
    config = config or get_game_config()
    now = now or datetime.now(timezone.utc)
    result = SettlementResult(
        race_date=race_date, status="settled", winner_coin_id=winner_coin_id
    )

    try:
        race = await get_or_create_race(session, race_date, for_update=True)
        if race.settled_at is not None:
            result.status = "already_settled"
            result.winner_coin_id = race.winner_coin_id
            await session.rollback()
            logger.debug("race_already_settled", race_date=race_date.isoformat())
            return result

        bets = (
            await session.scalars(
                select(Bet)
                .where(
                    Bet.race_date == race_date,
                    Bet.status == BetStatus.PENDING.value,
                )
                .with_for_update()
            )
        ).all()

        for bet in bets:
            won = bet.coin_id == winner_coin_id
            bet.status = BetStatus.WON.value if won else BetStatus.LOST.value
            bet.payout = bet.stake * config.multiplier if won else 0
            bet.settled_at = now
            result.bets_settled += 1

            if won:
                await ledger.credit(
                    session,
                    bet.user_id,
                    bet.payout,
                    reason=f"Bet won on {winner_coin_id.upper()} ({race_date.isoformat()})",
                    bet_id=bet.id,
                )
                result.bets_won += 1
                result.total_payout += bet.payout
                logger.info(
                    "bet_won",
                    user_id=bet.user_id,
                    bet_id=bet.id,
                    payout=bet.payout,
                )

        if prices:
            await session.refresh(race, attribute_names=["coins"])
            _record_race_coins(race, prices, winner_coin_id)

        race.winner_coin_id = winner_coin_id
        race.settled_at = now
        await session.commit()

    except Exception as e:
        await session.rollback()
        logger.error(
            "race_settlement_failed",
            race_date=race_date.isoformat(),
            error=str(e),
        )
        raise

    logger.info("race_settled", **result.as_dict())
    return result


async def settle_race(
    session: AsyncSession,
    race_date: date,
    feed: DayPriceSource,
    config: GameConfig | None = None,
    now: datetime | None = None,
) -> SettlementResult:
    """
    Fetch a completed day's prices, pick the winner, and settle the race.

    A race that is already settled is skipped without calling the feed. If the
    feed cannot supply every coin's prices the run is skipped with no writes;
    the next call retries.
    """
    race = await get_race(session, race_date)
    if race is not None and race.settled_at is not None:
        result = SettlementResult(
            race_date=race_date,
            status="already_settled",
            winner_coin_id=race.winner_coin_id,
        )
        await session.rollback()
        return result
    # Close the read transaction before the (possibly slow) feed call.
    await session.rollback()

    prices = await feed.get_day_prices(race_date)
    winner = determine_winner(prices)
    if winner is None:
        logger.warning(
            "settlement_skipped_no_price_data",
            race_date=race_date.isoformat(),
            unavailable=[p.id for p in prices if not p.available],
        )
        return SettlementResult(race_date=race_date, status="skipped_no_data")

    logger.info(
        "race_winner_determined",
        race_date=race_date.isoformat(),
        winner_coin_id=winner,
        percent_change=str(next(p.percent_change for p in prices if p.id == winner)),
    )
    return await settle_bets(session, race_date, winner, prices, config=config, now=now)


async def due_race_dates(session: AsyncSession, now: datetime | None = None) -> list[date]:
    """
    Race dates that should be settled at ``now``.

    Yesterday's race, plus any earlier date still holding pending bets (a
    catch-up after downtime), oldest first.
    """
    dates = race_dates(now)
    rows = await session.scalars(
        select(distinct(Bet.race_date)).where(
            Bet.status == BetStatus.PENDING.value,
            Bet.race_date < dates.yesterday,
        )
    )
    return sorted(set(rows.all()) | {dates.yesterday})


async def settle_due_races(
    session: AsyncSession,
    feed: DayPriceSource,
    now: datetime | None = None,
    config: GameConfig | None = None,
) -> list[SettlementResult]:
    """
    Settle every due race, each in its own transaction.

    A race that fails is rolled back and reported with status 'failed';
    the remaining dates are still attempted and the failed one is retried
    on the next poll.
    """
    results = []
    for race_date in await due_race_dates(session, now):
        try:
            result = await settle_race(session, race_date, feed, config=config, now=now)
        except Exception as e:
            await session.rollback()
            logger.error(
                "race_settlement_deferred", race_date=race_date.isoformat(), error=str(e)
            )
            result = SettlementResult(race_date=race_date, status="failed", error=str(e))
        results.append(result)
    return results
