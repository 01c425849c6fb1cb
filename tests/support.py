"""Shared test helpers (importable from test modules)."""

from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import select

from app.config.game import DEFAULT_COINS
from app.models.domain import User
from app.services.price_feed.client import CoinPrice

# Sunday 2026-10-18, 12:00 UTC (21:00 in Seoul).
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
TODAY = date(2026, 10, 18)
YESTERDAY = date(2026, 10, 17)
TOMORROW = date(2026, 10, 19)


async def balance_of(session, user_id: int) -> int:
    """Read a balance straight from the table."""
    return await session.scalar(select(User.total_points).where(User.id == user_id))


def make_prices(changes: dict[str, str], unavailable: tuple[str, ...] = ()) -> list[CoinPrice]:
    """CoinPrice rows in catalogue order with the given percent changes."""
    prices = []
    for coin in DEFAULT_COINS:
        if coin.id in unavailable:
            prices.append(CoinPrice.placeholder(coin))
            continue
        change = Decimal(changes.get(coin.id, "0"))
        open_price = Decimal("100")
        close_price = open_price + change
        prices.append(
            CoinPrice(
                id=coin.id,
                symbol=coin.symbol,
                name=coin.name,
                image=coin.image,
                open_price=open_price,
                current_price=close_price,
                close_price=close_price,
                percent_change=change,
                available=True,
            )
        )
    return prices


class FakePriceFeed:
    """In-memory stand-in for PriceFeedClient."""

    def __init__(self, day_prices=None, today_prices=None):
        self.day_prices = day_prices or {}
        self.today_prices = today_prices or make_prices({"btc": "1.5", "eth": "2.5"})
        self.day_calls: list[date] = []

    async def get_today_prices(self):
        return self.today_prices

    async def get_day_prices(self, day: date):
        self.day_calls.append(day)
        if day in self.day_prices:
            return self.day_prices[day]
        return make_prices({}, unavailable=tuple(c.id for c in DEFAULT_COINS))
