"""Binance price feed client.

Provides async access to the daily open/last/close prices of the four race
coins:
- Today's live prices from the rolling trading-day ticker
- A completed day's open/close from the daily kline

No retries and no caching. Every request carries an explicit timeout so a
hung upstream cannot stall the scheduler. Failures never raise to callers:
the affected coins come back as zeroed placeholders with ``available=False``,
which callers must read as "try again later", not as a real zero move.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog

from app.config import get_game_config, get_settings
from app.config.game import Coin

logger = structlog.get_logger(__name__)


class PriceFeedError(Exception):
    """Upstream price data could not be fetched or parsed."""


@dataclass
class CoinPrice:
    """One coin's prices for one UTC day."""

    id: str
    symbol: str
    name: str
    image: str
    open_price: Decimal = Decimal("0")
    current_price: Decimal = Decimal("0")
    close_price: Decimal | None = None
    percent_change: Decimal = Decimal("0")
    available: bool = False

    @classmethod
    def placeholder(cls, coin: Coin) -> "CoinPrice":
        """Zeroed row standing in for data the feed could not provide."""
        return cls(id=coin.id, symbol=coin.symbol, name=coin.name, image=coin.image)


def _decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError) as e:
        raise PriceFeedError(f"Invalid price value: {value!r}") from e


def percent_change(open_price: Decimal, close_price: Decimal) -> Decimal:
    """Percentage move from open to close."""
    if open_price == 0:
        raise PriceFeedError("Open price is zero")
    return (close_price - open_price) / open_price * 100


def day_window_ms(day: date) -> tuple[int, int]:
    """Millisecond epoch bounds [00:00:00, 23:59:59] of a UTC day."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(seconds=1)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


class PriceFeedClient:
    """
    Binance public market data client for the race coins.

    Usage:
        async with PriceFeedClient() as feed:
            prices = await feed.get_today_prices()
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        coins: tuple[Coin, ...] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the price feed client.

        Args:
            base_url: Binance REST base URL (defaults to settings)
            timeout: Per-request timeout in seconds (defaults to settings)
            coins: Coin roster (defaults to the game configuration)
            transport: Optional httpx transport, used by tests
        """
        settings = get_settings()
        self.base_url = (base_url or settings.price_feed_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.price_feed_timeout_seconds
        self.coins = coins or get_game_config().coins
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "PriceFeedClient":
        """Async context manager entry."""
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        """GET a JSON document, translating transport failures to PriceFeedError."""
        client = await self._get_client()
        try:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise PriceFeedError(f"Timeout calling {path}") from e
        except httpx.HTTPStatusError as e:
            raise PriceFeedError(
                f"HTTP {e.response.status_code} from {path}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise PriceFeedError(f"Failed to fetch {path}: {e}") from e

    async def get_today_prices(self) -> list[CoinPrice]:
        """
        Live prices for the current UTC day (reset at 00:00 UTC).

        Returns:
            One CoinPrice per race coin, in roster order.
        """
        symbols = json.dumps([c.exchange_symbol for c in self.coins], separators=(",", ":"))
        try:
            data = await self._get("/ticker/tradingDay", {"symbols": symbols})
            tickers = {t["symbol"]: t for t in data}
        except (PriceFeedError, KeyError, TypeError) as e:
            logger.error("today_prices_unavailable", error=str(e))
            return [CoinPrice.placeholder(c) for c in self.coins]

        prices = []
        for coin in self.coins:
            ticker = tickers.get(coin.exchange_symbol)
            if ticker is None:
                logger.warning("ticker_missing", coin_id=coin.id)
                prices.append(CoinPrice.placeholder(coin))
                continue
            try:
                prices.append(
                    CoinPrice(
                        id=coin.id,
                        symbol=coin.symbol,
                        name=coin.name,
                        image=coin.image,
                        open_price=_decimal(ticker["openPrice"]),
                        current_price=_decimal(ticker["lastPrice"]),
                        percent_change=_decimal(ticker["priceChangePercent"]),
                        available=True,
                    )
                )
            except (PriceFeedError, KeyError) as e:
                logger.warning("ticker_malformed", coin_id=coin.id, error=str(e))
                prices.append(CoinPrice.placeholder(coin))
        return prices

    async def _get_day_price(self, coin: Coin, day: date) -> CoinPrice:
        start_ms, end_ms = day_window_ms(day)
        try:
            data = await self._get(
                "/klines",
                {
                    "symbol": coin.exchange_symbol,
                    "interval": "1d",
                    "startTime": start_ms,
                    "endTime": end_ms,
                    "limit": 1,
                },
            )
            if not data:
                raise PriceFeedError(f"No kline for {coin.exchange_symbol} on {day}")
            kline = data[0]
            open_price = _decimal(kline[1])
            close_price = _decimal(kline[4])
            change = percent_change(open_price, close_price)
        except (PriceFeedError, IndexError, KeyError, TypeError) as e:
            logger.error(
                "day_price_unavailable",
                coin_id=coin.id,
                day=day.isoformat(),
                error=str(e),
            )
            return CoinPrice.placeholder(coin)

        return CoinPrice(
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

    async def get_day_prices(self, day: date) -> list[CoinPrice]:
        """
        Open/close prices of a completed UTC day.

        Returns:
            One CoinPrice per race coin, in roster order.
        """
        return [await self._get_day_price(coin, day) for coin in self.coins]

    async def get_yesterday_prices(self) -> list[CoinPrice]:
        """Open/close prices of the previous UTC day."""
        yesterday = datetime.now(timezone.utc).date() - timedelta(days=1)
        return await self.get_day_prices(yesterday)
