"""Game economy configuration.

Defines the fixed coin roster for the daily price race, the betting
limits, and the points awarded per task frequency. The same points
table is used when a task is completed, uncompleted, or reset by the
scheduled job, so the values live here and nowhere else.
"""

from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any

from app.config.settings import get_settings


class TaskFrequency(str, Enum):
    """How often a task can be completed for points."""
    DAILY = "daily"
    WEEKLY = "weekly"
    ONE_TIME = "one-time"


class BetStatus(str, Enum):
    """Lifecycle of a bet. Only PENDING bets are ever settled."""
    PENDING = "pending"
    WON = "won"
    LOST = "lost"


class RaceStatus(str, Enum):
    """Race state derived from the calendar, never stored."""
    UPCOMING = "upcoming"    # tomorrow, betting open
    RACING = "racing"        # today, live prices
    COMPLETED = "completed"  # yesterday or earlier


@dataclass(frozen=True)
class Coin:
    """A coin taking part in every daily race."""
    id: str
    symbol: str
    name: str
    image: str
    exchange_symbol: str


DEFAULT_COINS: tuple[Coin, ...] = (
    Coin(
        id="btc",
        symbol="BTC",
        name="Bitcoin",
        image="https://assets.coingecko.com/coins/images/1/large/bitcoin.png",
        exchange_symbol="BTCUSDT",
    ),
    Coin(
        id="eth",
        symbol="ETH",
        name="Ethereum",
        image="https://assets.coingecko.com/coins/images/279/large/ethereum.png",
        exchange_symbol="ETHUSDT",
    ),
    Coin(
        id="sol",
        symbol="SOL",
        name="Solana",
        image="https://assets.coingecko.com/coins/images/4128/large/solana.png",
        exchange_symbol="SOLUSDT",
    ),
    Coin(
        id="doge",
        symbol="DOGE",
        name="Dogecoin",
        image="https://assets.coingecko.com/coins/images/5/large/dogecoin.png",
        exchange_symbol="DOGEUSDT",
    ),
)


@dataclass(frozen=True)
class GameConfig:
    """Complete game economy configuration."""

    multiplier: int = 4
    max_stake: int = 1000
    coins: tuple[Coin, ...] = DEFAULT_COINS
    task_points: dict[TaskFrequency, int] = field(default_factory=lambda: {
        TaskFrequency.DAILY: 100,
        TaskFrequency.WEEKLY: 500,
        TaskFrequency.ONE_TIME: 1000,
    })

    def get_coin(self, coin_id: str) -> Coin | None:
        """Look up a race coin by its identifier."""
        for coin in self.coins:
            if coin.id == coin_id:
                return coin
        return None

    def points_for(self, frequency: str | TaskFrequency) -> int:
        """Points earned (or reversed) for one completion of a task."""
        return self.task_points.get(TaskFrequency(frequency), 0)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GameConfig":
        """Build a config from the parsed defaults.yaml, keeping defaults for gaps."""
        base = cls()
        race = data.get("race") or {}
        points = (data.get("tasks") or {}).get("points") or {}

        coins = base.coins
        if race.get("coins"):
            coins = tuple(Coin(**entry) for entry in race["coins"])
            if len(coins) != 4:
                raise ValueError(f"A race needs exactly 4 coins, got {len(coins)}")

        task_points = dict(base.task_points)
        for key, value in points.items():
            task_points[TaskFrequency(key)] = int(value)

        return cls(
            multiplier=int(race.get("multiplier", base.multiplier)),
            max_stake=int(race.get("max_stake", base.max_stake)),
            coins=coins,
            task_points=task_points,
        )


@lru_cache
def get_game_config() -> GameConfig:
    """Get the game configuration, read once from defaults.yaml."""
    return GameConfig.from_dict(get_settings().load_defaults_config())
