"""Price feed module."""

from app.services.price_feed.client import CoinPrice, PriceFeedClient, PriceFeedError

__all__ = ["CoinPrice", "PriceFeedClient", "PriceFeedError"]
