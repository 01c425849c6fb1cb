"""Request-scoped dependencies shared by the routers."""

from collections.abc import AsyncIterator

import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_user_id, get_optional_user_id
from app.config import get_settings
from app.models.base import async_session_factory
from app.services.price_feed import PriceFeedClient

__all__ = [
    "get_current_user_id",
    "get_db",
    "get_optional_user_id",
    "get_price_feed",
    "get_redis",
]


async def get_db() -> AsyncIterator[AsyncSession]:
    """One session per request. Services commit; anything left open is rolled back."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_redis() -> AsyncIterator[redis.Redis]:
    client = redis.from_url(get_settings().redis_url)
    try:
        yield client
    finally:
        await client.aclose()


async def get_price_feed() -> AsyncIterator[PriceFeedClient]:
    async with PriceFeedClient() as feed:
        yield feed
