"""Declarative base, engines and sessions.

The API shares one module-level engine. Celery tasks run each job in a new
event loop, and asyncpg connections cannot cross loops, so every task gets
a short-lived engine of its own through ``get_task_session()``.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, func
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from app.config import get_settings

settings = get_settings()


def _engine_options(url: str) -> dict[str, Any]:
    # SQLite (tests, local runs) has no pool sizing.
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
    }


def get_engine(url: str | None = None) -> AsyncEngine:
    """Async engine bound to the current event loop."""
    url = url or settings.database_url
    return create_async_engine(url, echo=settings.debug, **_engine_options(url))


def get_session_factory(bind: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit; services read them afterwards."""
    return async_sessionmaker(bind or get_engine(), expire_on_commit=False)


engine = get_engine()
async_session_factory = get_session_factory(engine)


@asynccontextmanager
async def get_task_session():
    """Session on a throwaway engine, disposed when the block exits."""
    task_engine = get_engine()
    try:
        async with get_session_factory(task_engine)() as session:
            yield session
    finally:
        await task_engine.dispose()


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    """created_at / updated_at maintained by the database."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
