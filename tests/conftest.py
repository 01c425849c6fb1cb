"""Pytest configuration and fixtures for DropQuest tests.

Service and API tests run against a throwaway SQLite file through aiosqlite.
pysqlite's own transaction handling is switched off so that SAVEPOINTs
(bet placement, the reset job) behave as they do on PostgreSQL.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

from app.config.game import GameConfig
from app.models.base import Base, get_session_factory
from app.models.domain import Article, Task, User
from support import FakePriceFeed


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def config():
    return GameConfig()


@pytest.fixture
def make_user(session):
    """Create a user with a starting balance; returns the user id."""
    counter = {"n": 0}

    async def _make_user(points: int = 0, is_admin: bool = False) -> int:
        counter["n"] += 1
        user = User(
            username=f"user{counter['n']}",
            password_hash="x",
            total_points=points,
            is_admin=is_admin,
        )
        session.add(user)
        await session.commit()
        return user.id

    return _make_user


@pytest.fixture
def make_task(session):
    """Create a task (in a fresh article); returns the task id."""

    async def _make_task(frequency: str = "daily", title: str = "Swap on DEX") -> int:
        article = Article(title="Guide", project_name="Project")
        task = Task(title=title, frequency=frequency)
        article.tasks.append(task)
        session.add(article)
        await session.commit()
        return task.id

    return _make_task


@pytest.fixture
def feed():
    return FakePriceFeed()
