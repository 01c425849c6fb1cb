"""Database models for DropQuest."""

from app.models.base import Base, async_session_factory, engine
from app.models.domain import (
    Article,
    Bet,
    BettingRace,
    JobMarker,
    JobRun,
    PointHistory,
    RaceCoin,
    Task,
    User,
    UserPlan,
)

__all__ = [
    # Base
    "Base",
    "engine",
    "async_session_factory",
    # Domain models
    "User",
    "Article",
    "Task",
    "UserPlan",
    "PointHistory",
    "BettingRace",
    "RaceCoin",
    "Bet",
    "JobMarker",
    "JobRun",
]
