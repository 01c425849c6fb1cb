"""Domain models for DropQuest.

This module defines all database models for the airdrop task tracker and
the daily coin race.

The user's ``total_points`` balance is the most contended value in the
system. It is never written directly by application code: every change goes
through app.services.economy.ledger, which issues a single conditional UPDATE
so that concurrent debits can neither lose updates nor drive it negative.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

JSONVariant = JSON().with_variant(JSONB(), "postgresql")


class User(Base, TimestampMixin):
    """
    Registered player.

    ``total_points`` doubles as the betting balance.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    total_points: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    plans: Mapped[list["UserPlan"]] = relationship("UserPlan", back_populates="user")
    bets: Mapped[list["Bet"]] = relationship("Bet", back_populates="user")

    __table_args__ = (
        CheckConstraint("total_points >= 0", name="chk_users_points_nonneg"),
    )

    def __repr__(self) -> str:
        return f"<User {self.username} points={self.total_points}>"


class Article(Base, TimestampMixin):
    """Curated crypto project write-up that groups airdrop tasks."""

    __tablename__ = "articles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Relationships
    tasks: Mapped[list["Task"]] = relationship(
        "Task", back_populates="article", order_by="Task.id"
    )

    def __repr__(self) -> str:
        return f"<Article {self.project_name}: {self.title}>"


class Task(Base, TimestampMixin):
    """
    Recurring (or one-time) action belonging to an article.

    The frequency decides both the points awarded on completion and which
    reset boundary (KST day, KST week, never) reverts it.
    """

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    article_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    frequency: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'daily', 'weekly' or 'one-time'"
    )
    link_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Relationships
    article: Mapped["Article"] = relationship("Article", back_populates="tasks")

    __table_args__ = (
        CheckConstraint(
            "frequency IN ('daily', 'weekly', 'one-time')", name="chk_tasks_frequency"
        ),
        Index("idx_tasks_article_id", "article_id"),
        Index("idx_tasks_frequency", "frequency"),
    )

    def __repr__(self) -> str:
        return f"<Task {self.title} ({self.frequency})>"


class UserPlan(Base):
    """
    A task a user has added to their plan.

    Points are awarded once per false->true transition of ``completed`` and
    reversed once per true->false transition, whether the user or the reset
    job flips it.
    """

    __tablename__ = "user_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    task_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, doc="UTC instant of completion"
    )
    cost: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2), nullable=True, doc="What the user spent (gas, fees)"
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="plans")
    task: Mapped["Task"] = relationship("Task")

    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_user_plans_user_task"),
        Index("idx_user_plans_user_id", "user_id"),
        Index(
            "idx_user_plans_completed",
            "completed_at",
            postgresql_where=(completed == True),  # noqa: E712
        ),
    )

    def __repr__(self) -> str:
        return f"<UserPlan user={self.user_id} task={self.task_id} completed={self.completed}>"


class PointHistory(Base):
    """
    Append-only audit of every point delta.

    Rows are inserted by the ledger and never updated or deleted.
    """

    __tablename__ = "point_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    task_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True
    )
    bet_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("betting_bets.id", ondelete="SET NULL"), nullable=True
    )
    points: Mapped[int] = mapped_column(Integer, nullable=False, doc="Signed delta")
    reason: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (Index("idx_point_history_user", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<PointHistory user={self.user_id} {self.points:+d} '{self.reason}'>"


class BettingRace(Base):
    """
    One daily race, keyed by its UTC calendar date.

    Rows are created lazily (first bet or settlement). ``settled_at`` is the
    race-level settlement marker: once set, settlement for the date is a no-op.
    """

    __tablename__ = "betting_races"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    race_date: Mapped[date] = mapped_column(Date, unique=True, nullable=False)
    winner_coin_id: Mapped[str | None] = mapped_column(String(20), nullable=True)
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    coins: Mapped[list["RaceCoin"]] = relationship(
        "RaceCoin", back_populates="race", order_by="RaceCoin.id"
    )

    def __repr__(self) -> str:
        return f"<BettingRace {self.race_date} winner={self.winner_coin_id}>"


class RaceCoin(Base):
    """Prices recorded for one coin in one race, written at settlement."""

    __tablename__ = "betting_race_coins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    race_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("betting_races.id", ondelete="CASCADE"), nullable=False
    )
    coin_id: Mapped[str] = mapped_column(String(20), nullable=False)
    start_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    end_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    percent_change: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 4), nullable=True
    )
    is_winner: Mapped[bool] = mapped_column(Boolean, default=False)

    # Relationships
    race: Mapped["BettingRace"] = relationship("BettingRace", back_populates="coins")

    __table_args__ = (
        UniqueConstraint("race_id", "coin_id", name="uq_race_coins_race_coin"),
    )

    def __repr__(self) -> str:
        return f"<RaceCoin race={self.race_id} {self.coin_id} {self.percent_change}%>"


class Bet(Base):
    """
    A user's stake on one coin for one race date.

    At most one bet per (user, race_date), enforced by a unique constraint.
    Created as 'pending' with the stake already debited; mutated exactly once
    at settlement ('won'/'lost' plus payout); never mutated again.
    """

    __tablename__ = "betting_bets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    race_date: Mapped[date] = mapped_column(Date, nullable=False)
    coin_id: Mapped[str] = mapped_column(String(20), nullable=False)
    stake: Mapped[int] = mapped_column(Integer, nullable=False)
    payout: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", doc="'pending', 'won', 'lost'"
    )
    settled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    # Relationships
    user: Mapped["User"] = relationship("User", back_populates="bets")

    __table_args__ = (
        UniqueConstraint("user_id", "race_date", name="uq_bets_user_race_date"),
        CheckConstraint("stake > 0", name="chk_bets_stake_positive"),
        CheckConstraint(
            "status IN ('pending', 'won', 'lost')", name="chk_bets_status"
        ),
        Index(
            "idx_bets_pending",
            "race_date",
            postgresql_where=(status == "pending"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Bet user={self.user_id} {self.race_date} {self.coin_id} x{self.stake} {self.status}>"


class JobMarker(Base):
    """
    Last boundary processed by a scheduled job.

    Survives restarts, so a boundary is never processed twice.
    """

    __tablename__ = "job_markers"

    job_name: Mapped[str] = mapped_column(String(100), primary_key=True)
    last_boundary: Mapped[str] = mapped_column(String(50), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<JobMarker {self.job_name}={self.last_boundary}>"


class JobRun(Base):
    """
    Task execution audit log.

    Every scheduled task run that does work is logged here for:
    1. Monitoring missed settlements
    2. Debugging failures
    3. Performance tracking
    """

    __tablename__ = "job_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'running', 'success', 'failed'"
    )
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    job_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONVariant, nullable=True
    )

    __table_args__ = (Index("idx_job_runs_name_started", "job_name", "started_at"),)

    def __repr__(self) -> str:
        return f"<JobRun {self.job_name} status={self.status}>"
