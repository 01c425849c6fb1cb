"""Initial schema for DropQuest.

Revision ID: 0001
Revises:
Create Date: 2026-10-18

This migration creates all the core tables:
- Users (balance with a non-negative CHECK), Articles, Tasks, UserPlans
- PointHistory, the append-only audit of every point delta
- BettingRaces, BettingRaceCoins, BettingBets for the daily coin race
- JobMarkers and JobRuns for the scheduled jobs

CRITICAL: uq_bets_user_race_date enforces one bet per user per race, and
chk_users_points_nonneg is the last line of defence for the balance.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("total_points", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=True, default=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.CheckConstraint("total_points >= 0", name="chk_users_points_nonneg"),
    )

    # Articles table
    op.create_table(
        "articles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("project_name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    # Tasks table
    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("article_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "frequency",
            sa.String(length=20),
            nullable=False,
            comment="'daily', 'weekly' or 'one-time'",
        ),
        sa.Column("link_url", sa.String(length=500), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["article_id"], ["articles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "frequency IN ('daily', 'weekly', 'one-time')", name="chk_tasks_frequency"
        ),
    )
    op.create_index("idx_tasks_article_id", "tasks", ["article_id"])
    op.create_index("idx_tasks_frequency", "tasks", ["frequency"])

    # User plans table
    op.create_table(
        "user_plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=False),
        sa.Column(
            "added_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cost", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "task_id", name="uq_user_plans_user_task"),
    )
    op.create_index("idx_user_plans_user_id", "user_plans", ["user_id"])
    op.create_index(
        "idx_user_plans_completed",
        "user_plans",
        ["completed_at"],
        postgresql_where=sa.text("completed = true"),
    )

    # Betting bets table (before point_history, which references it)
    op.create_table(
        "betting_bets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("race_date", sa.Date(), nullable=False),
        sa.Column("coin_id", sa.String(length=20), nullable=False),
        sa.Column("stake", sa.Integer(), nullable=False),
        sa.Column("payout", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "race_date", name="uq_bets_user_race_date"),
        sa.CheckConstraint("stake > 0", name="chk_bets_stake_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'won', 'lost')", name="chk_bets_status"
        ),
    )
    op.create_index(
        "idx_bets_pending",
        "betting_bets",
        ["race_date"],
        postgresql_where=sa.text("status = 'pending'"),
    )

    # Point history table
    op.create_table(
        "point_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("task_id", sa.Integer(), nullable=True),
        sa.Column("bet_id", sa.Integer(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=200), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["bet_id"], ["betting_bets.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_point_history_user", "point_history", ["user_id", "created_at"])

    # Betting races table
    op.create_table(
        "betting_races",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("race_date", sa.Date(), nullable=False),
        sa.Column("winner_coin_id", sa.String(length=20), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("race_date"),
    )

    # Per-race coin prices
    op.create_table(
        "betting_race_coins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("race_id", sa.Integer(), nullable=False),
        sa.Column("coin_id", sa.String(length=20), nullable=False),
        sa.Column("start_price", sa.Numeric(precision=20, scale=8), nullable=True),
        sa.Column("end_price", sa.Numeric(precision=20, scale=8), nullable=True),
        sa.Column("percent_change", sa.Numeric(precision=10, scale=4), nullable=True),
        sa.Column("is_winner", sa.Boolean(), nullable=True, default=False),
        sa.ForeignKeyConstraint(["race_id"], ["betting_races.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("race_id", "coin_id", name="uq_race_coins_race_coin"),
    )

    # Job markers table
    op.create_table(
        "job_markers",
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("last_boundary", sa.String(length=50), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("job_name"),
    )

    # Job runs table (task audit log)
    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.String(length=20),
            nullable=False,
            comment="'running', 'success', 'failed'",
        ),
        sa.Column("records_processed", sa.Integer(), nullable=True, default=0),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_job_runs_name_started", "job_runs", ["job_name", "started_at"])


def downgrade() -> None:
    op.drop_index("idx_job_runs_name_started", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_table("job_markers")
    op.drop_table("betting_race_coins")
    op.drop_table("betting_races")
    op.drop_index("idx_point_history_user", table_name="point_history")
    op.drop_table("point_history")
    op.drop_index("idx_bets_pending", table_name="betting_bets")
    op.drop_table("betting_bets")
    op.drop_index("idx_user_plans_completed", table_name="user_plans")
    op.drop_index("idx_user_plans_user_id", table_name="user_plans")
    op.drop_table("user_plans")
    op.drop_index("idx_tasks_frequency", table_name="tasks")
    op.drop_index("idx_tasks_article_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("articles")
    op.drop_table("users")
