"""Initial schema for account scores, trades, activities, markets and alerts.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Latest scoring record per account
    op.create_table(
        "accounts",
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("venue", sa.String(20), nullable=False),
        sa.Column("username", sa.String(255), nullable=True),
        sa.Column("profile_image", sa.Text(), nullable=True),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("wallet_age_score", sa.Float(), nullable=False),
        sa.Column("first_bet_size_score", sa.Float(), nullable=False),
        sa.Column("bet_timing_score", sa.Float(), nullable=False),
        sa.Column("withdrawal_speed_score", sa.Float(), nullable=False),
        sa.Column("market_selection_score", sa.Float(), nullable=False),
        sa.Column("win_rate_score", sa.Float(), nullable=False),
        sa.Column("no_hedging_score", sa.Float(), nullable=False),
        sa.Column("signals_json", sa.Text(), nullable=False),
        sa.Column("total_volume", sa.Float(), nullable=False),
        sa.Column("total_pnl", sa.Float(), nullable=False),
        sa.Column("trade_count", sa.Integer(), nullable=False),
        sa.Column("first_trade_at", sa.BigInteger(), nullable=True),
        sa.Column("last_trade_at", sa.BigInteger(), nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("account_id"),
    )
    op.create_index("idx_accounts_total_score", "accounts", ["total_score"])
    op.create_index("idx_accounts_scored_at", "accounts", ["scored_at"])

    # Trades from the latest scoring pass (replaced each pass)
    op.create_table(
        "account_trades",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("market_id", sa.String(128), nullable=False),
        sa.Column("side", sa.String(4), nullable=False),
        sa.Column("size", sa.Float(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("outcome", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("event_slug", sa.String(255), nullable=False),
        sa.Column("transaction_hash", sa.String(128), nullable=False),
        sa.Column("venue", sa.String(20), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_account_trades_account_ts", "account_trades", ["account_id", "timestamp"]
    )

    # Activities from the latest scoring pass (replaced each pass)
    op.create_table(
        "account_activities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("market_id", sa.String(128), nullable=False),
        sa.Column("side", sa.String(4), nullable=False),
        sa.Column("size", sa.Float(), nullable=True),
        sa.Column("usdc_size", sa.Float(), nullable=True),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_account_activities_account_ts",
        "account_activities",
        ["account_id", "timestamp"],
    )

    # Market metadata cache
    op.create_table(
        "markets",
        sa.Column("market_id", sa.String(128), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(255), nullable=True),
        sa.Column("event_id", sa.String(128), nullable=True),
        sa.Column("end_date", sa.BigInteger(), nullable=True),
        sa.Column("resolved_at", sa.BigInteger(), nullable=True),
        sa.Column("outcome", sa.String(255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("volume", sa.Float(), nullable=False),
        sa.Column("cached_at", sa.BigInteger(), nullable=False),
        sa.Column("venue", sa.String(20), nullable=False),
        sa.PrimaryKeyConstraint("market_id"),
    )

    # Append-only alert log
    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.String(128), nullable=False),
        sa.Column("market_id", sa.String(128), nullable=True),
        sa.Column("tier", sa.String(10), nullable=False),
        sa.Column("details", sa.Text(), nullable=False),
        sa.Column("score_at_time", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_alerts_account_created", "alerts", ["account_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_alerts_account_created", table_name="alerts")
    op.drop_table("alerts")
    op.drop_table("markets")
    op.drop_index("idx_account_activities_account_ts", table_name="account_activities")
    op.drop_table("account_activities")
    op.drop_index("idx_account_trades_account_ts", table_name="account_trades")
    op.drop_table("account_trades")
    op.drop_index("idx_accounts_scored_at", table_name="accounts")
    op.drop_index("idx_accounts_total_score", table_name="accounts")
    op.drop_table("accounts")
