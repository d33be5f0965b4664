"""SQLAlchemy models for persistent storage.

This module defines the database schema for scored accounts, their latest
trades and activities, the market metadata cache, and the alert log.

Venue timestamps (trade time, market end, resolution) are stored as unix
seconds, the unit the signals work in. Bookkeeping timestamps use
timezone-aware datetimes.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class AccountModel(Base):
    """Latest scoring record for an account (one row per account)."""

    __tablename__ = "accounts"

    account_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    venue: Mapped[str] = mapped_column(String(20), nullable=False)
    username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    profile_image: Mapped[str | None] = mapped_column(Text, nullable=True)

    total_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    wallet_age_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    first_bet_size_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bet_timing_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    withdrawal_speed_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    market_selection_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    win_rate_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    no_hedging_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    signals_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    total_volume: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_pnl: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    trade_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    first_trade_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    last_trade_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    scored_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (
        Index("idx_accounts_total_score", "total_score"),
        Index("idx_accounts_scored_at", "scored_at"),
    )


class AccountTradeModel(Base):
    """Trades fetched for an account during its latest scoring pass."""

    __tablename__ = "account_trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    market_id: Mapped[str] = mapped_column(String(128), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    size: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)
    outcome: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    slug: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    event_slug: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    transaction_hash: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    venue: Mapped[str] = mapped_column(String(20), nullable=False)

    __table_args__ = (Index("idx_account_trades_account_ts", "account_id", "timestamp"),)


class AccountActivityModel(Base):
    """Activity events fetched for an account during its latest scoring pass."""

    __tablename__ = "account_activities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    type: Mapped[str] = mapped_column(String(10), nullable=False)
    market_id: Mapped[str] = mapped_column(String(128), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False, default="")
    size: Mapped[float | None] = mapped_column(Float, nullable=True)
    usdc_size: Mapped[float | None] = mapped_column(Float, nullable=True)
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (Index("idx_account_activities_account_ts", "account_id", "timestamp"),)


class MarketModel(Base):
    """Cached market metadata (refreshed after the cache TTL)."""

    __tablename__ = "markets"

    market_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    end_date: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    resolved_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    outcome: Mapped[str | None] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    volume: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    cached_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    venue: Mapped[str] = mapped_column(String(20), nullable=False)


class AlertModel(Base):
    """Append-only alert log."""

    __tablename__ = "alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(128), nullable=False)
    market_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tier: Mapped[str] = mapped_column(String(10), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    score_at_time: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("idx_alerts_account_created", "account_id", "created_at"),)
