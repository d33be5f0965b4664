"""Repository pattern implementations for data access.

This module provides data access for scored accounts, their latest trades
and activities, the market metadata cache, and the alert log. Repositories
take an AsyncSession and only flush; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from insider_scorer.scoring.models import (
    Activity,
    Alert,
    AlertTier,
    MarketMetadata,
    Trade,
    Venue,
)
from insider_scorer.storage.models import (
    AccountActivityModel,
    AccountModel,
    AccountTradeModel,
    AlertModel,
    MarketModel,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A write did not produce the row it should have."""


def _insert_for(session: AsyncSession, model: type[Any]) -> Any:
    """Return a dialect-specific INSERT supporting ON CONFLICT."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


@dataclass
class AccountDTO:
    """Data transfer object for an account's scoring record."""

    account_id: str
    venue: str
    total_score: int
    wallet_age_score: float = 0.0
    first_bet_size_score: float = 0.0
    bet_timing_score: float = 0.0
    withdrawal_speed_score: float = 0.0
    market_selection_score: float = 0.0
    win_rate_score: float = 0.0
    no_hedging_score: float = 0.0
    signals_json: str = "{}"
    total_volume: float = 0.0
    total_pnl: float = 0.0
    trade_count: int = 0
    first_trade_at: int | None = None
    last_trade_at: int | None = None
    username: str | None = None
    profile_image: str | None = None
    scored_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: AccountModel) -> AccountDTO:
        return cls(
            account_id=model.account_id,
            venue=model.venue,
            total_score=model.total_score,
            wallet_age_score=model.wallet_age_score,
            first_bet_size_score=model.first_bet_size_score,
            bet_timing_score=model.bet_timing_score,
            withdrawal_speed_score=model.withdrawal_speed_score,
            market_selection_score=model.market_selection_score,
            win_rate_score=model.win_rate_score,
            no_hedging_score=model.no_hedging_score,
            signals_json=model.signals_json,
            total_volume=model.total_volume,
            total_pnl=model.total_pnl,
            trade_count=model.trade_count,
            first_trade_at=model.first_trade_at,
            last_trade_at=model.last_trade_at,
            username=model.username,
            profile_image=model.profile_image,
            scored_at=model.scored_at,
            created_at=model.created_at,
        )


class AccountRepository:
    """Repository for account scoring records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, account_id: str) -> AccountDTO | None:
        result = await self.session.execute(
            select(AccountModel).where(AccountModel.account_id == account_id)
        )
        model = result.scalar_one_or_none()
        return AccountDTO.from_model(model) if model else None

    async def upsert(self, dto: AccountDTO, *, now: datetime | None = None) -> AccountDTO:
        """Insert or overwrite the account's scoring record.

        ``created_at`` is written on first insert only; later passes keep it.
        """
        now = now or datetime.now(UTC)
        values = {
            "account_id": dto.account_id,
            "venue": dto.venue,
            "username": dto.username,
            "profile_image": dto.profile_image,
            "total_score": dto.total_score,
            "wallet_age_score": dto.wallet_age_score,
            "first_bet_size_score": dto.first_bet_size_score,
            "bet_timing_score": dto.bet_timing_score,
            "withdrawal_speed_score": dto.withdrawal_speed_score,
            "market_selection_score": dto.market_selection_score,
            "win_rate_score": dto.win_rate_score,
            "no_hedging_score": dto.no_hedging_score,
            "signals_json": dto.signals_json,
            "total_volume": dto.total_volume,
            "total_pnl": dto.total_pnl,
            "trade_count": dto.trade_count,
            "first_trade_at": dto.first_trade_at,
            "last_trade_at": dto.last_trade_at,
            "scored_at": dto.scored_at or now,
        }
        stmt = _insert_for(self.session, AccountModel).values(**values, created_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=["account_id"],
            set_={key: getattr(stmt.excluded, key) for key in values if key != "account_id"},
        )
        await self.session.execute(stmt)
        await self.session.flush()
        # ON CONFLICT bypasses the identity map; drop any stale instance.
        self.session.expire_all()

        stored = await self.get(dto.account_id)
        if stored is None:
            raise StorageError(f"Account {dto.account_id} missing after upsert")
        return stored

    async def list_recently_scored(
        self,
        *,
        since: datetime,
        account_ids: Iterable[str] | None = None,
    ) -> set[str]:
        """Return ids of accounts scored at or after ``since``."""
        stmt = select(AccountModel.account_id).where(AccountModel.scored_at >= since)
        if account_ids is not None:
            ids = list(account_ids)
            if not ids:
                return set()
            stmt = stmt.where(AccountModel.account_id.in_(ids))
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def list_top(self, *, limit: int = 20, min_score: int = 0) -> list[AccountDTO]:
        result = await self.session.execute(
            select(AccountModel)
            .where(AccountModel.total_score >= min_score)
            .order_by(AccountModel.total_score.desc(), AccountModel.account_id)
            .limit(limit)
        )
        return [AccountDTO.from_model(m) for m in result.scalars().all()]


class TradeRepository:
    """Repository for the latest fetched trades of each account."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def replace_for_account(self, account_id: str, trades: Sequence[Trade]) -> int:
        """Delete the account's stored trades and insert ``trades``.

        Runs in the caller's transaction, so readers never observe the
        intermediate empty set.
        """
        await self.session.execute(
            delete(AccountTradeModel).where(AccountTradeModel.account_id == account_id)
        )
        self.session.add_all(
            AccountTradeModel(
                account_id=account_id,
                market_id=t.market_id,
                side=t.side,
                size=t.size,
                price=t.price,
                timestamp=t.timestamp,
                outcome=t.outcome,
                slug=t.slug,
                title=t.title,
                event_slug=t.event_slug,
                transaction_hash=t.transaction_hash,
                venue=t.venue.value,
            )
            for t in trades
        )
        await self.session.flush()
        return len(trades)

    async def list_for_account(self, account_id: str) -> list[Trade]:
        result = await self.session.execute(
            select(AccountTradeModel)
            .where(AccountTradeModel.account_id == account_id)
            .order_by(AccountTradeModel.timestamp, AccountTradeModel.id)
        )
        return [
            Trade(
                account_id=m.account_id,
                market_id=m.market_id,
                side=m.side,  # type: ignore[arg-type]
                size=m.size,
                price=m.price,
                timestamp=m.timestamp,
                outcome=m.outcome,
                slug=m.slug,
                title=m.title,
                event_slug=m.event_slug,
                transaction_hash=m.transaction_hash,
                venue=Venue(m.venue),
            )
            for m in result.scalars().all()
        ]


class ActivityRepository:
    """Repository for the latest fetched activities of each account."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def replace_for_account(self, account_id: str, activities: Sequence[Activity]) -> int:
        await self.session.execute(
            delete(AccountActivityModel).where(AccountActivityModel.account_id == account_id)
        )
        self.session.add_all(
            AccountActivityModel(
                account_id=account_id,
                type=a.type,
                market_id=a.market_id,
                side=a.side,
                size=a.size,
                usdc_size=a.usdc_size,
                timestamp=a.timestamp,
            )
            for a in activities
        )
        await self.session.flush()
        return len(activities)

    async def list_for_account(self, account_id: str) -> list[Activity]:
        result = await self.session.execute(
            select(AccountActivityModel)
            .where(AccountActivityModel.account_id == account_id)
            .order_by(AccountActivityModel.timestamp, AccountActivityModel.id)
        )
        return [
            Activity(
                type=m.type,  # type: ignore[arg-type]
                market_id=m.market_id,
                timestamp=m.timestamp,
                side=m.side,
                size=m.size,
                usdc_size=m.usdc_size,
            )
            for m in result.scalars().all()
        ]


def _market_from_model(model: MarketModel) -> MarketMetadata:
    return MarketMetadata(
        market_id=model.market_id,
        title=model.title,
        cached_at=model.cached_at,
        slug=model.slug,
        event_id=model.event_id,
        end_date=model.end_date,
        resolved_at=model.resolved_at,
        outcome=model.outcome,
        active=model.active,
        volume=model.volume,
        venue=Venue(model.venue),
    )


class MarketRepository:
    """Repository for the persisted market metadata cache."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, market_id: str) -> MarketMetadata | None:
        result = await self.session.execute(
            select(MarketModel).where(MarketModel.market_id == market_id)
        )
        model = result.scalar_one_or_none()
        return _market_from_model(model) if model else None

    async def get_many(self, market_ids: Iterable[str]) -> dict[str, MarketMetadata]:
        ids = list(market_ids)
        if not ids:
            return {}
        result = await self.session.execute(
            select(MarketModel).where(MarketModel.market_id.in_(ids))
        )
        return {m.market_id: _market_from_model(m) for m in result.scalars().all()}

    async def upsert(self, market: MarketMetadata) -> None:
        values = {
            "market_id": market.market_id,
            "title": market.title,
            "slug": market.slug,
            "event_id": market.event_id,
            "end_date": market.end_date,
            "resolved_at": market.resolved_at,
            "outcome": market.outcome,
            "active": market.active,
            "volume": market.volume,
            "cached_at": market.cached_at,
            "venue": market.venue.value,
        }
        stmt = _insert_for(self.session, MarketModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["market_id"],
            set_={key: getattr(stmt.excluded, key) for key in values if key != "market_id"},
        )
        await self.session.execute(stmt)
        await self.session.flush()


class AlertRepository:
    """Repository for the append-only alert log."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def append(self, alert: Alert) -> int:
        model = AlertModel(
            account_id=alert.account_id,
            market_id=alert.market_id,
            tier=alert.tier.value,
            details=alert.details,
            score_at_time=alert.score_at_time,
            created_at=alert.created_at,
        )
        self.session.add(model)
        await self.session.flush()
        logger.info(
            "Alert %s for %s (score %d)",
            alert.tier.value,
            alert.account_id[:10],
            alert.score_at_time,
        )
        return model.id

    async def list_recent(self, *, account_id: str | None = None, limit: int = 50) -> list[Alert]:
        stmt = select(AlertModel).order_by(AlertModel.created_at.desc(), AlertModel.id.desc())
        if account_id is not None:
            stmt = stmt.where(AlertModel.account_id == account_id)
        result = await self.session.execute(stmt.limit(limit))
        return [
            Alert(
                account_id=m.account_id,
                tier=AlertTier(m.tier),
                details=m.details,
                score_at_time=m.score_at_time,
                created_at=m.created_at,
                market_id=m.market_id,
            )
            for m in result.scalars().all()
        ]
