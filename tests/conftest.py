"""Pytest configuration and fixtures."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from insider_scorer.scoring.models import MarketMetadata, RawMarket, Trade, Venue
from insider_scorer.storage.models import Base
from insider_scorer.venues.base import VenueApiError

NOW = 1_760_000_000
HOUR = 3600
DAY = 86_400
ACCOUNT = "0x1234567890abcdef1234567890abcdef12345678"


def make_trade(
    *,
    market_id: str = "m1",
    side: str = "BUY",
    size: float = 100.0,
    price: float = 0.5,
    timestamp: int = NOW - DAY,
    outcome: str = "Yes",
    slug: str | None = None,
    account_id: str = ACCOUNT,
    venue: Venue = Venue.POLYMARKET,
) -> Trade:
    """Create a Trade for testing."""
    return Trade(
        account_id=account_id,
        market_id=market_id,
        side=side,  # type: ignore[arg-type]
        size=size,
        price=price,
        timestamp=timestamp,
        outcome=outcome,
        slug=f"slug-{market_id}" if slug is None else slug,
        title=f"Market {market_id}",
        venue=venue,
    )


def make_market(
    market_id: str = "m1",
    *,
    end_date: int | None = NOW,
    resolved_at: int | None = None,
    outcome: str | None = None,
    volume: float = 0.0,
    cached_at: int = NOW,
) -> MarketMetadata:
    """Create a MarketMetadata row for testing."""
    return MarketMetadata(
        market_id=market_id,
        title=f"Market {market_id}",
        cached_at=cached_at,
        slug=f"slug-{market_id}",
        end_date=end_date,
        resolved_at=resolved_at,
        outcome=outcome,
        active=resolved_at is None,
        volume=volume,
    )


@pytest.fixture
async def async_engine():
    """Create an in-memory SQLite engine shared across sessions."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def session_scope(session_factory):
    """Transactional session context, like DatabaseManager.get_async_session."""

    @asynccontextmanager
    async def scope() -> AsyncGenerator[AsyncSession, None]:
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    return scope


class FakeVenueAdapter:
    """In-memory venue adapter serving one account's canned records."""

    venue = Venue.POLYMARKET

    def __init__(
        self,
        trades=(),
        positions=(),
        activities=(),
        markets=None,
        failures=(),
    ) -> None:
        self.trades = list(trades)
        self.positions = list(positions)
        self.activities = list(activities)
        self.markets = markets or {}
        self.failures = set(failures)
        self.lookups: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_trades(self, account_id: str) -> list[Trade]:
        return self.trades

    async def get_positions(self, account_id: str):
        if "positions" in self.failures:
            raise VenueApiError(503, "/positions", "Service unavailable")
        return self.positions

    async def get_activity(self, account_id: str):
        return self.activities

    async def get_market_by_key(self, key: str) -> RawMarket | None:
        self.lookups.append(key)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        if key in self.failures:
            raise VenueApiError(500, key, "Server error")
        return self.markets.get(key)

    async def aclose(self) -> None:
        pass
