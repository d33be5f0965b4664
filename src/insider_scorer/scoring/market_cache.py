"""Read-through market metadata cache.

Resolves each traded market to its metadata. Persisted rows younger than the
TTL are used as-is; misses are fetched from the venue in small concurrent
batches and written back. Markets whose lookup fails are left out of the
returned map, which signals treat as "cannot score this market".
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from contextlib import AbstractAsyncContextManager
from typing import TYPE_CHECKING

from insider_scorer.scoring.models import MarketMetadata, RawMarket, Trade, Venue
from insider_scorer.scoring.utils import now_unix
from insider_scorer.storage.repos import MarketRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from insider_scorer.venues.base import VenueAdapter

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60
DEFAULT_BATCH_SIZE = 5

SessionScope = Callable[[], AbstractAsyncContextManager["AsyncSession"]]


def lookup_keys(trades: Sequence[Trade]) -> dict[str, str]:
    """Map each market id to the first non-empty slug (or ticker) seen for it."""
    keys: dict[str, str] = {}
    for trade in trades:
        if trade.market_id and trade.slug and trade.market_id not in keys:
            keys[trade.market_id] = trade.slug
    return keys


def to_metadata(
    market_id: str,
    raw: RawMarket,
    *,
    venue: Venue,
    cached_at: int,
) -> MarketMetadata:
    """Normalize a venue payload into a cache row."""
    resolved_at = None
    if raw.closed:
        resolved_at = raw.closed_at if raw.closed_at is not None else raw.end_date
    return MarketMetadata(
        market_id=market_id,
        title=raw.title or raw.slug,
        cached_at=cached_at,
        slug=raw.slug or None,
        event_id=raw.event_id,
        end_date=raw.end_date,
        resolved_at=resolved_at,
        outcome=raw.outcome,
        active=raw.active,
        volume=raw.volume,
        venue=venue,
    )


class MarketCache:
    """Builds the market map a scoring pass reads from."""

    def __init__(
        self,
        session_scope: SessionScope,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize the cache.

        Args:
            session_scope: Callable returning a transactional session context
                (e.g. ``DatabaseManager.get_async_session``).
            ttl_seconds: Age after which a persisted row is refetched.
            batch_size: Concurrent venue lookups per batch.
        """
        self._session_scope = session_scope
        self.ttl_seconds = ttl_seconds
        self.batch_size = batch_size

    async def build(
        self,
        trades: Sequence[Trade],
        adapter: VenueAdapter,
        *,
        now: int | None = None,
    ) -> dict[str, MarketMetadata]:
        """Return market_id -> MarketMetadata for every market that resolved."""
        keys = lookup_keys(trades)
        if not keys:
            return {}

        now = now_unix() if now is None else now

        async with self._session_scope() as session:
            stored = await MarketRepository(session).get_many(keys)

        cache: dict[str, MarketMetadata] = {}
        misses: list[tuple[str, str]] = []
        for market_id, key in keys.items():
            row = stored.get(market_id)
            if row is not None and now - row.cached_at < self.ttl_seconds:
                cache[market_id] = row
            else:
                misses.append((market_id, key))

        if misses:
            logger.debug("Market cache: %d hits, %d misses", len(cache), len(misses))

        for start in range(0, len(misses), self.batch_size):
            batch = misses[start : start + self.batch_size]
            fresh = await self._fetch_batch(batch, adapter, now)
            if not fresh:
                continue
            async with self._session_scope() as session:
                repo = MarketRepository(session)
                for market in fresh:
                    await repo.upsert(market)
            cache.update((m.market_id, m) for m in fresh)

        return cache

    async def _fetch_batch(
        self,
        batch: Sequence[tuple[str, str]],
        adapter: VenueAdapter,
        now: int,
    ) -> list[MarketMetadata]:
        results = await asyncio.gather(
            *(adapter.get_market_by_key(key) for _, key in batch),
            return_exceptions=True,
        )

        fresh = []
        for (market_id, key), result in zip(batch, results):
            if isinstance(result, Exception):
                logger.warning("Market lookup failed for %s: %s", key, result)
                continue
            if isinstance(result, BaseException):
                raise result
            if result is None:
                logger.debug("No market found for %s", key)
                continue
            fresh.append(to_metadata(market_id, result, venue=adapter.venue, cached_at=now))
        return fresh
