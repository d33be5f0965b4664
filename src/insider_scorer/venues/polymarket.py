"""Polymarket adapter over the public data and gamma APIs."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from insider_scorer.scoring.models import Activity, Position, RawMarket, Trade, Venue
from insider_scorer.scoring.utils import iso_to_unix
from insider_scorer.venues.base import HttpVenueClient, RateLimiter, VenueApiError

logger = logging.getLogger(__name__)

DEFAULT_DATA_API_URL = "https://data-api.polymarket.com"
DEFAULT_GAMMA_API_URL = "https://gamma-api.polymarket.com"
DEFAULT_TRADE_LIMIT = 300
DEFAULT_ACTIVITY_LIMIT = 100

ACTIVITY_TYPES = frozenset({"TRADE", "REDEEM", "SPLIT", "MERGE"})


def _float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_trade(account_id: str, payload: dict[str, Any]) -> Trade | None:
    """Normalize a data-API trade; returns None when required fields are missing."""
    market_id = payload.get("conditionId")
    side = str(payload.get("side") or "").upper()
    timestamp = payload.get("timestamp")
    if not market_id or side not in ("BUY", "SELL") or timestamp is None:
        return None
    return Trade(
        account_id=account_id,
        market_id=market_id,
        side=side,  # type: ignore[arg-type]
        size=_float(payload.get("size")),
        price=_float(payload.get("price")),
        timestamp=int(timestamp),
        outcome=payload.get("outcome") or "",
        slug=payload.get("slug") or "",
        title=payload.get("title") or "",
        event_slug=payload.get("eventSlug") or "",
        transaction_hash=payload.get("transactionHash") or "",
        venue=Venue.POLYMARKET,
        trader_name=payload.get("name") or payload.get("pseudonym") or "",
        profile_image=payload.get("profileImage") or "",
    )


def parse_position(payload: dict[str, Any]) -> Position | None:
    market_id = payload.get("conditionId")
    if not market_id:
        return None
    return Position(
        market_id=market_id,
        size=_float(payload.get("size")),
        realized_pnl=_float(payload.get("realizedPnl")),
        cash_pnl=_float(payload.get("cashPnl")),
        outcome=payload.get("outcome") or "",
        title=payload.get("title") or "",
    )


def parse_activity(payload: dict[str, Any]) -> Activity | None:
    activity_type = str(payload.get("type") or "").upper()
    timestamp = payload.get("timestamp")
    if activity_type not in ACTIVITY_TYPES or timestamp is None:
        return None
    return Activity(
        type=activity_type,  # type: ignore[arg-type]
        market_id=payload.get("conditionId") or "",
        timestamp=int(timestamp),
        side=str(payload.get("side") or "").upper(),
        size=_optional_float(payload.get("size")),
        usdc_size=_optional_float(payload.get("usdcSize")),
    )


def _load_json_list(value: Any) -> list[Any] | None:
    if isinstance(value, list):
        return value
    if not isinstance(value, str):
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    return parsed if isinstance(parsed, list) else None


def derive_outcome(payload: dict[str, Any]) -> str | None:
    """Return the winning outcome label of a closed gamma market.

    The winner is the outcome whose settled price is exactly 1. Markets that
    do not expose settled prices fall back to the ``resolution`` field.
    """
    if not payload.get("closed"):
        return None
    outcomes = _load_json_list(payload.get("outcomes"))
    prices = _load_json_list(payload.get("outcomePrices"))
    if outcomes is not None and prices is not None:
        for index, price in enumerate(prices):
            if str(price) == "1" and index < len(outcomes):
                return str(outcomes[index])
    return payload.get("resolution") or None


def parse_market(payload: dict[str, Any], slug: str) -> RawMarket:
    closed = bool(payload.get("closed"))
    closed_at = None
    if closed:
        closed_at = iso_to_unix(payload.get("closedTime")) or iso_to_unix(payload.get("updatedAt"))

    events = payload.get("events") or []
    event_id = None
    if events and isinstance(events[0], dict) and events[0].get("id") is not None:
        event_id = str(events[0]["id"])

    volume = payload.get("volumeNum")
    if volume is None:
        volume = payload.get("volume")

    return RawMarket(
        slug=payload.get("slug") or slug,
        title=payload.get("title") or payload.get("question") or "",
        end_date=iso_to_unix(payload.get("endDate")),
        closed=closed,
        closed_at=closed_at,
        outcome=derive_outcome(payload),
        active=bool(payload.get("active", True)),
        volume=_float(volume),
        event_id=event_id,
    )


def _parse_list(
    payload: Any,
    parser: Callable[[dict[str, Any]], Any],
    *,
    source: str,
    url: str,
) -> list[Any]:
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise VenueApiError(200, url, f"Unexpected {source} response shape")
    parsed = []
    skipped = 0
    for item in payload:
        record = parser(item) if isinstance(item, dict) else None
        if record is None:
            skipped += 1
            continue
        parsed.append(record)
    if skipped:
        logger.debug("Skipped %d malformed %s from Polymarket", skipped, source)
    return parsed


class PolymarketAdapter:
    """Fetches one wallet's trades, positions and activity from Polymarket.

    Both API clients share the adapter's rate limiter.
    """

    venue = Venue.POLYMARKET

    def __init__(
        self,
        data_client: HttpVenueClient,
        gamma_client: HttpVenueClient,
        *,
        trade_limit: int = DEFAULT_TRADE_LIMIT,
        activity_limit: int = DEFAULT_ACTIVITY_LIMIT,
    ) -> None:
        self.data_client = data_client
        self.gamma_client = gamma_client
        self.trade_limit = trade_limit
        self.activity_limit = activity_limit

    @classmethod
    def create(
        cls,
        *,
        data_api_url: str = DEFAULT_DATA_API_URL,
        gamma_api_url: str = DEFAULT_GAMMA_API_URL,
        rate_limiter: RateLimiter | None = None,
        trade_limit: int = DEFAULT_TRADE_LIMIT,
        activity_limit: int = DEFAULT_ACTIVITY_LIMIT,
        **client_kwargs: Any,
    ) -> PolymarketAdapter:
        limiter = rate_limiter or RateLimiter()
        return cls(
            HttpVenueClient(data_api_url, rate_limiter=limiter, **client_kwargs),
            HttpVenueClient(gamma_api_url, rate_limiter=limiter, **client_kwargs),
            trade_limit=trade_limit,
            activity_limit=activity_limit,
        )

    async def __aenter__(self) -> PolymarketAdapter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.data_client.aclose()
        await self.gamma_client.aclose()

    async def get_trades(self, account_id: str) -> list[Trade]:
        payload = await self.data_client.get_json(
            "/trades", params={"user": account_id, "limit": self.trade_limit}
        )
        return _parse_list(
            payload,
            lambda item: parse_trade(account_id, item),
            source="trades",
            url=f"{self.data_client.base_url}/trades",
        )

    async def get_positions(self, account_id: str) -> list[Position]:
        payload = await self.data_client.get_json("/positions", params={"user": account_id})
        return _parse_list(
            payload,
            parse_position,
            source="positions",
            url=f"{self.data_client.base_url}/positions",
        )

    async def get_activity(self, account_id: str) -> list[Activity]:
        payload = await self.data_client.get_json(
            "/activity", params={"user": account_id, "limit": self.activity_limit}
        )
        return _parse_list(
            payload,
            parse_activity,
            source="activities",
            url=f"{self.data_client.base_url}/activity",
        )

    async def get_market_by_key(self, key: str) -> RawMarket | None:
        """Look up a market by slug on the gamma API."""
        payload = await self.gamma_client.get_json("/markets", params={"slug": key, "limit": 1})
        if not payload or not isinstance(payload, list) or not isinstance(payload[0], dict):
            return None
        return parse_market(payload[0], key)

    async def get_recent_traders(self, limit: int = 500) -> list[str]:
        """Discover active wallets from the most recent global trades.

        Returns lowercased proxy wallet addresses in order of first appearance.
        """
        payload = await self.data_client.get_json("/trades", params={"limit": limit})
        if not isinstance(payload, list):
            return []
        wallets: dict[str, None] = {}
        for item in payload:
            if not isinstance(item, dict):
                continue
            address = str(item.get("proxyWallet") or "").lower()
            if address:
                wallets.setdefault(address, None)
        return list(wallets)
