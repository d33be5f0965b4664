"""Kalshi adapter over the trade API.

Kalshi only exposes fills and positions for the authenticated account, so the
adapter scores the account that owns the API key. Prices arrive in cents and
are converted to probability units.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote, urlsplit

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from insider_scorer.scoring.models import Activity, Position, RawMarket, Trade, Venue
from insider_scorer.scoring.utils import iso_to_unix
from insider_scorer.venues.base import HttpVenueClient, RateLimiter, VenueApiError, VenueError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.elections.kalshi.com/trade-api/v2"
MAX_FILLS_PER_REQUEST = 200
MAX_POSITIONS_PER_REQUEST = 1000
CENTS_PER_DOLLAR = 100

RESOLVED_STATUSES = frozenset({"settled", "closed", "finalized"})


class KalshiSigner:
    """Produces KALSHI-ACCESS-* headers signed with RSA-PSS / SHA-256."""

    def __init__(
        self,
        key_id: str,
        private_key: rsa.RSAPrivateKey,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.key_id = key_id
        self._private_key = private_key
        self._clock = clock

    @classmethod
    def from_pem(
        cls,
        key_id: str,
        pem: str | bytes,
        *,
        clock: Callable[[], float] = time.time,
    ) -> KalshiSigner:
        data = pem.encode("utf-8") if isinstance(pem, str) else pem
        key = serialization.load_pem_private_key(data, password=None)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise VenueError("Kalshi private key must be an RSA key")
        return cls(key_id, key, clock=clock)

    def sign(self, message: str) -> str:
        signature = self._private_key.sign(
            message.encode("utf-8"),
            padding.PSS(
                mgf=padding.MGF1(hashes.SHA256()),
                salt_length=padding.PSS.DIGEST_LENGTH,
            ),
            hashes.SHA256(),
        )
        return base64.b64encode(signature).decode("ascii")

    def headers(self, method: str, path: str) -> dict[str, str]:
        """Sign ``timestamp + METHOD + path``; the query string is not signed."""
        timestamp_ms = str(int(self._clock() * 1000))
        path_without_query = path.split("?", 1)[0]
        return {
            "KALSHI-ACCESS-KEY": self.key_id,
            "KALSHI-ACCESS-TIMESTAMP": timestamp_ms,
            "KALSHI-ACCESS-SIGNATURE": self.sign(timestamp_ms + method.upper() + path_without_query),
        }


def _float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _fill_timestamp(payload: dict[str, Any]) -> int | None:
    ts = payload.get("ts")
    if ts is not None:
        return int(ts)
    return iso_to_unix(payload.get("created_time"))


def _fill_price(payload: dict[str, Any]) -> float:
    key = "yes_price" if payload.get("side") == "yes" else "no_price"
    return _float(payload.get(key)) / CENTS_PER_DOLLAR


def parse_fill(account_id: str, payload: dict[str, Any]) -> Trade | None:
    """Normalize a portfolio fill into a Trade."""
    market_id = payload.get("market_ticker") or payload.get("ticker")
    action = str(payload.get("action") or "").upper()
    timestamp = _fill_timestamp(payload)
    if not market_id or action not in ("BUY", "SELL") or timestamp is None:
        return None
    return Trade(
        account_id=account_id,
        market_id=market_id,
        side=action,  # type: ignore[arg-type]
        size=_float(payload.get("count", payload.get("count_fp"))),
        price=_fill_price(payload),
        timestamp=timestamp,
        outcome="Yes" if payload.get("side") == "yes" else "No",
        slug=market_id,
        transaction_hash=payload.get("fill_id") or payload.get("trade_id") or "",
        venue=Venue.KALSHI,
    )


def parse_position(payload: dict[str, Any]) -> Position | None:
    ticker = payload.get("ticker")
    if not ticker:
        return None
    net = _float(payload.get("position"))
    outcome = "Yes" if net > 0 else "No" if net < 0 else ""
    return Position(
        market_id=ticker,
        size=abs(net),
        realized_pnl=_float(payload.get("realized_pnl")) / CENTS_PER_DOLLAR,
        cash_pnl=0.0,
        outcome=outcome,
    )


def parse_market(payload: dict[str, Any], ticker: str) -> RawMarket:
    status = str(payload.get("status") or "").lower()
    closed = status in RESOLVED_STATUSES
    close_time = iso_to_unix(payload.get("close_time"))

    result = str(payload.get("result") or "").lower()
    outcome = {"yes": "Yes", "no": "No"}.get(result) if closed else None

    volume = payload.get("volume_fp")
    if volume is None:
        volume = payload.get("volume")

    return RawMarket(
        slug=payload.get("ticker") or ticker,
        title=payload.get("title") or "",
        end_date=close_time,
        closed=closed,
        closed_at=close_time if closed else None,
        outcome=outcome,
        active=status == "open",
        volume=_float(volume),
        event_id=payload.get("event_ticker"),
    )


class KalshiAdapter:
    """Fetches the authenticated Kalshi account's fills, positions and markets.

    Portfolio endpoints only serve the API key owner, so ``owner_id`` names
    that account and every other identifier is refused. Concurrent
    ``get_trades`` and ``get_activity`` calls share one fills request.
    """

    venue = Venue.KALSHI

    def __init__(
        self,
        client: HttpVenueClient,
        signer: KalshiSigner | None = None,
        *,
        owner_id: str | None = None,
        fill_limit: int = MAX_FILLS_PER_REQUEST,
    ) -> None:
        self.client = client
        self.signer = signer
        self.owner_id = owner_id.strip() if owner_id else None
        self._fills_in_flight: asyncio.Task[list[dict[str, Any]]] | None = None
        self.fill_limit = min(fill_limit, MAX_FILLS_PER_REQUEST)
        self._base_path = urlsplit(client.base_url).path.rstrip("/")

    @classmethod
    def create(
        cls,
        *,
        api_url: str = DEFAULT_API_URL,
        signer: KalshiSigner | None = None,
        owner_id: str | None = None,
        rate_limiter: RateLimiter | None = None,
        fill_limit: int = MAX_FILLS_PER_REQUEST,
        **client_kwargs: Any,
    ) -> KalshiAdapter:
        client = HttpVenueClient(api_url, rate_limiter=rate_limiter or RateLimiter(), **client_kwargs)
        return cls(client, signer, owner_id=owner_id, fill_limit=fill_limit)

    async def __aenter__(self) -> KalshiAdapter:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _get_signed(self, path: str, params: dict[str, Any]) -> Any:
        if self.signer is None:
            raise VenueError("Kalshi API credentials are required for portfolio endpoints")
        signer = self.signer
        signed_path = f"{self._base_path}{path}"
        return await self.client.get_json(
            path,
            params=params,
            headers=lambda: signer.headers("GET", signed_path),
            not_found_ok=False,
        )

    async def _get_fills(self) -> list[dict[str, Any]]:
        payload = await self._get_signed("/portfolio/fills", {"limit": self.fill_limit})
        fills = (payload or {}).get("fills") or []
        if not isinstance(fills, list):
            raise VenueApiError(200, f"{self.client.base_url}/portfolio/fills", "Unexpected fills response shape")
        return [f for f in fills if isinstance(f, dict)]

    def _check_owner(self, account_id: str) -> None:
        if self.owner_id is None:
            raise VenueError("KALSHI_ACCOUNT_ID must name the account that owns the API key")
        if account_id.strip() != self.owner_id:
            raise VenueError(
                f"Kalshi API key belongs to {self.owner_id}; cannot fetch records for {account_id}"
            )

    async def _shared_fills(self) -> list[dict[str, Any]]:
        task = self._fills_in_flight
        if task is None:
            task = asyncio.create_task(self._get_fills())
            self._fills_in_flight = task
            task.add_done_callback(self._release_fills)
        return await asyncio.shield(task)

    def _release_fills(self, task: asyncio.Task[list[dict[str, Any]]]) -> None:
        if self._fills_in_flight is task:
            self._fills_in_flight = None

    async def get_trades(self, account_id: str) -> list[Trade]:
        self._check_owner(account_id)
        fills = await self._shared_fills()
        trades = [t for t in (parse_fill(account_id, f) for f in fills) if t is not None]
        if len(trades) < len(fills):
            logger.debug("Skipped %d malformed fills from Kalshi", len(fills) - len(trades))
        return trades

    async def get_positions(self, account_id: str) -> list[Position]:
        self._check_owner(account_id)
        payload = await self._get_signed("/portfolio/positions", {"limit": MAX_POSITIONS_PER_REQUEST})
        rows = (payload or {}).get("market_positions") or []
        return [p for p in (parse_position(r) for r in rows if isinstance(r, dict)) if p is not None]

    async def get_activity(self, account_id: str) -> list[Activity]:
        """Return fills as TRADE activities (Kalshi has no redeem feed).

        Reuses the fills request of a concurrent ``get_trades`` call, so trades
        and activities of one scoring pass come from the same snapshot.
        """
        activities = []
        for trade in await self.get_trades(account_id):
            activities.append(
                Activity(
                    type="TRADE",
                    market_id=trade.market_id,
                    timestamp=trade.timestamp,
                    side=trade.side,
                    size=trade.size,
                    usdc_size=trade.usd_value,
                )
            )
        return activities

    async def get_market_by_key(self, key: str) -> RawMarket | None:
        """Look up a market by ticker (public endpoint)."""
        payload = await self.client.get_json(f"/markets/{quote(key, safe='')}")
        market = (payload or {}).get("market")
        if not isinstance(market, dict):
            return None
        return parse_market(market, key)
