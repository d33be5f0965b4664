"""Shared HTTP plumbing for venue adapters: rate limiting, retry and errors."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol

import httpx

from insider_scorer.scoring.models import Activity, Position, RawMarket, Trade, Venue

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 1.0
DEFAULT_TIMEOUT = 30.0
USER_AGENT = "insider-scorer/0.1.0"


class VenueError(Exception):
    """Base exception for venue adapter errors."""


class VenueApiError(VenueError):
    """Raised when a venue API request fails for good."""

    def __init__(self, status: int, url: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.url = url


class VenueNotFoundError(VenueError):
    """Raised when a required venue resource does not exist (404)."""


class RateLimiter:
    """Token bucket rate limiter for API requests.

    Each adapter owns its limiter, so venues (and tests) never share state.
    """

    def __init__(
        self,
        capacity: float = 10.0,
        refill_rate: float = 5.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            capacity: Maximum burst size in requests.
            refill_rate: Tokens added per second.
            clock: Monotonic time source.
        """
        if capacity <= 0 or refill_rate <= 0:
            raise ValueError("capacity and refill_rate must be positive")
        self.capacity = capacity
        self.refill_rate = refill_rate
        self._clock = clock
        self._tokens = capacity
        self._updated_at = clock()
        self._lock = asyncio.Lock()

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._updated_at
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_rate)
        self._updated_at = now

    async def acquire(self) -> None:
        """Wait until a request token is available, then take it."""
        async with self._lock:
            self._refill()
            if self._tokens < 1:
                wait_time = (1 - self._tokens) / self.refill_rate
                await asyncio.sleep(wait_time)
                self._refill()
            self._tokens = max(0.0, self._tokens - 1)


class VenueAdapter(Protocol):
    """Data source the scoring engine reads one account's records from."""

    venue: Venue

    async def get_trades(self, account_id: str) -> list[Trade]: ...

    async def get_positions(self, account_id: str) -> list[Position]: ...

    async def get_activity(self, account_id: str) -> list[Activity]: ...

    async def get_market_by_key(self, key: str) -> RawMarket | None: ...

    async def aclose(self) -> None: ...


def _retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


class HttpVenueClient:
    """httpx wrapper with rate limiting and bounded retry.

    Behavior per response:
        * 2xx: parsed JSON is returned.
        * 404: None (or VenueNotFoundError when ``not_found_ok`` is False).
        * 429: waits ``Retry-After`` seconds (or exponential backoff) and retries.
        * 5xx and transport errors: retried with exponential backoff.
        * anything else: VenueApiError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        rate_limiter: RateLimiter | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json", "User-Agent": USER_AGENT},
        )

    async def __aenter__(self) -> HttpVenueClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _backoff(self, attempt: int) -> float:
        return self.base_delay * (2**attempt)

    async def get_json(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | Sequence[tuple[str, Any]] | None = None,
        headers: Mapping[str, str] | Callable[[], Mapping[str, str]] | None = None,
        not_found_ok: bool = True,
    ) -> Any | None:
        """GET ``path`` and return the decoded JSON body.

        Args:
            path: Path relative to the client's base URL.
            params: Query parameters.
            headers: Extra headers, or a callable producing them per attempt
                (signed requests need a fresh timestamp on every retry).
            not_found_ok: Return None on 404 instead of raising.
        """
        url = f"{self.base_url}{path}"
        last_error: VenueError | None = None

        for attempt in range(self.max_attempts):
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()

            extra = headers() if callable(headers) else headers
            try:
                response = await self._client.get(path, params=params, headers=extra)
            except httpx.TransportError as e:
                last_error = VenueError(f"Request to {url} failed: {e}")
                if attempt < self.max_attempts - 1:
                    delay = self._backoff(attempt)
                    logger.warning(
                        "Attempt %d/%d failed: %s. Retrying in %.1f seconds...",
                        attempt + 1,
                        self.max_attempts,
                        str(e),
                        delay,
                    )
                    await self._sleep(delay)
                    continue
                raise last_error from e

            status = response.status_code
            if response.is_success:
                try:
                    return response.json()
                except ValueError as e:
                    raise VenueApiError(status, url, "Response body is not valid JSON") from e

            if status == 404:
                if not_found_ok:
                    return None
                raise VenueNotFoundError(f"{url} returned 404")

            if status == 429:
                delay = _retry_after_seconds(response)
                if delay is None:
                    delay = self._backoff(attempt)
                last_error = VenueApiError(status, url, "Rate limited")
                if attempt < self.max_attempts - 1:
                    logger.warning("Rate limited by %s; waiting %.1f seconds", self.base_url, delay)
                    await self._sleep(delay)
                continue

            if status >= 500 and attempt < self.max_attempts - 1:
                delay = self._backoff(attempt)
                logger.warning(
                    "Server error %d from %s (attempt %d/%d). Retrying in %.1f seconds...",
                    status,
                    url,
                    attempt + 1,
                    self.max_attempts,
                    delay,
                )
                last_error = VenueApiError(status, url, f"Server error: {response.reason_phrase}")
                await self._sleep(delay)
                continue

            raise VenueApiError(
                status,
                url,
                f"API request failed: {status} {response.reason_phrase}",
            )

        if last_error is not None:
            raise last_error
        raise VenueError(f"Failed after {self.max_attempts} attempts: {url}")
