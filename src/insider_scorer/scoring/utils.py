"""Numeric and time helpers shared by the signal modules."""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from insider_scorer.scoring.models import SignalResult, Trade


def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp a value between lo and hi (inclusive)."""
    return min(max(value, lo), hi)


def trade_usd_value(trade: Trade) -> float:
    """Return the USD value of a trade (size * price)."""
    return trade.size * trade.price


def sort_by_time(trades: Iterable[Trade]) -> list[Trade]:
    """Return a new list of trades sorted by timestamp, earliest first."""
    return sorted(trades, key=lambda t: t.timestamp)


def unique_markets(trades: Sequence[Trade]) -> list[str]:
    """Return market ids in order of first appearance."""
    return list(dict.fromkeys(t.market_id for t in trades))


def iso_to_unix(iso: str | None) -> int | None:
    """Parse an ISO-8601 string to unix seconds.

    Returns None for empty or unparseable input. Naive timestamps are
    treated as UTC.
    """
    if not iso:
        return None
    try:
        parsed = datetime.fromisoformat(iso.strip().replace("Z", "+00:00"))
    except (TypeError, ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return int(parsed.timestamp())


def now_unix() -> int:
    """Current time as unix seconds."""
    return int(time.time())


def make_signal(raw: float, weight: int, details: str) -> SignalResult:
    """Build a SignalResult with raw clamped to [0, 1]."""
    clamped = clamp(raw, 0.0, 1.0)
    return SignalResult(
        raw=clamped,
        weight=weight,
        weighted=clamped * weight,
        details=details,
    )
