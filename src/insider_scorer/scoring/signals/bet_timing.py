"""Bet timing signal (highest weighted signal).

Trades placed shortly before a market ends are scored per trade and combined
as a USD-weighted average, so a large late bet dominates many small early
ones.
"""

from __future__ import annotations

from collections.abc import Sequence

from insider_scorer.scoring.models import MarketMap, SignalResult, Trade
from insider_scorer.scoring.utils import make_signal, trade_usd_value
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS

SECONDS_PER_HOUR = 3600

# (max hours before market end, raw score)
TIMING_BUCKETS: tuple[tuple[float, float], ...] = (
    (1, 1.0),
    (6, 0.8),
    (12, 0.6),
    (24, 0.3),
)


def timing_score(hours_before: float) -> float:
    """Map hours-before-resolution to a per-trade score."""
    for max_hours, bucket_score in TIMING_BUCKETS:
        if hours_before < max_hours:
            return bucket_score
    return 0.0


def score_bet_timing(
    trades: Sequence[Trade],
    market_cache: MarketMap,
    *,
    weight: int = DEFAULT_WEIGHTS.bet_timing,
) -> SignalResult:
    """Score how close to market end the account's volume was placed."""
    if not trades:
        return make_signal(0.0, weight, "No trades found")

    if not any(t.market_id in market_cache for t in trades):
        return make_signal(0.0, weight, "No market data available for traded markets")

    weighted_sum = 0.0
    total_volume = 0.0
    scored = 0

    for trade in trades:
        market = market_cache.get(trade.market_id)
        if market is None or market.end_date is None:
            continue

        hours_before = (market.end_date - trade.timestamp) / SECONDS_PER_HOUR
        if hours_before < 0:
            # placed after the market ended
            continue

        usd = trade_usd_value(trade)
        weighted_sum += timing_score(hours_before) * usd
        total_volume += usd
        scored += 1

    if scored == 0 or total_volume <= 0:
        return make_signal(0.0, weight, "No trades with market end dates available")

    raw = weighted_sum / total_volume
    return make_signal(
        raw,
        weight,
        f"{scored} trades scored for timing; volume-weighted avg = {raw:.3f}",
    )
