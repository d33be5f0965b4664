"""Market selection signal.

Insiders gravitate to a handful of high-volume markets. The share of traded
markets above the volume threshold is bucketed, and a narrow focus (fewer
than five markets) boosts the score.
"""

from __future__ import annotations

from collections.abc import Sequence

from insider_scorer.scoring.models import MarketMap, SignalResult, Trade
from insider_scorer.scoring.utils import clamp, make_signal, unique_markets
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS

HIGH_VOLUME_THRESHOLD = 500_000
FOCUS_MARKET_LIMIT = 5
FOCUS_BONUS = 1.3

RATIO_BUCKETS: tuple[tuple[float, float], ...] = (
    (0.9, 1.0),
    (0.7, 0.7),
    (0.5, 0.4),
)


def score_market_selection(
    trades: Sequence[Trade],
    market_cache: MarketMap,
    *,
    weight: int = DEFAULT_WEIGHTS.market_selection,
) -> SignalResult:
    """Score the account's preference for high-volume markets."""
    markets = unique_markets(trades)
    if not markets:
        return make_signal(0.0, weight, "No markets traded")

    evaluated = [market_cache[m] for m in markets if m in market_cache]
    if not evaluated:
        return make_signal(0.0, weight, "No market data available for traded markets")

    high_volume = sum(1 for m in evaluated if (m.volume or 0.0) > HIGH_VOLUME_THRESHOLD)
    ratio = high_volume / len(evaluated)

    raw = 0.0
    for threshold, bucket_score in RATIO_BUCKETS:
        if ratio > threshold:
            raw = bucket_score
            break

    if len(markets) < FOCUS_MARKET_LIMIT:
        raw = clamp(raw * FOCUS_BONUS, 0.0, 1.0)

    return make_signal(
        raw,
        weight,
        f"{high_volume}/{len(evaluated)} high-volume markets (ratio {ratio:.2f}), "
        f"{len(markets)} unique markets",
    )
