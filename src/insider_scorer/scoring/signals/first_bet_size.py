"""First bet size signal.

Experienced traders rarely open an account with a large position. A big
first bet, especially when the next trades pile into the same market, points
at premeditation.
"""

from __future__ import annotations

from collections.abc import Sequence

from insider_scorer.scoring.models import SignalResult, Trade
from insider_scorer.scoring.utils import clamp, make_signal, sort_by_time, trade_usd_value
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS

# (exclusive lower bound in USD, raw score), checked in order
SIZE_BUCKETS: tuple[tuple[float, float], ...] = (
    (25_000, 1.0),
    (10_000, 0.9),
    (5_000, 0.7),
    (2_000, 0.5),
    (500, 0.3),
    (100, 0.1),
)
SAME_MARKET_BONUS = 1.2
SAME_MARKET_TRADES = 3


def score_first_bet_size(
    trades: Sequence[Trade],
    *,
    weight: int = DEFAULT_WEIGHTS.first_bet_size,
) -> SignalResult:
    """Score the USD size of the account's earliest trade."""
    if not trades:
        return make_signal(0.0, weight, "No trades found")

    ordered = sort_by_time(trades)
    first_bet_usd = trade_usd_value(ordered[0])

    raw = 0.0
    for threshold, bucket_score in SIZE_BUCKETS:
        if first_bet_usd > threshold:
            raw = bucket_score
            break

    same_market = len(ordered) >= SAME_MARKET_TRADES and all(
        t.market_id == ordered[0].market_id for t in ordered[:SAME_MARKET_TRADES]
    )
    if same_market:
        raw = clamp(raw * SAME_MARKET_BONUS, 0.0, 1.0)

    details = f"First bet: ${first_bet_usd:,.2f} USD"
    if same_market:
        details += f"; first {SAME_MARKET_TRADES} trades in the same market"
    return make_signal(raw, weight, details)
