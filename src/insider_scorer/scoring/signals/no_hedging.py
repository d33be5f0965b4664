"""No hedging signal.

An insider who knows the outcome buys one side once and holds. Buying both
outcomes (hedging) or averaging into the same outcome at spread-out prices
(DCA) are ordinary trader behavior.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from insider_scorer.scoring.models import SignalResult, Trade
from insider_scorer.scoring.utils import make_signal
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS

DCA_PRICE_SPREAD = 0.2

RATIO_BUCKETS: tuple[tuple[float, float], ...] = (
    (0.9, 1.0),
    (0.7, 0.7),
    (0.5, 0.4),
)


def classify_market(buys: Sequence[Trade]) -> str:
    """Classify one market's buys as "hedge", "dca" or "conviction"."""
    outcomes = {b.outcome for b in buys}
    if len(outcomes) >= 2:
        return "hedge"

    if len(buys) >= 2:
        prices = [b.price for b in buys]
        low, high = min(prices), max(prices)
        if low > 0 and (high - low) / low > DCA_PRICE_SPREAD:
            return "dca"

    return "conviction"


def score_no_hedging(
    trades: Sequence[Trade],
    *,
    weight: int = DEFAULT_WEIGHTS.no_hedging,
) -> SignalResult:
    """Score the share of markets the account bought with pure conviction."""
    buys_by_market: dict[str, list[Trade]] = defaultdict(list)
    for trade in trades:
        if trade.side == "BUY":
            buys_by_market[trade.market_id].append(trade)

    if not buys_by_market:
        return make_signal(0.0, weight, "No markets with buy trades")

    counts = {"conviction": 0, "hedge": 0, "dca": 0}
    for buys in buys_by_market.values():
        counts[classify_market(buys)] += 1

    ratio = counts["conviction"] / len(buys_by_market)
    raw = 0.0
    for threshold, bucket_score in RATIO_BUCKETS:
        if ratio > threshold:
            raw = bucket_score
            break

    return make_signal(
        raw,
        weight,
        f"{counts['conviction']}/{len(buys_by_market)} conviction markets "
        f"({counts['hedge']} hedged, {counts['dca']} DCA)",
    )
