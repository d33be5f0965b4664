"""Withdrawal speed signal.

Redeeming winnings within minutes of resolution suggests a pre-planned exit.
Accounts that never redeem are scored on how close to resolution they sold
out of their positions instead.
"""

from __future__ import annotations

from collections.abc import Sequence

from insider_scorer.scoring.models import Activity, MarketMap, SignalResult
from insider_scorer.scoring.utils import make_signal
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS

SECONDS_PER_HOUR = 3600

REDEEM_BUCKETS: tuple[tuple[float, float], ...] = (
    (1, 1.0),
    (6, 0.7),
    (24, 0.3),
)

SELL_BUCKETS: tuple[tuple[float, float], ...] = (
    (2, 0.8),
    (12, 0.5),
    (48, 0.2),
)


def _bucket(hours: float, buckets: tuple[tuple[float, float], ...]) -> float:
    for max_hours, bucket_score in buckets:
        if hours < max_hours:
            return bucket_score
    return 0.0


def _score_redeems(
    redeems: Sequence[Activity], market_cache: MarketMap, weight: int
) -> SignalResult:
    if not any(r.market_id in market_cache for r in redeems):
        return make_signal(0.0, weight, "No market data available for redeemed markets")

    total = 0.0
    scored = 0
    for redeem in redeems:
        market = market_cache.get(redeem.market_id)
        if market is None or market.end_date is None:
            continue
        hours_after = (redeem.timestamp - market.end_date) / SECONDS_PER_HOUR
        if hours_after < 0:
            continue
        total += _bucket(hours_after, REDEEM_BUCKETS)
        scored += 1

    if scored == 0:
        return make_signal(0.0, weight, "No redeems with matching market end dates")

    raw = total / scored
    return make_signal(
        raw,
        weight,
        f"{scored} redeems scored; avg withdrawal speed = {raw:.3f}",
    )


def _score_sells(sells: Sequence[Activity], market_cache: MarketMap, weight: int) -> SignalResult:
    if not any(s.market_id in market_cache for s in sells):
        return make_signal(0.0, weight, "No redeems; no market data available for sold markets")

    total = 0.0
    scored = 0
    for sell in sells:
        market = market_cache.get(sell.market_id)
        if market is None or market.end_date is None:
            continue
        hours_from_end = abs(sell.timestamp - market.end_date) / SECONDS_PER_HOUR
        total += _bucket(hours_from_end, SELL_BUCKETS)
        scored += 1

    if scored == 0:
        return make_signal(0.0, weight, "No redeems; no sells with matching market end dates")

    raw = total / scored
    return make_signal(
        raw,
        weight,
        f"No redeems; {scored} sells scored by proximity to resolution, avg = {raw:.3f}",
    )


def score_withdrawal_speed(
    activities: Sequence[Activity],
    market_cache: MarketMap,
    *,
    weight: int = DEFAULT_WEIGHTS.withdrawal_speed,
) -> SignalResult:
    """Score how quickly the account exits after markets resolve.

    REDEEM events are the primary source. Only when the account has none are
    SELL trade activities used, scored by absolute distance from market end.
    """
    redeems = [a for a in activities if a.type == "REDEEM"]
    if redeems:
        return _score_redeems(redeems, market_cache, weight)

    sells = [a for a in activities if a.type == "TRADE" and a.side.upper() == "SELL"]
    if sells:
        return _score_sells(sells, market_cache, weight)

    return make_signal(0.0, weight, "No redeem or sell activities found")
