"""Wallet age signal.

Newer accounts score higher: an account whose first trade is hours old and
already placing positions is more suspicious than a long-lived one.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime

from insider_scorer.scoring.models import SignalResult, Trade
from insider_scorer.scoring.utils import make_signal, now_unix, sort_by_time
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS

SECONDS_PER_DAY = 86_400

# (max age in days, raw score), checked in order
AGE_BUCKETS: tuple[tuple[float, float], ...] = (
    (1, 1.0),
    (3, 0.8),
    (7, 0.6),
    (14, 0.3),
    (30, 0.1),
)


def score_wallet_age(
    trades: Sequence[Trade],
    *,
    now: int | None = None,
    weight: int = DEFAULT_WEIGHTS.wallet_age,
) -> SignalResult:
    """Score how recently the account started trading.

    Args:
        trades: All trades for the account.
        now: Reference time in unix seconds (defaults to the current time).
        weight: Signal weight.

    Returns:
        SignalResult with raw in [0, 1].
    """
    if not trades:
        return make_signal(0.0, weight, "No trades found")

    now = now_unix() if now is None else now
    first_ts = sort_by_time(trades)[0].timestamp
    age_days = (now - first_ts) / SECONDS_PER_DAY

    raw = 0.0
    for max_days, bucket_score in AGE_BUCKETS:
        if age_days < max_days:
            raw = bucket_score
            break

    first_date = datetime.fromtimestamp(first_ts, tz=UTC).strftime("%Y-%m-%d")
    return make_signal(
        raw,
        weight,
        f"Wallet age: {int(age_days)} days (first trade {first_date})",
    )
