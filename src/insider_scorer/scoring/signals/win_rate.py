"""Win rate signal.

Wins and losses are counted per resolved market, fusing two sources:

1. Position PnL (realized + cash). Its sign decides the market.
2. For markets without a position, the outcome the account bought most of
   (USD-weighted) compared with the market's resolved outcome.

Only markets that resolved within ``LOOKBACK_DAYS`` of the account's first
trade in them are counted, so long-dormant holdings do not inflate the rate.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from insider_scorer.scoring.models import MarketMap, MarketMetadata, Position, SignalResult, Trade
from insider_scorer.scoring.utils import make_signal, trade_usd_value
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS

SECONDS_PER_DAY = 86_400
LOOKBACK_DAYS = 90

# (exclusive minimum win rate, minimum resolved markets, raw score)
RATE_BUCKETS: tuple[tuple[float, int, float], ...] = (
    (0.9, 3, 1.0),
    (0.8, 3, 0.8),
    (0.7, 2, 0.6),
    (0.6, 2, 0.3),
)
SINGLE_WIN_SCORE = 0.2


def _resolution_time(market: MarketMetadata) -> int | None:
    return market.resolved_at if market.resolved_at is not None else market.end_date


def _within_lookback(market: MarketMetadata, first_trade_at: int | None) -> bool:
    resolved = _resolution_time(market)
    if resolved is None:
        return False
    if first_trade_at is None:
        # position without any trade history in this pass
        return True
    elapsed = resolved - first_trade_at
    return 0 <= elapsed <= LOOKBACK_DAYS * SECONDS_PER_DAY


def _dominant_outcome(trades: Sequence[Trade]) -> str | None:
    volume_by_outcome: dict[str, float] = defaultdict(float)
    for trade in trades:
        if trade.side == "BUY" and trade.outcome:
            volume_by_outcome[trade.outcome.lower()] += trade_usd_value(trade)
    if not volume_by_outcome:
        return None
    return max(volume_by_outcome.items(), key=lambda item: item[1])[0]


def _rate_score(wins: int, total: int) -> float:
    if total == 0:
        return 0.0
    rate = wins / total
    for min_rate, min_samples, bucket_score in RATE_BUCKETS:
        if rate > min_rate and total >= min_samples:
            return bucket_score
    if total == 1 and wins == 1:
        return SINGLE_WIN_SCORE
    return 0.0


def score_win_rate(
    positions: Sequence[Position],
    trades: Sequence[Trade],
    market_cache: MarketMap,
    *,
    weight: int = DEFAULT_WEIGHTS.win_rate,
) -> SignalResult:
    """Score the account's win rate on recently resolved markets."""
    trades_by_market: dict[str, list[Trade]] = defaultdict(list)
    for trade in trades:
        trades_by_market[trade.market_id].append(trade)

    if not positions and not trades:
        return make_signal(0.0, weight, "No positions or trades found")

    known_markets = set(trades_by_market) | {p.market_id for p in positions}
    if not any(m in market_cache for m in known_markets):
        return make_signal(0.0, weight, "No market data available for traded markets")

    first_trade_at = {
        market_id: min(t.timestamp for t in market_trades)
        for market_id, market_trades in trades_by_market.items()
    }

    results: dict[str, bool] = {}

    for position in positions:
        if position.market_id in results:
            continue
        market = market_cache.get(position.market_id)
        if market is None or not market.is_resolved:
            continue
        if not _within_lookback(market, first_trade_at.get(position.market_id)):
            continue
        pnl = position.total_pnl
        if pnl == 0:
            continue
        results[position.market_id] = pnl > 0

    from_positions = len(results)

    for market_id, market_trades in trades_by_market.items():
        if market_id in results:
            continue
        market = market_cache.get(market_id)
        if market is None or not market.is_resolved or market.outcome is None:
            continue
        if not _within_lookback(market, first_trade_at[market_id]):
            continue
        bought = _dominant_outcome(market_trades)
        if bought is None:
            continue
        results[market_id] = bought == market.outcome.lower()

    total = len(results)
    if total == 0:
        return make_signal(0.0, weight, "No resolved markets within lookback window")

    wins = sum(1 for won in results.values() if won)
    raw = _rate_score(wins, total)
    details = (
        f"Win rate: {wins}/{total} ({wins / total:.0%}) on resolved markets "
        f"({from_positions} from positions, {total - from_positions} inferred from trades)"
    )
    if raw == 0 and total < 2:
        details += "; sample too small"
    return make_signal(raw, weight, details)
