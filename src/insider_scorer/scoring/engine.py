"""Composite scorer.

Scores one account per call:

1. Fetch trades, positions and activity from the venue (concurrently).
2. Build the market cache from the trades.
3. Evaluate the seven signals in a fixed order.
4. Round the weighted sum to the 0-100 composite score.
5. Persist the account record, its trades and activities, and an alert when
   the score crosses the threshold, all in one transaction.

A venue failure aborts the pass before anything is written. Markets missing
from the cache only lower the affected signals.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from insider_scorer.scoring.alerts import build_alert
from insider_scorer.scoring.market_cache import MarketCache, SessionScope
from insider_scorer.scoring.models import (
    Activity,
    MarketMap,
    Position,
    ScoringMetadata,
    ScoringResult,
    SignalResults,
    Trade,
    Venue,
)
from insider_scorer.scoring.signals import (
    score_bet_timing,
    score_first_bet_size,
    score_market_selection,
    score_no_hedging,
    score_wallet_age,
    score_win_rate,
    score_withdrawal_speed,
)
from insider_scorer.scoring.utils import now_unix, sort_by_time, trade_usd_value
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS, WEIGHT_TOTAL, SignalWeights
from insider_scorer.storage.repos import (
    AccountDTO,
    AccountRepository,
    ActivityRepository,
    AlertRepository,
    TradeRepository,
)

if TYPE_CHECKING:
    from insider_scorer.venues.base import VenueAdapter

logger = logging.getLogger(__name__)


class ScoringError(Exception):
    """Raised when a scoring pass produces an invalid result."""


class UnsupportedVenueError(ScoringError, ValueError):
    """Raised when no adapter is registered for the requested venue."""


def evaluate_signals(
    trades: Sequence[Trade],
    positions: Sequence[Position],
    activities: Sequence[Activity],
    market_cache: MarketMap,
    *,
    now: int,
    weights: SignalWeights = DEFAULT_WEIGHTS,
) -> SignalResults:
    """Run the seven signals in evaluation order."""
    return SignalResults(
        wallet_age=score_wallet_age(trades, now=now, weight=weights.wallet_age),
        first_bet_size=score_first_bet_size(trades, weight=weights.first_bet_size),
        bet_timing=score_bet_timing(trades, market_cache, weight=weights.bet_timing),
        withdrawal_speed=score_withdrawal_speed(
            activities, market_cache, weight=weights.withdrawal_speed
        ),
        market_selection=score_market_selection(
            trades, market_cache, weight=weights.market_selection
        ),
        win_rate=score_win_rate(positions, trades, market_cache, weight=weights.win_rate),
        no_hedging=score_no_hedging(trades, weight=weights.no_hedging),
    )


def composite_score(signals: SignalResults) -> int:
    """Round the weighted sum half-up to an integer score."""
    total = math.floor(signals.weighted_sum() + 0.5)
    if not 0 <= total <= WEIGHT_TOTAL:
        raise ScoringError(f"Composite score {total} outside [0, {WEIGHT_TOTAL}]")
    return total


def aggregate_metadata(trades: Sequence[Trade], positions: Sequence[Position]) -> ScoringMetadata:
    ordered = sort_by_time(trades)
    return ScoringMetadata(
        total_volume=sum(trade_usd_value(t) for t in trades),
        total_pnl=sum(p.total_pnl for p in positions),
        trade_count=len(trades),
        first_trade_at=ordered[0].timestamp if ordered else None,
        last_trade_at=ordered[-1].timestamp if ordered else None,
    )


def normalize_account_id(identifier: str, venue: Venue) -> str:
    account_id = identifier.strip()
    if venue is Venue.POLYMARKET and account_id.lower().startswith("0x"):
        return account_id.lower()
    return account_id


def result_from_account(account: AccountDTO) -> ScoringResult:
    """Rebuild the scoring result stored on an account record.

    Raises:
        ValueError: If the stored venue or signal JSON is malformed.
        KeyError: If the stored signal JSON lacks a signal.
    """
    return ScoringResult(
        account_id=account.account_id,
        venue=Venue(account.venue),
        total_score=account.total_score,
        signals=SignalResults.from_dict(json.loads(account.signals_json)),
        metadata=ScoringMetadata(
            total_volume=account.total_volume,
            total_pnl=account.total_pnl,
            trade_count=account.trade_count,
            first_trade_at=account.first_trade_at,
            last_trade_at=account.last_trade_at,
        ),
    )


def _account_dto(
    result: ScoringResult,
    trades: Sequence[Trade],
    scored_at: datetime,
) -> AccountDTO:
    signals = result.signals
    first = trades[0] if trades else None
    return AccountDTO(
        account_id=result.account_id,
        venue=result.venue.value,
        total_score=result.total_score,
        wallet_age_score=signals.wallet_age.weighted,
        first_bet_size_score=signals.first_bet_size.weighted,
        bet_timing_score=signals.bet_timing.weighted,
        withdrawal_speed_score=signals.withdrawal_speed.weighted,
        market_selection_score=signals.market_selection.weighted,
        win_rate_score=signals.win_rate.weighted,
        no_hedging_score=signals.no_hedging.weighted,
        signals_json=json.dumps(signals.to_dict(), sort_keys=True),
        total_volume=result.metadata.total_volume,
        total_pnl=result.metadata.total_pnl,
        trade_count=result.metadata.trade_count,
        first_trade_at=result.metadata.first_trade_at,
        last_trade_at=result.metadata.last_trade_at,
        username=(first.trader_name or None) if first else None,
        profile_image=(first.profile_image or None) if first else None,
        scored_at=scored_at,
    )


class InsiderScorer:
    """Scores accounts against the registered venue adapters."""

    def __init__(
        self,
        session_scope: SessionScope,
        adapters: Mapping[Venue, VenueAdapter],
        *,
        weights: SignalWeights = DEFAULT_WEIGHTS,
        market_cache: MarketCache | None = None,
        clock: Callable[[], int] = now_unix,
    ) -> None:
        """Initialize the scorer.

        Args:
            session_scope: Callable returning a transactional session context
                (e.g. ``DatabaseManager.get_async_session``).
            adapters: Venue adapters keyed by venue.
            weights: Signal weight table.
            market_cache: Market cache; one over ``session_scope`` by default.
            clock: Unix-seconds time source, read once per pass.
        """
        self._session_scope = session_scope
        self.adapters = dict(adapters)
        self.weights = weights
        self.market_cache = market_cache or MarketCache(session_scope)
        self._clock = clock

    def _adapter_for(self, venue: Venue | str) -> tuple[Venue, VenueAdapter]:
        try:
            resolved = Venue(venue)
        except ValueError as e:
            raise UnsupportedVenueError(f"Unsupported venue: {venue}") from e
        adapter = self.adapters.get(resolved)
        if adapter is None:
            raise UnsupportedVenueError(f"No adapter configured for venue: {resolved.value}")
        return resolved, adapter

    async def recent_result(
        self,
        account_id: str,
        venue: Venue,
        *,
        max_age_seconds: int,
    ) -> ScoringResult | None:
        """Return the stored result if it was scored less than ``max_age_seconds`` ago."""
        async with self._session_scope() as session:
            account = await AccountRepository(session).get(account_id)
        if account is None or account.venue != venue.value or account.scored_at is None:
            return None

        scored_at = account.scored_at
        if scored_at.tzinfo is None:
            # SQLite hands back naive datetimes
            scored_at = scored_at.replace(tzinfo=UTC)
        if self._clock() - scored_at.timestamp() >= max_age_seconds:
            return None

        try:
            return result_from_account(account)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Stored score for %s is unreadable, rescoring: %s", account_id[:10], e)
            return None

    async def score_account(
        self,
        identifier: str,
        venue: Venue | str = Venue.POLYMARKET,
        *,
        max_age_seconds: int | None = None,
    ) -> ScoringResult:
        """Score one account and persist the result.

        With ``max_age_seconds`` set, a stored result younger than that is
        returned as is and the venue is not contacted.

        Raises:
            UnsupportedVenueError: If no adapter handles ``venue``.
            VenueError: If fetching the account's records fails.
            ScoringError: If the composite score is out of range.
        """
        resolved_venue, adapter = self._adapter_for(venue)
        account_id = normalize_account_id(identifier, resolved_venue)

        if max_age_seconds is not None:
            cached = await self.recent_result(
                account_id, resolved_venue, max_age_seconds=max_age_seconds
            )
            if cached is not None:
                logger.info("Reusing recent score for %s: %d/100", account_id[:10], cached.total_score)
                return cached

        trades, positions, activities = await asyncio.gather(
            adapter.get_trades(account_id),
            adapter.get_positions(account_id),
            adapter.get_activity(account_id),
        )
        logger.debug(
            "Fetched %d trades, %d positions, %d activities for %s",
            len(trades),
            len(positions),
            len(activities),
            account_id[:10],
        )

        now = self._clock()
        market_cache = await self.market_cache.build(trades, adapter, now=now)

        signals = evaluate_signals(
            trades,
            positions,
            activities,
            market_cache,
            now=now,
            weights=self.weights,
        )
        result = ScoringResult(
            account_id=account_id,
            venue=resolved_venue,
            total_score=composite_score(signals),
            signals=signals,
            metadata=aggregate_metadata(trades, positions),
        )

        scored_at = datetime.fromtimestamp(now, tz=UTC)
        alert = build_alert(account_id, result.total_score, signals, scored_at)

        async with self._session_scope() as session:
            await AccountRepository(session).upsert(
                _account_dto(result, trades, scored_at), now=scored_at
            )
            await TradeRepository(session).replace_for_account(account_id, trades)
            await ActivityRepository(session).replace_for_account(account_id, activities)
            if alert is not None:
                await AlertRepository(session).append(alert)

        logger.info(
            "Scored %s on %s: %d/100 (%d trades, %d markets cached)",
            account_id[:10],
            resolved_venue.value,
            result.total_score,
            len(trades),
            len(market_cache),
        )
        return result
