"""Tests for the composite scorer."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from conftest import ACCOUNT, DAY, HOUR, NOW, FakeVenueAdapter, make_market, make_trade
from insider_scorer.scoring.engine import (
    InsiderScorer,
    ScoringError,
    UnsupportedVenueError,
    aggregate_metadata,
    composite_score,
    evaluate_signals,
    normalize_account_id,
    result_from_account,
)
from insider_scorer.scoring.models import (
    Activity,
    AlertTier,
    Position,
    RawMarket,
    SignalResults,
    Venue,
)
from insider_scorer.scoring.utils import make_signal
from insider_scorer.storage.repos import (
    AccountDTO,
    AccountRepository,
    ActivityRepository,
    AlertRepository,
    TradeRepository,
)
from insider_scorer.venues.base import VenueApiError


def insider_venue() -> FakeVenueAdapter:
    """Fresh wallet, three large late bets, all won and redeemed right away."""
    start = NOW - 2 * HOUR
    trades = []
    activities = []
    markets = {}
    for i in range(3):
        market_id = f"m{i}"
        end = start + 60 * i + 30 * 60
        trades.append(
            make_trade(market_id=market_id, size=60_000, price=0.5, timestamp=start + 60 * i)
        )
        activities.append(Activity(type="REDEEM", market_id=market_id, timestamp=end + 600))
        markets[f"slug-{market_id}"] = RawMarket(
            slug=f"slug-{market_id}",
            title=f"Market {market_id}",
            end_date=end,
            closed=True,
            closed_at=end,
            outcome="Yes",
            volume=1_000_000.0,
        )
    return FakeVenueAdapter(trades=trades, activities=activities, markets=markets)


def scorer_for(session_scope, adapter, clock=lambda: NOW) -> InsiderScorer:
    return InsiderScorer(session_scope, {Venue.POLYMARKET: adapter}, clock=clock)


class TestCompositeScore:
    def test_composite_score_rounds_half_up(self) -> None:
        signals = SignalResults(
            wallet_age=make_signal(0.3, 15, ""),  # 4.5
            first_bet_size=make_signal(0.0, 15, ""),
            bet_timing=make_signal(1.0, 20, ""),
            withdrawal_speed=make_signal(0.0, 15, ""),
            market_selection=make_signal(0.0, 10, ""),
            win_rate=make_signal(0.2, 15, ""),  # 3.0
            no_hedging=make_signal(1.0, 10, ""),
        )

        assert composite_score(signals) == 38

    def test_composite_score_out_of_range(self) -> None:
        signals = SignalResults(
            **{
                name: make_signal(1.0, 200 if name == "bet_timing" else 0, "")
                for name in (
                    "wallet_age",
                    "first_bet_size",
                    "bet_timing",
                    "withdrawal_speed",
                    "market_selection",
                    "win_rate",
                    "no_hedging",
                )
            }
        )

        with pytest.raises(ScoringError):
            composite_score(signals)


class TestAggregateMetadata:
    def test_aggregate_metadata(self) -> None:
        trades = [
            make_trade(size=100, price=0.5, timestamp=NOW - 10),
            make_trade(size=40, price=0.25, timestamp=NOW - 500),
        ]
        positions = [Position(market_id="m1", realized_pnl=12.5, cash_pnl=-2.5)]

        metadata = aggregate_metadata(trades, positions)

        assert metadata.total_volume == 60.0
        assert metadata.total_pnl == 10.0
        assert metadata.trade_count == 2
        assert metadata.first_trade_at == NOW - 500
        assert metadata.last_trade_at == NOW - 10

    def test_aggregate_metadata_empty(self) -> None:
        metadata = aggregate_metadata([], [])

        assert metadata.trade_count == 0
        assert metadata.first_trade_at is None
        assert metadata.last_trade_at is None


class TestNormalizeAccountId:
    def test_normalize_account_id(self) -> None:
        assert normalize_account_id(" 0xABCdef ", Venue.POLYMARKET) == "0xabcdef"
        assert normalize_account_id("KalshiUser", Venue.KALSHI) == "KalshiUser"


class TestEvaluateSignals:
    def test_high_volume_focus_is_capped(self) -> None:
        trades = [make_trade(market_id=m) for m in ("m1", "m2", "m3")]
        market_map = {m: make_market(m, volume=750_000.0) for m in ("m1", "m2", "m3")}

        signals = evaluate_signals(trades, [], [], market_map, now=NOW)

        assert signals.market_selection.raw == 1.0
        assert signals.market_selection.weighted == 10.0


class TestScoreAccount:
    @pytest.mark.asyncio
    async def test_late_single_bet(self, session_scope) -> None:
        traded_at = NOW - 10 * DAY
        adapter = FakeVenueAdapter(
            trades=[make_trade(size=1000, price=0.1, timestamp=traded_at)],
            markets={
                "slug-m1": RawMarket(
                    slug="slug-m1",
                    end_date=traded_at + 30 * 60,
                    closed=True,
                    closed_at=traded_at + HOUR,
                    outcome="Yes",
                )
            },
        )

        result = await scorer_for(session_scope, adapter).score_account(ACCOUNT)

        signals = result.signals
        assert signals.bet_timing.raw == 1.0
        assert signals.bet_timing.weighted == 20.0
        # exactly $100 is not above the lowest size bucket
        assert signals.first_bet_size.raw == 0.0
        assert signals.wallet_age.weighted == pytest.approx(4.5)
        assert signals.win_rate.weighted == pytest.approx(3.0)
        assert signals.no_hedging.weighted == 10.0
        # 4.5 + 20 + 3 + 10 = 37.5
        assert result.total_score == 38

    @pytest.mark.asyncio
    async def test_missing_market_data_only_affects_market_signals(self, session_scope) -> None:
        adapter = FakeVenueAdapter(
            trades=[make_trade(size=60_000, price=0.5, timestamp=NOW - HOUR)],
            activities=[Activity(type="REDEEM", market_id="m1", timestamp=NOW - 60)],
        )

        result = await scorer_for(session_scope, adapter).score_account(ACCOUNT)

        signals = result.signals
        for signal in (
            signals.bet_timing,
            signals.withdrawal_speed,
            signals.market_selection,
            signals.win_rate,
        ):
            assert signal.raw == 0.0
            assert "No market data available" in signal.details
        assert signals.wallet_age.raw == 1.0
        assert signals.first_bet_size.raw == 1.0
        assert signals.no_hedging.raw == 1.0
        assert result.total_score == 40

    @pytest.mark.asyncio
    async def test_empty_account(self, session_scope) -> None:
        result = await scorer_for(session_scope, FakeVenueAdapter()).score_account(ACCOUNT)

        assert result.total_score == 0
        assert all(signal.raw == 0.0 for _, signal in result.signals.items())
        assert result.metadata.trade_count == 0
        async with session_scope() as session:
            account = await AccountRepository(session).get(ACCOUNT)
            alerts = await AlertRepository(session).list_recent()
        assert account is not None
        assert account.total_score == 0
        assert alerts == []


class TestPersistence:
    @pytest.mark.asyncio
    async def test_insider_profile_is_persisted_with_alert(self, session_scope) -> None:
        adapter = insider_venue()

        mixed_case = "0x" + ACCOUNT[2:].upper()

        result = await scorer_for(session_scope, adapter).score_account(mixed_case)

        assert result.account_id == ACCOUNT
        assert result.total_score == 100
        async with session_scope() as session:
            account = await AccountRepository(session).get(ACCOUNT)
            trades = await TradeRepository(session).list_for_account(ACCOUNT)
            activities = await ActivityRepository(session).list_for_account(ACCOUNT)
            alerts = await AlertRepository(session).list_recent(account_id=ACCOUNT)

        assert account is not None
        assert account.total_score == 100
        assert account.bet_timing_score == 20.0
        assert account.trade_count == 3
        assert json.loads(account.signals_json)["bet_timing"]["raw"] == 1.0
        assert len(trades) == 3
        assert len(activities) == 3
        assert len(alerts) == 1
        assert alerts[0].tier is AlertTier.EXTREME
        assert alerts[0].score_at_time == 100
        assert alerts[0].details.startswith("Score 100/100. Top signals: bet_timing: 20.0")

    @pytest.mark.asyncio
    async def test_rescoring_replaces_records_and_keeps_created_at(self, session_scope) -> None:
        adapter = insider_venue()
        clock = iter([NOW, NOW + 60])
        scorer = scorer_for(session_scope, adapter, clock=lambda: next(clock))

        first = await scorer.score_account(ACCOUNT)
        second = await scorer.score_account(ACCOUNT)

        assert first.to_dict() == second.to_dict()
        # second pass hits the market cache
        assert len(adapter.lookups) == 3
        async with session_scope() as session:
            account = await AccountRepository(session).get(ACCOUNT)
            trades = await TradeRepository(session).list_for_account(ACCOUNT)
            alerts = await AlertRepository(session).list_recent(account_id=ACCOUNT)

        assert account is not None
        assert account.created_at.replace(tzinfo=UTC) == datetime.fromtimestamp(NOW, tz=UTC)
        assert account.scored_at.replace(tzinfo=UTC) == datetime.fromtimestamp(NOW + 60, tz=UTC)
        assert len(trades) == 3
        # alerts are append-only
        assert len(alerts) == 2

    @pytest.mark.asyncio
    async def test_venue_failure_writes_nothing(self, session_scope) -> None:
        adapter = FakeVenueAdapter(trades=[make_trade()], failures={"positions"})

        with pytest.raises(VenueApiError):
            await scorer_for(session_scope, adapter).score_account(ACCOUNT)

        async with session_scope() as session:
            assert await AccountRepository(session).get(ACCOUNT) is None
            assert await TradeRepository(session).list_for_account(ACCOUNT) == []


class TestVenueSelection:
    @pytest.mark.asyncio
    async def test_unsupported_venue(self, session_scope) -> None:
        scorer = scorer_for(session_scope, FakeVenueAdapter())

        with pytest.raises(UnsupportedVenueError):
            await scorer.score_account("trader", Venue.KALSHI)
        with pytest.raises(UnsupportedVenueError):
            await scorer.score_account("trader", "manifold")


class TestStoredScoreReuse:
    @pytest.mark.asyncio
    async def test_recent_score_is_returned_without_venue_calls(self, session_scope) -> None:
        first = await scorer_for(session_scope, insider_venue()).score_account(ACCOUNT)
        # a venue that fails on contact
        later = scorer_for(
            session_scope, FakeVenueAdapter(failures={"positions"}), clock=lambda: NOW + HOUR
        )

        reused = await later.score_account(ACCOUNT, max_age_seconds=2 * HOUR)

        assert reused == first
        async with session_scope() as session:
            alerts = await AlertRepository(session).list_recent(account_id=ACCOUNT)
        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_stale_score_is_recomputed(self, session_scope) -> None:
        await scorer_for(session_scope, insider_venue()).score_account(ACCOUNT)
        later = scorer_for(session_scope, FakeVenueAdapter(), clock=lambda: NOW + 2 * HOUR)

        result = await later.score_account(ACCOUNT, max_age_seconds=2 * HOUR)

        assert result.total_score == 0

    @pytest.mark.asyncio
    async def test_score_on_other_venue_is_not_reused(self, session_scope) -> None:
        await scorer_for(session_scope, insider_venue()).score_account(ACCOUNT)
        kalshi = InsiderScorer(session_scope, {Venue.KALSHI: FakeVenueAdapter()}, clock=lambda: NOW)

        result = await kalshi.score_account(ACCOUNT, Venue.KALSHI, max_age_seconds=2 * HOUR)

        assert result.venue is Venue.KALSHI
        assert result.total_score == 0

    @pytest.mark.asyncio
    async def test_unreadable_stored_signals_are_recomputed(self, session_scope) -> None:
        async with session_scope() as session:
            await AccountRepository(session).upsert(
                AccountDTO(
                    account_id=ACCOUNT,
                    venue="polymarket",
                    total_score=90,
                    signals_json="{}",
                    scored_at=datetime.fromtimestamp(NOW, tz=UTC),
                )
            )

        result = await scorer_for(session_scope, FakeVenueAdapter()).score_account(
            ACCOUNT, max_age_seconds=2 * HOUR
        )

        assert result.total_score == 0

    def test_result_from_account_round_trips_signals(self) -> None:
        signals = evaluate_signals(
            [make_trade(timestamp=NOW - HOUR)], [], [], {"m1": make_market()}, now=NOW
        )
        account = AccountDTO(
            account_id=ACCOUNT,
            venue="polymarket",
            total_score=composite_score(signals),
            signals_json=json.dumps(signals.to_dict()),
            trade_count=1,
            first_trade_at=NOW - HOUR,
            last_trade_at=NOW - HOUR,
        )

        result = result_from_account(account)

        assert result.signals == signals
        assert result.venue is Venue.POLYMARKET
        assert result.metadata.trade_count == 1
