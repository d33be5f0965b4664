"""Tests for the first bet size signal."""

from __future__ import annotations

import pytest

from conftest import NOW, make_trade
from insider_scorer.scoring.signals.first_bet_size import score_first_bet_size


class TestScoreFirstBetSize:
    def test_no_trades(self) -> None:
        result = score_first_bet_size([])

        assert result.raw == 0.0
        assert result.details == "No trades found"

    @pytest.mark.parametrize(
        ("usd", "expected"),
        [
            (50, 0.0),
            (100, 0.0),
            (300, 0.1),
            (1_000, 0.3),
            (3_000, 0.5),
            (8_000, 0.7),
            (20_000, 0.9),
            (30_000, 1.0),
        ],
    )
    def test_size_buckets(self, usd: float, expected: float) -> None:
        result = score_first_bet_size([make_trade(size=usd * 2, price=0.5)])

        assert result.raw == pytest.approx(expected)

    def test_first_trade_is_earliest(self) -> None:
        trades = [
            make_trade(size=100_000, price=0.5, timestamp=NOW - 10),
            make_trade(size=200, price=0.5, timestamp=NOW - 1000, market_id="m0"),
        ]

        result = score_first_bet_size(trades)

        assert result.raw == 0.0
        assert result.details == "First bet: $100.00 USD"


class TestSameMarketBonus:
    def test_same_market_bonus(self) -> None:
        trades = [make_trade(size=6_000, price=0.5, timestamp=NOW - 300 + i) for i in range(3)]

        result = score_first_bet_size(trades)

        # $3,000 first bet (0.5) boosted by 1.2
        assert result.raw == pytest.approx(0.6)
        assert "same market" in result.details

    def test_same_market_bonus_is_clamped(self) -> None:
        trades = [make_trade(size=100_000, price=0.5, timestamp=NOW - 300 + i) for i in range(3)]

        result = score_first_bet_size(trades)

        assert result.raw == 1.0
        assert result.weighted == 15.0

    def test_no_bonus_when_markets_differ(self) -> None:
        trades = [
            make_trade(size=6_000, price=0.5, timestamp=NOW - 300, market_id="m1"),
            make_trade(size=6_000, price=0.5, timestamp=NOW - 200, market_id="m2"),
            make_trade(size=6_000, price=0.5, timestamp=NOW - 100, market_id="m1"),
        ]

        result = score_first_bet_size(trades)

        assert result.raw == pytest.approx(0.5)
