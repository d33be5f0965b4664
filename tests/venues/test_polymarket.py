"""Tests for the Polymarket adapter."""

from unittest.mock import AsyncMock

import httpx
import pytest

from insider_scorer.scoring.models import Venue
from insider_scorer.venues.base import VenueApiError
from insider_scorer.venues.polymarket import (
    PolymarketAdapter,
    derive_outcome,
    parse_activity,
    parse_market,
    parse_position,
    parse_trade,
)

WALLET = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"

TRADE_PAYLOAD = {
    "proxyWallet": WALLET,
    "side": "buy",
    "conditionId": "0xcond1",
    "size": 1000,
    "price": 0.1,
    "timestamp": 1760000000,
    "title": "Will it rain?",
    "slug": "will-it-rain",
    "eventSlug": "weather",
    "outcome": "Yes",
    "name": "",
    "pseudonym": "Rainy-Day",
    "profileImage": "https://img.example/p.png",
    "transactionHash": "0xtx",
}

MARKET_PAYLOAD = {
    "question": "Will it rain?",
    "slug": "will-it-rain",
    "endDate": "2025-10-09T12:00:00Z",
    "closed": True,
    "closedTime": "2025-10-09T12:30:00Z",
    "active": False,
    "volumeNum": 750000.5,
    "outcomes": '["Yes", "No"]',
    "outcomePrices": '["1", "0"]',
    "events": [{"id": 42}],
}


def test_parse_trade() -> None:
    trade = parse_trade(WALLET, TRADE_PAYLOAD)

    assert trade is not None
    assert trade.side == "BUY"
    assert trade.market_id == "0xcond1"
    assert trade.usd_value == pytest.approx(100.0)
    assert trade.slug == "will-it-rain"
    assert trade.event_slug == "weather"
    assert trade.trader_name == "Rainy-Day"
    assert trade.venue is Venue.POLYMARKET


@pytest.mark.parametrize("missing", ["conditionId", "side", "timestamp"])
def test_parse_trade_requires_fields(missing: str) -> None:
    payload = {k: v for k, v in TRADE_PAYLOAD.items() if k != missing}

    assert parse_trade(WALLET, payload) is None


def test_parse_position() -> None:
    position = parse_position(
        {"conditionId": "0xcond1", "size": "10", "realizedPnl": 5.5, "cashPnl": "-1.5"}
    )

    assert position is not None
    assert position.total_pnl == pytest.approx(4.0)
    assert parse_position({"size": 1}) is None


def test_parse_activity() -> None:
    activity = parse_activity(
        {"type": "REDEEM", "conditionId": "0xcond1", "timestamp": 1760000100, "usdcSize": "12.5"}
    )

    assert activity is not None
    assert activity.type == "REDEEM"
    assert activity.usdc_size == 12.5
    assert activity.size is None
    assert parse_activity({"type": "REWARD", "timestamp": 1}) is None


def test_derive_outcome_from_settled_prices() -> None:
    assert derive_outcome(MARKET_PAYLOAD) == "Yes"
    assert derive_outcome({**MARKET_PAYLOAD, "outcomePrices": '["0", "1"]'}) == "No"


def test_derive_outcome_open_market() -> None:
    assert derive_outcome({**MARKET_PAYLOAD, "closed": False}) is None


def test_derive_outcome_falls_back_to_resolution() -> None:
    payload = {"closed": True, "outcomePrices": '["0.5", "0.5"]', "resolution": "No"}

    assert derive_outcome(payload) == "No"


def test_parse_market() -> None:
    market = parse_market(MARKET_PAYLOAD, "will-it-rain")

    assert market.title == "Will it rain?"
    assert market.end_date == 1760011200
    assert market.closed is True
    assert market.closed_at == 1760013000
    assert market.outcome == "Yes"
    assert market.volume == 750000.5
    assert market.event_id == "42"
    assert market.active is False


def test_parse_market_string_volume() -> None:
    market = parse_market({"volume": "1234.5", "closed": False}, "s")

    assert market.volume == 1234.5
    assert market.slug == "s"
    assert market.closed_at is None


# ============================================================================
# Adapter Tests
# ============================================================================


def make_adapter(routes: dict[tuple[str, str], httpx.Response]):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return routes.get((request.url.host, request.url.path), httpx.Response(404))

    adapter = PolymarketAdapter.create(
        data_api_url="https://data.test",
        gamma_api_url="https://gamma.test",
        transport=httpx.MockTransport(handler),
        sleep=AsyncMock(),
        trade_limit=50,
    )
    return adapter, seen


@pytest.mark.asyncio
async def test_get_trades_skips_malformed_rows() -> None:
    adapter, seen = make_adapter(
        {("data.test", "/trades"): httpx.Response(200, json=[TRADE_PAYLOAD, {"side": "BUY"}, 7])}
    )

    async with adapter:
        trades = await adapter.get_trades(WALLET)

    assert len(trades) == 1
    assert seen[0].url.params["user"] == WALLET
    assert seen[0].url.params["limit"] == "50"


@pytest.mark.asyncio
async def test_unexpected_shape_raises() -> None:
    adapter, _ = make_adapter({("data.test", "/positions"): httpx.Response(200, json={"x": 1})})

    with pytest.raises(VenueApiError):
        await adapter.get_positions(WALLET)
    await adapter.aclose()


@pytest.mark.asyncio
async def test_missing_user_returns_empty() -> None:
    adapter, _ = make_adapter({})

    assert await adapter.get_activity(WALLET) == []
    await adapter.aclose()


@pytest.mark.asyncio
async def test_get_market_by_key() -> None:
    adapter, seen = make_adapter(
        {("gamma.test", "/markets"): httpx.Response(200, json=[MARKET_PAYLOAD])}
    )

    market = await adapter.get_market_by_key("will-it-rain")

    assert market is not None
    assert market.outcome == "Yes"
    assert seen[0].url.params["slug"] == "will-it-rain"
    await adapter.aclose()


@pytest.mark.asyncio
async def test_get_market_by_key_not_found() -> None:
    adapter, _ = make_adapter({("gamma.test", "/markets"): httpx.Response(200, json=[])})

    assert await adapter.get_market_by_key("gone") is None
    await adapter.aclose()


@pytest.mark.asyncio
async def test_get_recent_traders_dedupes_and_lowercases() -> None:
    rows = [
        {"proxyWallet": "0xAAA"},
        {"proxyWallet": "0xbbb"},
        {"proxyWallet": "0xaaa"},
        {"side": "BUY"},
    ]
    adapter, seen = make_adapter({("data.test", "/trades"): httpx.Response(200, json=rows)})

    wallets = await adapter.get_recent_traders(limit=3)

    assert wallets == ["0xaaa", "0xbbb"]
    assert seen[0].url.params["limit"] == "3"
    await adapter.aclose()
