"""Data models for the scoring engine.

Trades, positions and activities are normalized venue records; every signal
consumes these shapes regardless of which venue they came from.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal


class Venue(str, Enum):
    """Prediction-market venue an account is scored on."""

    POLYMARKET = "polymarket"
    KALSHI = "kalshi"


class AlertTier(str, Enum):
    """Alert severity derived from the composite score."""

    HIGH = "HIGH"
    EXTREME = "EXTREME"


ActivityType = Literal["TRADE", "REDEEM", "SPLIT", "MERGE"]


@dataclass(frozen=True)
class Trade:
    """A single executed order for an account.

    Attributes:
        account_id: Wallet address or venue user id.
        market_id: Condition id (Polymarket) or market ticker (Kalshi).
        side: "BUY" or "SELL".
        size: Number of contracts.
        price: Probability-denominated price in [0, 1].
        timestamp: Unix seconds.
        outcome: Outcome label that was traded (e.g. "Yes").
        slug: Key used to look up market metadata on the venue.
    """

    account_id: str
    market_id: str
    side: Literal["BUY", "SELL"]
    size: float
    price: float
    timestamp: int
    outcome: str = ""
    slug: str = ""
    title: str = ""
    event_slug: str = ""
    transaction_hash: str = ""
    venue: Venue = Venue.POLYMARKET
    trader_name: str = ""
    profile_image: str = ""

    @property
    def usd_value(self) -> float:
        """Return size * price."""
        return self.size * self.price


@dataclass(frozen=True)
class Position:
    """Current or closed exposure of an account in one market."""

    market_id: str
    size: float = 0.0
    realized_pnl: float = 0.0
    cash_pnl: float = 0.0
    outcome: str = ""
    title: str = ""

    @property
    def total_pnl(self) -> float:
        return self.realized_pnl + self.cash_pnl


@dataclass(frozen=True)
class Activity:
    """A non-trade (or trade) account event, used for redemption timing."""

    type: ActivityType
    market_id: str
    timestamp: int
    side: str = ""
    size: float | None = None
    usdc_size: float | None = None


@dataclass(frozen=True)
class RawMarket:
    """Market payload as returned by a venue adapter, before caching."""

    slug: str
    title: str = ""
    end_date: int | None = None
    closed: bool = False
    closed_at: int | None = None
    outcome: str | None = None
    active: bool = True
    volume: float = 0.0
    event_id: str | None = None


@dataclass(frozen=True)
class MarketMetadata:
    """Cached fact sheet for one market.

    ``resolved_at`` is set once the market has closed. ``outcome`` may stay
    None even for resolved markets when the venue did not report it.
    """

    market_id: str
    title: str
    cached_at: int
    slug: str | None = None
    event_id: str | None = None
    end_date: int | None = None
    resolved_at: int | None = None
    outcome: str | None = None
    active: bool = True
    volume: float = 0.0
    venue: Venue = Venue.POLYMARKET

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None


@dataclass(frozen=True)
class SignalResult:
    """Output of one signal: raw score, its weight and an explanation."""

    raw: float
    weight: int
    weighted: float
    details: str


# Evaluation order of the seven signals
SIGNAL_NAMES: tuple[str, ...] = (
    "wallet_age",
    "first_bet_size",
    "bet_timing",
    "withdrawal_speed",
    "market_selection",
    "win_rate",
    "no_hedging",
)


@dataclass(frozen=True)
class SignalResults:
    """The seven signal results, in evaluation order."""

    wallet_age: SignalResult
    first_bet_size: SignalResult
    bet_timing: SignalResult
    withdrawal_speed: SignalResult
    market_selection: SignalResult
    win_rate: SignalResult
    no_hedging: SignalResult

    def items(self) -> Iterator[tuple[str, SignalResult]]:
        """Yield (name, result) pairs in evaluation order."""
        for name in SIGNAL_NAMES:
            yield name, getattr(self, name)

    def weighted_sum(self) -> float:
        return sum(result.weighted for _, result in self.items())

    def to_dict(self) -> dict[str, dict[str, object]]:
        return {
            name: {
                "raw": result.raw,
                "weight": result.weight,
                "weighted": result.weighted,
                "details": result.details,
            }
            for name, result in self.items()
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Mapping[str, Any]]) -> SignalResults:
        """Rebuild results from ``to_dict`` output.

        Raises:
            KeyError: If a signal or one of its fields is missing.
        """
        fields = {}
        for name in SIGNAL_NAMES:
            entry = data[name]
            fields[name] = SignalResult(
                raw=float(entry["raw"]),
                weight=int(entry["weight"]),
                weighted=float(entry["weighted"]),
                details=str(entry["details"]),
            )
        return cls(**fields)


@dataclass(frozen=True)
class ScoringMetadata:
    """Aggregate trade and PnL figures for a scoring pass."""

    total_volume: float
    total_pnl: float
    trade_count: int
    first_trade_at: int | None
    last_trade_at: int | None


@dataclass(frozen=True)
class ScoringResult:
    """Result of scoring one account."""

    account_id: str
    venue: Venue
    total_score: int
    signals: SignalResults
    metadata: ScoringMetadata

    def to_dict(self) -> dict[str, object]:
        return {
            "account_id": self.account_id,
            "venue": self.venue.value,
            "total_score": self.total_score,
            "signals": self.signals.to_dict(),
            "metadata": {
                "total_volume": self.metadata.total_volume,
                "total_pnl": self.metadata.total_pnl,
                "trade_count": self.metadata.trade_count,
                "first_trade_at": self.metadata.first_trade_at,
                "last_trade_at": self.metadata.last_trade_at,
            },
        }


@dataclass(frozen=True)
class Alert:
    """Append-only record emitted when a score crosses the alert threshold."""

    account_id: str
    tier: AlertTier
    details: str
    score_at_time: int
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    market_id: str | None = None


MarketMap = Mapping[str, MarketMetadata]
