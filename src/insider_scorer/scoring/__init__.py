"""Scoring engine - signals, weights, market cache and alert policy.

The orchestrator lives in ``insider_scorer.scoring.engine``.
"""

from insider_scorer.scoring.alerts import (
    EXTREME_ALERT_THRESHOLD,
    HIGH_ALERT_THRESHOLD,
    build_alert,
    classify_alert_tier,
)
from insider_scorer.scoring.models import (
    Activity,
    Alert,
    AlertTier,
    MarketMetadata,
    Position,
    RawMarket,
    ScoringMetadata,
    ScoringResult,
    SignalResult,
    SignalResults,
    Trade,
    Venue,
)
from insider_scorer.scoring.weights import DEFAULT_WEIGHTS, SignalWeights, WeightConfigurationError

__all__ = [
    "DEFAULT_WEIGHTS",
    "EXTREME_ALERT_THRESHOLD",
    "HIGH_ALERT_THRESHOLD",
    "Activity",
    "Alert",
    "AlertTier",
    "MarketMetadata",
    "Position",
    "RawMarket",
    "ScoringMetadata",
    "ScoringResult",
    "SignalResult",
    "SignalResults",
    "SignalWeights",
    "Trade",
    "Venue",
    "WeightConfigurationError",
    "build_alert",
    "classify_alert_tier",
]
