"""Alert threshold policy."""

from __future__ import annotations

from datetime import datetime

from insider_scorer.scoring.models import Alert, AlertTier, SignalResults

HIGH_ALERT_THRESHOLD = 60
EXTREME_ALERT_THRESHOLD = 80
TOP_SIGNAL_COUNT = 3


def classify_alert_tier(score: float) -> AlertTier | None:
    """Return the alert tier for a composite score, or None below threshold.

    Both thresholds are strict: 60 raises nothing, 80 is HIGH.
    """
    if score > EXTREME_ALERT_THRESHOLD:
        return AlertTier.EXTREME
    if score > HIGH_ALERT_THRESHOLD:
        return AlertTier.HIGH
    return None


def top_signals(signals: SignalResults, count: int = TOP_SIGNAL_COUNT) -> list[tuple[str, float]]:
    """Return the highest weighted signals, ties kept in evaluation order."""
    ranked = sorted(
        ((name, result.weighted) for name, result in signals.items()),
        key=lambda item: item[1],
        reverse=True,
    )
    return ranked[:count]


def format_alert_details(score: int, signals: SignalResults) -> str:
    parts = ", ".join(f"{name}: {weighted:.1f}" for name, weighted in top_signals(signals))
    return f"Score {score}/100. Top signals: {parts}"


def build_alert(
    account_id: str,
    score: int,
    signals: SignalResults,
    now: datetime,
) -> Alert | None:
    """Build an Alert for the account if the score crosses the threshold."""
    tier = classify_alert_tier(score)
    if tier is None:
        return None
    return Alert(
        account_id=account_id,
        tier=tier,
        details=format_alert_details(score, signals),
        score_at_time=score,
        created_at=now,
    )
