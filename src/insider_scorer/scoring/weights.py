"""Signal weight table.

The seven weights must sum to exactly 100 so that the weighted sum of raw
scores in [0, 1] is itself a 0-100 score. ``DEFAULT_WEIGHTS`` is validated
when this module is imported.
"""

from __future__ import annotations

from dataclasses import dataclass, fields

WEIGHT_TOTAL = 100


class WeightConfigurationError(Exception):
    """Raised when a signal weight table does not sum to 100."""


@dataclass(frozen=True)
class SignalWeights:
    """Per-signal weights, in signal evaluation order."""

    wallet_age: int = 15
    first_bet_size: int = 15
    bet_timing: int = 20
    withdrawal_speed: int = 15
    market_selection: int = 10
    win_rate: int = 15
    no_hedging: int = 10

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise WeightConfigurationError(f"Signal weight {f.name} must be >= 0")
        total = self.total()
        if total != WEIGHT_TOTAL:
            raise WeightConfigurationError(
                f"Signal weights must sum to {WEIGHT_TOTAL}, got {total}"
            )

    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_WEIGHTS = SignalWeights()
