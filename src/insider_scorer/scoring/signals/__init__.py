"""The seven behavioral signals.

Each signal is a pure function returning a SignalResult and never raises on
missing data.
"""

from insider_scorer.scoring.signals.bet_timing import score_bet_timing
from insider_scorer.scoring.signals.first_bet_size import score_first_bet_size
from insider_scorer.scoring.signals.market_selection import score_market_selection
from insider_scorer.scoring.signals.no_hedging import score_no_hedging
from insider_scorer.scoring.signals.wallet_age import score_wallet_age
from insider_scorer.scoring.signals.win_rate import score_win_rate
from insider_scorer.scoring.signals.withdrawal_speed import score_withdrawal_speed

__all__ = [
    "score_bet_timing",
    "score_first_bet_size",
    "score_market_selection",
    "score_no_hedging",
    "score_wallet_age",
    "score_win_rate",
    "score_withdrawal_speed",
]
