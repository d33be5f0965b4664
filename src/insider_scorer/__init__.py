"""Insider Scorer - insider-probability scoring for prediction-market accounts."""

__version__ = "0.1.0"
