"""Venue adapters - Polymarket and Kalshi data sources."""

from insider_scorer.venues.base import (
    HttpVenueClient,
    RateLimiter,
    VenueAdapter,
    VenueApiError,
    VenueError,
    VenueNotFoundError,
)
from insider_scorer.venues.kalshi import KalshiAdapter, KalshiSigner
from insider_scorer.venues.polymarket import PolymarketAdapter

__all__ = [
    "HttpVenueClient",
    "KalshiAdapter",
    "KalshiSigner",
    "PolymarketAdapter",
    "RateLimiter",
    "VenueAdapter",
    "VenueApiError",
    "VenueError",
    "VenueNotFoundError",
]
