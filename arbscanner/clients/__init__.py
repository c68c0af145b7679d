"""Upstream market sources."""

from .base import MarketCollector, ResilientClient, backoff_delay, paginate
from .kalshi import KalshiCollector
from .polymarket import PolymarketCollector

__all__ = [
    "KalshiCollector",
    "MarketCollector",
    "PolymarketCollector",
    "ResilientClient",
    "backoff_delay",
    "paginate",
]
