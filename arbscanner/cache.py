"""
In-memory TTL cache for market lists, price snapshots and opportunities.

Keys are platform names (markets), market ids (snapshots) or a single
"latest" key (opportunities). Markets and opportunities only expire by age;
the per-market snapshot category also drops its oldest write past a capacity.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from . import config

logger = logging.getLogger(__name__)

T = TypeVar("T")

MARKETS = "markets"
SNAPSHOTS = "snapshots"
OPPORTUNITIES = "opportunities"
CATEGORIES = (MARKETS, SNAPSHOTS, OPPORTUNITIES)

LIVE = "live"
CACHED = "cached"
STALE = "stale"

OPPORTUNITIES_KEY = "latest"


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.timestamp

    def is_valid(self, now: float) -> bool:
        return self.age(now) < self.ttl


class CacheManager:
    """Per-category TTL key-value store with freshness classification."""

    def __init__(
        self,
        markets_ttl: float = config.CACHE_MARKETS_TTL,
        snapshots_ttl: float = config.CACHE_SNAPSHOTS_TTL,
        opportunities_ttl: float = config.CACHE_OPPORTUNITIES_TTL,
        snapshots_max_entries: Optional[int] = config.CACHE_SNAPSHOTS_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        self.ttls: Dict[str, float] = {
            MARKETS: markets_ttl,
            SNAPSHOTS: snapshots_ttl,
            OPPORTUNITIES: opportunities_ttl,
        }
        self.capacities: Dict[str, Optional[int]] = {
            MARKETS: None,
            SNAPSHOTS: snapshots_max_entries,
            OPPORTUNITIES: None,
        }
        self._clock = clock
        self._entries: Dict[str, Dict[str, CacheEntry]] = {c: {} for c in CATEGORIES}

    def _bucket(self, category: str) -> Dict[str, CacheEntry]:
        if category not in self._entries:
            raise ValueError(f"Unknown cache category: {category}")
        return self._entries[category]

    def get(self, category: str, key: str) -> Optional[Any]:
        """Cached value if still within its TTL, else None."""
        entry = self._bucket(category).get(key)
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry.data

    def set(self, category: str, key: str, data: Any) -> None:
        """Overwrite the entry with a fresh timestamp."""
        bucket = self._bucket(category)
        bucket.pop(key, None)
        bucket[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=self.ttls[category])
        logger.debug(f"Cache SET {category}:{key}")

        capacity = self.capacities[category]
        while capacity is not None and len(bucket) > capacity:
            # dicts keep insertion order, so the first key is the oldest write
            oldest = next(iter(bucket))
            del bucket[oldest]

    def age(self, category: str, key: str) -> Optional[float]:
        """Seconds since the entry was written, None when absent."""
        entry = self._bucket(category).get(key)
        if entry is None:
            return None
        return entry.age(self._clock())

    def freshness(self, key: str, category: str = MARKETS) -> str:
        """Classify an entry as "live" (< 1s old), "cached" (< ttl) or "stale"."""
        age = self.age(category, key)
        if age is None:
            return STALE
        if age < config.CACHE_LIVE_AGE:
            return LIVE
        if age < self.ttls[category]:
            return CACHED
        return STALE

    def invalidate(self, category: Optional[str] = None, key: Optional[str] = None) -> None:
        """Drop one key, one category, or everything when called bare."""
        if category is None:
            for bucket in self._entries.values():
                bucket.clear()
        elif key is None:
            self._bucket(category).clear()
        else:
            self._bucket(category).pop(key, None)

    def invalidate_all(self) -> None:
        self.invalidate()

    # Convenience accessors used by the scanner

    def get_markets(self, platform: str):
        return self.get(MARKETS, platform)

    def set_markets(self, platform: str, markets) -> None:
        self.set(MARKETS, platform, markets)

    def get_snapshot(self, market_key: str):
        return self.get(SNAPSHOTS, market_key)

    def set_snapshot(self, market_key: str, snapshot) -> None:
        self.set(SNAPSHOTS, market_key, snapshot)

    def get_opportunities(self):
        return self.get(OPPORTUNITIES, OPPORTUNITIES_KEY)

    def set_opportunities(self, result) -> None:
        self.set(OPPORTUNITIES, OPPORTUNITIES_KEY, result)

    def stats(self) -> Dict[str, Any]:
        return {
            "markets_entries": len(self._entries[MARKETS]),
            "snapshots_entries": len(self._entries[SNAPSHOTS]),
            "has_opportunities": OPPORTUNITIES_KEY in self._entries[OPPORTUNITIES],
            "ttls": dict(self.ttls),
        }
