"""
Market scanner: the refresh/detection orchestrator.

Resolves each platform through cache -> live API -> durable store,
independently of the other platform, keeps the latest snapshots and
detection result in an explicit ``ScannerState`` and notifies subscribers
about every change.

All state mutation happens on the event loop thread; blocking HTTP and
store calls run in the default executor.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from . import config
from .cache import CacheManager
from .clients.base import MarketCollector
from .detector import ArbitrageDetector
from .exceptions import PartialFetchFailure, PersistenceFailure, PlatformUnavailableError
from .matcher import MarketSearchResult, search_markets
from .models import DetectionResult, Market, utc_now
from .storage import MarketStore

logger = logging.getLogger(__name__)

SOURCE_LIVE = "live"
SOURCE_CACHE = "cache"
SOURCE_STORE = "store"

EVENT_REFRESH_STARTED = "refresh_started"
EVENT_MARKETS_UPDATED = "markets_updated"
EVENT_OPPORTUNITIES_UPDATED = "opportunities_updated"
EVENT_PARTIAL_FAILURE = "partial_failure"
EVENT_PERSISTENCE_FAILURE = "persistence_failure"

Listener = Callable[[str, Any], None]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class ScannerContext:
    """Everything the scanner talks to, injected so tests can swap in fakes."""
    sources: Dict[str, MarketCollector]
    cache: CacheManager = field(default_factory=CacheManager)
    store: Optional[MarketStore] = None


@dataclass
class PlatformStatus:
    platform: str
    connected: bool = False
    source: Optional[str] = None
    market_count: int = 0
    error: Optional[str] = None
    last_success: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "connected": self.connected,
            "source": self.source,
            "market_count": self.market_count,
            "error": self.error,
            "last_success": _iso(self.last_success),
        }


@dataclass
class RefreshOutcome:
    success: bool
    skipped: bool = False
    sources: Dict[str, Optional[str]] = field(default_factory=dict)
    partial_failure: Optional[PartialFetchFailure] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "skipped": self.skipped,
            "sources": dict(self.sources),
            "partial_failure": str(self.partial_failure) if self.partial_failure else None,
            "error": self.error,
        }


@dataclass
class ScannerState:
    markets: Dict[str, List[Market]]
    platforms: Dict[str, PlatformStatus]
    loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None
    store_connected: Optional[bool] = None
    detection: Optional[DetectionResult] = None
    scan_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platforms": {name: status.to_dict() for name, status in self.platforms.items()},
            "loading": self.loading,
            "error": self.error,
            "last_updated": _iso(self.last_updated),
            "store_connected": self.store_connected,
            "scan_count": self.scan_count,
            "total_opportunities": (
                self.detection.total_opportunities if self.detection else 0
            ),
        }


class MarketScanner:
    """Keeps market snapshots fresh and recomputes opportunities from them."""

    def __init__(
        self,
        context: ScannerContext,
        detector: Optional[ArbitrageDetector] = None,
    ):
        self.context = context
        self.detector = detector or ArbitrageDetector()
        platforms = list(context.sources)
        self.state = ScannerState(
            markets={platform: [] for platform in platforms},
            platforms={platform: PlatformStatus(platform) for platform in platforms},
        )
        self._listeners: List[Listener] = []
        self._refreshing = False
        self._auto_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Future] = set()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener(event, payload)``; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: str, payload: Any = None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, payload)
            except Exception:
                logger.exception(f"Listener failed handling {event}")

    # ------------------------------------------------------------------
    # Fallback cascade
    # ------------------------------------------------------------------

    async def _load_from_store(self, platform: str) -> List[Market]:
        store = self.context.store
        if store is None:
            return []
        loop = asyncio.get_running_loop()
        try:
            markets = await loop.run_in_executor(
                None, store.get_markets_with_latest_snapshot, platform
            )
        except Exception as e:
            logger.warning(f"Failed to load {platform} markets from store: {e}")
            self.state.store_connected = False
            return []
        self.state.store_connected = True
        return markets

    async def _resolve_platform(self, platform: str, force: bool) -> Tuple[List[Market], str]:
        """
        Produce a market list for one platform and name the tier it came from.

        Raises:
            PlatformUnavailableError: live fetch failed and neither the cache
                nor the store had anything
        """
        cache = self.context.cache
        if not force:
            cached = cache.get_markets(platform)
            if cached is not None:
                logger.debug(f"Serving {platform} markets from cache")
                self.state.platforms[platform].connected = True
                return cached, SOURCE_CACHE

        source = self.context.sources[platform]
        loop = asyncio.get_running_loop()
        try:
            markets = await loop.run_in_executor(None, source.fetch_all_markets)
        except Exception as e:
            logger.warning(f"{platform} live fetch failed, falling back: {e}")
            self.state.platforms[platform].connected = False

            cached = cache.get_markets(platform)
            if cached is not None:
                return cached, SOURCE_CACHE

            stored = await self._load_from_store(platform)
            if stored:
                return stored, SOURCE_STORE

            raise PlatformUnavailableError(platform, e) from e

        self.state.platforms[platform].connected = True
        cache.set_markets(platform, markets)
        self._schedule_persist(platform, markets)
        return markets, SOURCE_LIVE

    # ------------------------------------------------------------------
    # Background persistence
    # ------------------------------------------------------------------

    def _schedule_persist(self, platform: str, markets: List[Market]) -> None:
        if self.context.store is None or not markets:
            return
        task = asyncio.ensure_future(self._persist(platform, markets))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _persist(self, platform: str, markets: List[Market]) -> None:
        """Upsert markets then record their prices; never raises."""
        store = self.context.store
        loop = asyncio.get_running_loop()
        try:
            id_map = await loop.run_in_executor(None, store.upsert_markets, markets)
            rows = [(id_map[m.id], m) for m in markets if m.id in id_map]
            if rows:
                await loop.run_in_executor(None, store.insert_snapshots, rows, "api")
        except Exception as e:
            failure = PersistenceFailure(platform, e)
            logger.warning(str(failure))
            self.state.store_connected = False
            self._emit(EVENT_PERSISTENCE_FAILURE, failure)
            return
        self.state.store_connected = True

    async def flush(self) -> None:
        """Wait for pending background writes (shutdown and tests)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Refresh / detection
    # ------------------------------------------------------------------

    async def refresh(self, force: bool = False) -> RefreshOutcome:
        """
        Refresh every platform's markets through the fallback cascade.

        A call made while another refresh is in flight returns immediately
        with ``skipped=True``.

        Args:
            force: Skip the cache on the way in (it is still used as a
                fallback when the live fetch fails)

        Returns:
            RefreshOutcome with the tier that served each platform
        """
        if self._refreshing:
            logger.debug("Refresh already in progress, skipping")
            return RefreshOutcome(success=False, skipped=True)

        self._refreshing = True
        self.state.loading = True
        self._emit(EVENT_REFRESH_STARTED)
        try:
            platforms = list(self.context.sources)
            results = await asyncio.gather(
                *(self._resolve_platform(platform, force) for platform in platforms),
                return_exceptions=True,
            )
            return self._apply_results(platforms, results)
        finally:
            self._refreshing = False
            self.state.loading = False

    def _apply_results(self, platforms: List[str], results: List[Any]) -> RefreshOutcome:
        now = utc_now()
        sources: Dict[str, Optional[str]] = {}
        errors: List[str] = []

        for platform, result in zip(platforms, results):
            status = self.state.platforms[platform]
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                error = (
                    result if isinstance(result, PlatformUnavailableError)
                    else PlatformUnavailableError(platform, result)
                )
                logger.error(str(error))
                status.source = None
                status.error = str(error)
                sources[platform] = None
                errors.append(str(error))
                continue

            markets, source = result
            self.state.markets[platform] = markets
            status.source = source
            status.market_count = len(markets)
            status.error = None
            status.last_success = now
            sources[platform] = source

        success = any(source is not None for source in sources.values())
        live = [p for p, s in sources.items() if s == SOURCE_LIVE]
        degraded = {p: s for p, s in sources.items() if s != SOURCE_LIVE}

        partial = None
        if live and degraded:
            partial = PartialFetchFailure(live, degraded)
            logger.warning(str(partial))
            self._emit(EVENT_PARTIAL_FAILURE, partial)

        self.state.error = "; ".join(errors) if errors else None
        if success:
            self.state.last_updated = now
        else:
            logger.error("Market refresh failed for every platform")

        self._emit(EVENT_MARKETS_UPDATED, self.state)
        return RefreshOutcome(
            success=success,
            sources=sources,
            partial_failure=partial,
            error=self.state.error,
        )

    def detect(self) -> DetectionResult:
        """Recompute opportunities from the current snapshots."""
        result = self.detector.detect(
            self.state.markets.get(config.KALSHI, []),
            self.state.markets.get(config.POLYMARKET, []),
        )
        self.state.detection = result
        self.state.scan_count += 1
        self.context.cache.set_opportunities(result)
        self._emit(EVENT_OPPORTUNITIES_UPDATED, result)
        return result

    async def refresh_and_detect(self, force: bool = False) -> RefreshOutcome:
        outcome = await self.refresh(force)
        if outcome.success:
            self.detect()
        return outcome

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def search(self, query: str) -> List[MarketSearchResult]:
        """Fuzzy search across every platform's current snapshot."""
        markets: List[Market] = []
        for platform_markets in self.state.markets.values():
            markets.extend(platform_markets)
        return search_markets(query, markets)

    async def lookup_market(self, platform: str, market_id: str) -> Optional[Market]:
        """Single-market quote, served from the snapshot cache when fresh."""
        key = f"{platform}:{market_id}"
        cached = self.context.cache.get_snapshot(key)
        if cached is not None:
            return cached

        source = self.context.sources[platform]
        loop = asyncio.get_running_loop()
        market = await loop.run_in_executor(None, source.get_market, market_id)
        if market is not None:
            self.context.cache.set_snapshot(key, market)
        return market

    # ------------------------------------------------------------------
    # Auto refresh
    # ------------------------------------------------------------------

    async def _auto_refresh_loop(self, interval: float) -> None:
        while True:
            try:
                await self.refresh_and_detect()
            except Exception:
                logger.exception("Scheduled refresh failed")
            await asyncio.sleep(interval)

    def start_auto_refresh(self, interval: float = config.REFRESH_INTERVAL_SECONDS) -> None:
        """Refresh now and every ``interval`` seconds; replaces any running schedule."""
        self.stop_auto_refresh()
        self._auto_task = asyncio.ensure_future(self._auto_refresh_loop(interval))
        logger.info(f"Auto refresh started (every {interval}s)")

    def stop_auto_refresh(self) -> None:
        if self._auto_task is not None:
            self._auto_task.cancel()
            self._auto_task = None
            logger.info("Auto refresh stopped")

    @property
    def auto_refresh_running(self) -> bool:
        return self._auto_task is not None and not self._auto_task.done()
