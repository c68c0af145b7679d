#!/usr/bin/env python3
"""
FastAPI Web Server for Arbitrage Scanner

Read-only JSON view of the scanner state: detected opportunities, per-platform
data-source provenance, market search and single-market quotes.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from . import config
from .cache import CacheManager
from .clients import KalshiCollector, PolymarketCollector
from .exceptions import DataSourceError, UpstreamStatusError
from .scanner import MarketScanner, ScannerContext
from .storage import CsvMarketStore
from .utils.helpers import setup_logging

logger = logging.getLogger(__name__)


def build_scanner() -> MarketScanner:
    """Scanner wired to the real APIs, an in-memory cache and the CSV store."""
    context = ScannerContext(
        sources={
            config.KALSHI: KalshiCollector(),
            config.POLYMARKET: PolymarketCollector(),
        },
        cache=CacheManager(),
        store=CsvMarketStore(),
    )
    return MarketScanner(context)


def create_app(
    scanner: Optional[MarketScanner] = None,
    auto_refresh: bool = True,
    refresh_interval: float = config.REFRESH_INTERVAL_SECONDS,
) -> FastAPI:
    """
    Build the API around a scanner.

    Args:
        scanner: Scanner to expose (a live one is built when omitted)
        auto_refresh: Refresh on a schedule while the app is running
        refresh_interval: Seconds between scheduled refreshes
    """
    scanner = scanner or build_scanner()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if auto_refresh:
            scanner.start_auto_refresh(refresh_interval)
        yield
        scanner.stop_auto_refresh()
        await scanner.flush()

    app = FastAPI(title="Arbitrage Scanner", version="1.0.0", lifespan=lifespan)
    app.state.scanner = scanner

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/status")
    async def status():
        """Connectivity, data source and last update of each platform."""
        payload = scanner.state.to_dict()
        payload["cache"] = scanner.context.cache.stats()
        payload["auto_refresh"] = scanner.auto_refresh_running
        return payload

    @app.get("/api/opportunities")
    async def opportunities():
        """Latest detection result, preferring the opportunities cache."""
        cache = scanner.context.cache
        result = cache.get_opportunities() or scanner.state.detection
        return {
            "result": result.to_dict() if result else None,
            "freshness": cache.freshness("latest", category="opportunities"),
            "last_updated": (
                scanner.state.last_updated.isoformat() if scanner.state.last_updated else None
            ),
            "scan_count": scanner.state.scan_count,
        }

    @app.get("/api/scan")
    async def scan(force: bool = False):
        """Refresh both platforms and re-run detection."""
        outcome = await scanner.refresh_and_detect(force=force)
        if outcome.skipped:
            logger.info("Scan requested while a refresh is running")
        detection = scanner.state.detection
        return {
            "refresh": outcome.to_dict(),
            "result": detection.to_dict() if detection else None,
            "platforms": {
                name: platform_status.to_dict()
                for name, platform_status in scanner.state.platforms.items()
            },
        }

    @app.get("/api/search")
    async def search(q: str = ""):
        """Fuzzy search over both platforms' current markets."""
        return {
            "query": q,
            "results": [
                {"key": result.key, "score": result.score, "market": result.market.to_dict()}
                for result in scanner.search(q)
            ],
        }

    @app.get("/api/markets/{platform}/{market_id}")
    async def market(platform: str, market_id: str):
        """Single-market quote, served from the snapshot cache when fresh."""
        if platform not in scanner.context.sources:
            raise HTTPException(status_code=404, detail=f"Unknown platform: {platform}")
        try:
            found = await scanner.lookup_market(platform, market_id)
        except DataSourceError as e:
            if isinstance(e, UpstreamStatusError) and e.status == 404:
                raise HTTPException(status_code=404, detail=f"Market not found: {market_id}")
            logger.warning(f"Lookup of {platform}:{market_id} failed: {e}")
            raise HTTPException(status_code=502, detail=str(e))
        if found is None:
            raise HTTPException(status_code=404, detail=f"Market not found: {market_id}")
        return found.to_dict()

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "timestamp": datetime.now().isoformat()}

    return app


if __name__ == "__main__":
    import uvicorn

    setup_logging()
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
