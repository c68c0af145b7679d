"""Shared fakes for the scanner tests."""

from datetime import datetime, timezone

import pytest

from arbscanner.cache import CacheManager
from arbscanner.models import Market
from arbscanner.scanner import MarketScanner, ScannerContext
from arbscanner.storage import MarketStore

END_DATE = datetime(2025, 11, 5, 12, 0, tzinfo=timezone.utc)


def build_market(platform="kalshi", market_id="M1", title="Will Bitcoin reach 100k in 2025?", **kwargs):
    fields = {
        "platform": platform,
        "id": market_id,
        "ticker": market_id,
        "title": title,
        "yes_price": 0.5,
        "no_price": 0.5,
        "category": "crypto",
        "end_date": END_DATE,
    }
    fields.update(kwargs)
    return Market(**fields)


class FakeSource:
    """Market source returning canned markets or raising a canned error."""

    def __init__(self, markets=None, error=None, quotes=None):
        self.markets = markets or []
        self.error = error
        self.quotes = quotes or {}
        self.fetch_calls = 0
        self.lookup_calls = 0

    def fetch_all_markets(self, filters=None):
        self.fetch_calls += 1
        if self.error is not None:
            raise self.error
        return list(self.markets)

    def get_market(self, market_id):
        self.lookup_calls += 1
        quote = self.quotes.get(market_id)
        if isinstance(quote, Exception):
            raise quote
        return quote


class FakeStore(MarketStore):
    """In-memory store recording what the scanner persisted."""

    def __init__(self, stored=None, error=None):
        self.stored = stored or {}
        self.error = error
        self.upserted = []
        self.snapshots = []

    def upsert_markets(self, markets):
        if self.error is not None:
            raise self.error
        self.upserted.extend(markets)
        return {market.id: index for index, market in enumerate(markets, start=1)}

    def insert_snapshots(self, rows, source="api"):
        rows = list(rows)
        self.snapshots.extend((internal_id, market, source) for internal_id, market in rows)
        return len(rows)

    def get_markets_with_latest_snapshot(self, platform):
        return list(self.stored.get(platform, []))


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def make_market():
    return build_market


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_scanner():
    """Build a scanner from per-platform FakeSources."""

    def factory(kalshi=None, polymarket=None, cache=None, store=None):
        context = ScannerContext(
            sources={
                "kalshi": kalshi or FakeSource(),
                "polymarket": polymarket or FakeSource(),
            },
            cache=cache or CacheManager(),
            store=store,
        )
        return MarketScanner(context)

    return factory


@pytest.fixture
def arbitrage_pair():
    """A Kalshi/Polymarket pair describing the same event with a 6% edge after fees."""
    kalshi = build_market(
        "kalshi", "KXBTC-25", yes_price=0.42, no_price=0.58,
        yes_bid=0.40, yes_ask=0.40, no_bid=0.56, no_ask=0.60,
    )
    polymarket = build_market("polymarket", "0xbtc", yes_price=0.55, no_price=0.45)
    return kalshi, polymarket


@pytest.fixture
def fake_source():
    return FakeSource


@pytest.fixture
def fake_store():
    return FakeStore
