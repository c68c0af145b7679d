"""Tests for the JSON API."""

from fastapi.testclient import TestClient

from arbscanner.exceptions import UpstreamStatusError
from arbscanner.web_server import create_app


def make_client(scanner):
    return TestClient(create_app(scanner, auto_refresh=False))


def test_health(make_scanner):
    """Test the health check."""
    response = make_client(make_scanner()).get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_scan_then_opportunities(make_scanner, fake_source, arbitrage_pair):
    """Test a scan refreshes, detects and exposes the result."""
    kalshi_market, polymarket_market = arbitrage_pair
    scanner = make_scanner(fake_source([kalshi_market]), fake_source([polymarket_market]))
    client = make_client(scanner)

    scan = client.get("/api/scan").json()
    assert scan["refresh"]["success"] is True
    assert scan["refresh"]["sources"] == {"kalshi": "live", "polymarket": "live"}
    assert scan["result"]["total_opportunities"] == 1
    assert scan["platforms"]["kalshi"]["connected"] is True

    opportunities = client.get("/api/opportunities").json()
    best = opportunities["result"]["best_opportunity"]
    assert best["type"] == "cross-market"
    assert best["trade"]["buy"] == {"platform": "kalshi", "side": "yes", "price": 0.4}
    assert opportunities["scan_count"] == 1


def test_opportunities_before_any_scan(make_scanner):
    """Test an empty scanner reports no result."""
    body = make_client(make_scanner()).get("/api/opportunities").json()

    assert body["result"] is None
    assert body["freshness"] == "stale"
    assert body["last_updated"] is None


def test_status_reports_sources(make_scanner, fake_source, make_market):
    """Test per-platform provenance after a degraded refresh."""
    scanner = make_scanner(
        fake_source(error=UpstreamStatusError(502)),
        fake_source([make_market("polymarket", "P1")]),
    )
    client = make_client(scanner)
    client.get("/api/scan")

    status = client.get("/api/status").json()

    assert status["platforms"]["polymarket"]["source"] == "live"
    assert status["platforms"]["polymarket"]["market_count"] == 1
    assert status["platforms"]["kalshi"]["source"] is None
    assert "kalshi" in status["error"]
    assert status["auto_refresh"] is False
    assert status["cache"]["markets_entries"] == 1


def test_search(make_scanner, fake_source, make_market):
    """Test market search over the refreshed snapshots."""
    scanner = make_scanner(fake_source([make_market("kalshi", "K1")]), fake_source([]))
    client = make_client(scanner)
    client.get("/api/scan")

    body = client.get("/api/search", params={"q": "bitcoin"}).json()

    assert [result["key"] for result in body["results"]] == ["kalshi:K1"]


def test_market_lookup(make_scanner, fake_source, make_market):
    """Test single-market quotes and their error statuses."""
    kalshi = fake_source(quotes={
        "K1": make_market("kalshi", "K1"),
        "GONE": UpstreamStatusError(404),
        "BROKEN": UpstreamStatusError(500),
    })
    client = make_client(make_scanner(kalshi, fake_source([])))

    assert client.get("/api/markets/kalshi/K1").json()["id"] == "K1"
    assert client.get("/api/markets/kalshi/GONE").status_code == 404
    assert client.get("/api/markets/kalshi/MISSING").status_code == 404
    assert client.get("/api/markets/kalshi/BROKEN").status_code == 502
    assert client.get("/api/markets/predictit/K1").status_code == 404
