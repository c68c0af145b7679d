"""
Kalshi data collector using their public API.

Documentation: https://docs.kalshi.com/
API Endpoint: https://api.elections.kalshi.com/trade-api/v2
Authentication: Optional API key for higher rate limits
"""

import logging
import os
import re
from typing import Any, Dict, Optional

from .. import config
from ..models import Market
from ..utils.helpers import cents_to_price, parse_timestamp, to_float
from .base import MarketCollector, Page, ResilientClient

logger = logging.getLogger(__name__)


def _mid(bid: Optional[float], ask: Optional[float]) -> Optional[float]:
    if bid is not None and ask is not None:
        return (bid + ask) / 2
    return None


def _quote(raw: Dict[str, Any], field: str) -> Optional[float]:
    # A zero ask means an empty book on that side, not a free contract
    price = cents_to_price(raw.get(field))
    if field.endswith("_ask") and price is not None and price <= 0:
        return None
    return price


class KalshiCollector(MarketCollector):
    """Collector for Kalshi data."""

    platform = config.KALSHI

    def __init__(
        self,
        client: Optional[ResilientClient] = None,
        api_key: Optional[str] = None,
        page_limit: int = config.KALSHI_PAGE_LIMIT,
        max_pages: Optional[int] = config.MAX_PAGES,
    ):
        """
        Initialize Kalshi collector.

        Args:
            client: Transport (built from config when omitted)
            api_key: Kalshi API key (optional, for authenticated requests)
            page_limit: Markets per page request
            max_pages: Pagination safety cap
        """
        if client is None:
            api_key = api_key or os.getenv("KALSHI_API_KEY")
            client = ResilientClient(config.KALSHI_API_BASE, api_key=api_key)
            if api_key:
                logger.info("Kalshi API key configured")
            else:
                logger.info("Kalshi running without API key (public data only)")
        super().__init__(client, max_pages)
        self.page_limit = page_limit

    def list_markets(
        self,
        filters: Optional[Dict[str, Any]] = None,
        cursor: Optional[Any] = None,
    ) -> Page:
        """
        Fetch one page of markets.

        Args:
            filters: Extra query parameters (e.g. {"event_ticker": ...})
            cursor: Continuation cursor from the previous page

        Returns:
            (markets, next_cursor); next_cursor is None on the last page
        """
        params = {"status": "open", "limit": self.page_limit}
        params.update(filters or {})
        if cursor:
            params["cursor"] = cursor

        data = self.client.get("/markets", params=params)
        markets = self._parse_many(data.get("markets", []))
        return markets, data.get("cursor") or None

    def get_market(self, market_id: str) -> Optional[Market]:
        data = self.client.get(f"/markets/{market_id}")
        return self._parse_market(data.get("market", {}))

    def _parse_market(self, market: Dict[str, Any]) -> Optional[Market]:
        """
        Parse a single market from Kalshi API response.

        Args:
            market: Market data from API

        Returns:
            Market or None if required fields are missing
        """
        ticker = market.get("ticker")
        if not ticker:
            return None

        title = market.get("title") or market.get("subtitle", "")
        if not title:
            return None

        # Kalshi quotes in cents (0-100)
        yes_bid = _quote(market, "yes_bid")
        yes_ask = _quote(market, "yes_ask")
        no_bid = _quote(market, "no_bid")
        no_ask = _quote(market, "no_ask")
        last_price = cents_to_price(market.get("last_price"))

        price_yes = _mid(yes_bid, yes_ask)
        if price_yes is None:
            price_yes = last_price if last_price is not None else 0.5

        price_no = _mid(no_bid, no_ask)
        if price_no is None:
            price_no = 1.0 - price_yes

        volume = to_float(market.get("volume_24h"))
        if volume is None:
            volume = to_float(market.get("volume"))

        event_ticker = market.get("event_ticker") or None
        if event_ticker:
            title_slug = re.sub(r'[^a-z0-9]+', '-', title.lower()).strip('-')[:100]
            url = f"https://kalshi.com/markets/{event_ticker.lower()}/{title_slug}/{ticker.lower()}"
        else:
            url = f"https://kalshi.com/markets/{ticker.lower()}"

        return Market(
            platform=self.platform,
            id=ticker,
            ticker=ticker,
            title=title,
            category=market.get("category") or None,
            end_date=parse_timestamp(market.get("close_time")),
            yes_price=price_yes,
            no_price=price_no,
            yes_bid=yes_bid,
            yes_ask=yes_ask,
            no_bid=no_bid,
            no_ask=no_ask,
            volume=volume,
            liquidity=to_float(market.get("open_interest")),
            event_ticker=event_ticker,
            url=url,
        )
