"""
Polymarket data collector using Gamma API.

Documentation: https://docs.polymarket.com/#gamma-markets-api
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .. import config
from ..models import Market
from ..utils.helpers import parse_timestamp, to_float
from .base import MarketCollector, Page, ResilientClient

logger = logging.getLogger(__name__)


def parse_outcome_prices(raw: Any) -> List[float]:
    """``outcomePrices`` arrives either as a list or as a JSON-encoded string."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []

    prices = []
    for value in raw:
        price = to_float(value)
        if price is None:
            return []
        prices.append(price)
    return prices


def _unit(value: Any) -> Optional[float]:
    price = to_float(value)
    if price is None or not 0.0 <= price <= 1.0:
        return None
    return price


class PolymarketCollector(MarketCollector):
    """Collector for Polymarket data via Gamma API."""

    platform = config.POLYMARKET

    def __init__(
        self,
        client: Optional[ResilientClient] = None,
        page_limit: int = config.POLYMARKET_PAGE_LIMIT,
        max_pages: Optional[int] = config.MAX_PAGES,
    ):
        """
        Initialize Polymarket collector.

        Args:
            client: Transport (built from config when omitted)
            page_limit: Markets per page request
            max_pages: Pagination safety cap
        """
        super().__init__(client or ResilientClient(config.GAMMA_API_BASE), max_pages)
        self.page_limit = page_limit

    def list_markets(
        self,
        filters: Optional[Dict[str, Any]] = None,
        cursor: Optional[Any] = None,
    ) -> Page:
        """
        Fetch one page of active markets.

        Gamma has no continuation token; the cursor is the next offset and
        a short page means there is nothing left.
        """
        offset = cursor or 0
        params = {
            "active": "true",
            "closed": "false",
            "limit": self.page_limit,
            "offset": offset,
        }
        params.update(filters or {})
        limit = int(params["limit"])

        response = self.client.get("/markets", params=params)

        # Response can be a list or a dict with a 'data' key
        if isinstance(response, dict):
            response = response.get("data", [])

        next_offset = offset + limit if len(response) >= limit else None
        return self._parse_many(response), next_offset

    def get_market(self, market_id: str) -> Optional[Market]:
        return self._parse_market(self.client.get(f"/markets/{market_id}"))

    def _parse_market(self, market: Dict[str, Any]) -> Optional[Market]:
        """
        Parse a single market from Gamma API response.

        Args:
            market: Market data from API

        Returns:
            Market or None if parsing fails
        """
        if market.get("closed") is True:
            return None

        market_id = market.get("id") or market.get("conditionId")
        if not market_id:
            return None
        market_id = str(market_id)

        title = market.get("question") or market.get("title", "")
        if not title:
            return None

        # Index 0 = Yes, Index 1 = No
        prices = parse_outcome_prices(market.get("outcomePrices", []))
        if len(prices) >= 2:
            price_yes, price_no = prices[0], prices[1]
        else:
            price_yes = _unit(market.get("lastTradePrice"))
            if price_yes is None:
                price_yes = 0.5
            price_no = 1.0 - price_yes

        slug = market.get("slug") or None
        events = market.get("events") or []
        event_slug = events[0].get("slug") if events and isinstance(events[0], dict) else None

        volume = to_float(market.get("volumeNum"))
        if volume is None:
            volume = to_float(market.get("volume"))
        liquidity = to_float(market.get("liquidityNum"))
        if liquidity is None:
            liquidity = to_float(market.get("liquidity"))

        return Market(
            platform=self.platform,
            id=market_id,
            ticker=slug or market_id,
            title=title,
            category=market.get("category") or None,
            end_date=parse_timestamp(market.get("endDate") or market.get("end_date_iso")),
            yes_price=price_yes,
            no_price=price_no,
            yes_bid=_unit(market.get("bestBid")),
            yes_ask=_unit(market.get("bestAsk")),
            volume=volume,
            liquidity=liquidity,
            slug=slug,
            condition_id=market.get("conditionId") or None,
            url=f"https://polymarket.com/event/{event_slug or slug or market_id}",
        )
