"""
Opportunity detector combining the matcher and the profit calculator.
"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from . import config
from .calculator import (
    calculate_cross_market_arbitrage,
    calculate_intra_market_arbitrage,
    sort_by_profit_margin,
)
from .matcher import MarketMatcher
from .models import (
    DEFAULT_FEES,
    ArbitrageOpportunity,
    DetectionResult,
    FeeStructure,
    IntraMarketOpportunity,
    Market,
    Opportunity,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectorConfig:
    min_profit_margin: float = config.MIN_PROFIT_MARGIN  # Percent
    min_confidence: float = config.MIN_CONFIDENCE
    fees: FeeStructure = DEFAULT_FEES
    base_stake: float = config.BASE_STAKE


def pick_best_opportunity(
    cross_market: List[ArbitrageOpportunity],
    intra_market: List[IntraMarketOpportunity],
) -> Optional[Opportunity]:
    """Head of whichever sorted list pays more; cross-market wins ties."""
    if cross_market and intra_market:
        if intra_market[0].profit_margin > cross_market[0].profit_margin:
            return intra_market[0]
        return cross_market[0]
    if cross_market:
        return cross_market[0]
    if intra_market:
        return intra_market[0]
    return None


class ArbitrageDetector:
    """
    Finds cross-market and intra-market opportunities in two market lists.

    ``detect`` depends only on its arguments and the current config.
    """

    def __init__(
        self,
        detector_config: Optional[DetectorConfig] = None,
        matcher: Optional[MarketMatcher] = None,
    ):
        self._config = detector_config or DetectorConfig()
        self.matcher = matcher or MarketMatcher()

    @property
    def config(self) -> DetectorConfig:
        return self._config

    def update_config(self, **changes) -> DetectorConfig:
        """Replace selected settings, e.g. ``update_config(min_confidence=0.8)``."""
        self._config = replace(self._config, **changes)
        logger.info(f"Detector config updated: {changes}")
        return self._config

    def detect(self, kalshi_markets: List[Market], polymarket_markets: List[Market]) -> DetectionResult:
        """
        Run one detection cycle.

        Args:
            kalshi_markets: Current snapshot of the first platform
            polymarket_markets: Current snapshot of the second platform

        Returns:
            DetectionResult with both lists sorted by profit margin
        """
        settings = self._config

        pairs = self.matcher.find_matches(kalshi_markets, polymarket_markets)
        cross_market = []
        for pair in pairs:
            if pair.match_confidence < settings.min_confidence:
                continue
            opportunity = calculate_cross_market_arbitrage(
                pair, settings.fees, settings.base_stake
            )
            if opportunity and opportunity.profit_margin >= settings.min_profit_margin:
                cross_market.append(opportunity)

        intra_market = []
        for market in list(kalshi_markets) + list(polymarket_markets):
            opportunity = calculate_intra_market_arbitrage(market, settings.fees)
            if opportunity and opportunity.profit_margin >= settings.min_profit_margin:
                intra_market.append(opportunity)

        cross_market = sort_by_profit_margin(cross_market)
        intra_market = sort_by_profit_margin(intra_market)

        result = DetectionResult(
            cross_market=cross_market,
            intra_market=intra_market,
            total_opportunities=len(cross_market) + len(intra_market),
            best_opportunity=pick_best_opportunity(cross_market, intra_market),
        )
        logger.info(
            "Detected %d cross-market and %d intra-market opportunities from %d pairs",
            len(cross_market),
            len(intra_market),
            len(pairs),
        )
        return result
