"""
Fuzzy matching engine for identifying equivalent markets across platforms.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Set, Tuple

from . import config
from .models import Market, MarketPair
from .utils.text_processing import (
    calculate_similarity,
    keyword_overlap,
    match_confidence,
    normalize_title,
)

logger = logging.getLogger(__name__)

REASON_EXACT = "exact"
REASON_SIMILAR = "similar"
REASON_KEYWORDS = "keyword overlap"
REASON_MULTIPLE = "multiple signals"


def classify_match(title1: str, title2: str) -> str:
    """Name the strongest signal behind a match."""
    similarity = calculate_similarity(title1, title2)
    if similarity > 0.9:
        return REASON_EXACT
    if similarity > 0.7:
        return REASON_SIMILAR
    if keyword_overlap(title1, title2) > 0.7:
        return REASON_KEYWORDS
    return REASON_MULTIPLE


def _make_pair(source: Market, target: Market, confidence: float, reason: str) -> MarketPair:
    if source.platform == config.POLYMARKET and target.platform != config.POLYMARKET:
        source, target = target, source
    return MarketPair(
        kalshi=source,
        polymarket=target,
        match_confidence=confidence,
        match_reason=reason,
    )


class MarketMatcher:
    """Greedy one-to-one matcher for cross-platform market identification."""

    def __init__(self, match_threshold: float = config.MATCH_THRESHOLD):
        """
        Initialize market matcher.

        Args:
            match_threshold: Confidence (0-1) a candidate must exceed to be paired
        """
        self.match_threshold = match_threshold

    def find_matches(
        self,
        source_markets: List[Market],
        target_markets: List[Market]
    ) -> List[MarketPair]:
        """
        Pair markets between two platforms.

        Source markets are visited in order; each claims its best-scoring
        unclaimed target if that score clears the threshold. Earlier sources
        win contested targets, so the result is not a global optimum.

        Args:
            source_markets: Markets from the primary platform
            target_markets: Markets from the comparison platform

        Returns:
            MarketPairs sorted by match confidence, descending
        """
        logger.info(
            "Matching %d markets (%s) vs %d markets (%s)...",
            len(source_markets),
            source_markets[0].platform if source_markets else "N/A",
            len(target_markets),
            target_markets[0].platform if target_markets else "N/A",
        )

        pairs: List[MarketPair] = []
        claimed: Set[int] = set()

        for source_market in source_markets:
            best_index: Optional[int] = None
            best_score = 0.0

            for index, target_market in enumerate(target_markets):
                if index in claimed:
                    continue
                score = match_confidence(source_market, target_market)
                if best_index is None or score > best_score:
                    best_index = index
                    best_score = score

            if best_index is None or best_score <= self.match_threshold:
                continue

            best_match = target_markets[best_index]
            claimed.add(best_index)
            reason = classify_match(source_market.title, best_match.title)
            pairs.append(_make_pair(source_market, best_match, best_score, reason))
            logger.debug(
                "Match found (score=%.3f, %s): %s <-> %s",
                best_score,
                reason,
                source_market.title[:40],
                best_match.title[:40],
            )

        pairs.sort(key=lambda pair: pair.match_confidence, reverse=True)
        logger.info("Found %d matching pairs", len(pairs))
        return pairs

    @staticmethod
    def find_unmatched(
        source_markets: List[Market],
        target_markets: List[Market],
        pairs: List[MarketPair]
    ) -> Tuple[List[Market], List[Market]]:
        """Markets from each side that did not end up in any pair."""
        matched = set()
        for pair in pairs:
            for market in (pair.kalshi, pair.polymarket):
                if market is not None:
                    matched.add(market.search_key)

        return (
            [m for m in source_markets if m.search_key not in matched],
            [m for m in target_markets if m.search_key not in matched],
        )


@dataclass
class MarketSearchResult:
    key: str
    market: Market
    score: float


def score_market_query(query: str, market: Market) -> float:
    """Best fuzzy score of a free-text query against a market's identifiers."""
    normalized_query = normalize_title(query)
    if not normalized_query:
        return 0.0

    candidates = [market.title, market.ticker, market.slug, market.event_ticker]
    best_score = 0.0
    for candidate in candidates:
        if not candidate:
            continue
        normalized_candidate = normalize_title(candidate)
        if not normalized_candidate:
            continue

        score = max(
            calculate_similarity(query, candidate),
            keyword_overlap(query, candidate),
        )
        if normalized_query in normalized_candidate:
            score = max(score, 0.9)
        best_score = max(best_score, score)

    return best_score


def search_markets(
    query: str,
    markets: List[Market],
    min_score: float = config.MIN_SEARCH_SCORE,
    limit: int = config.MAX_SEARCH_RESULTS,
) -> List[MarketSearchResult]:
    """
    Rank markets from any platform against a free-text query.

    Args:
        query: Search text (ignored when shorter than 2 characters)
        markets: Markets to search
        min_score: Minimum score to include a market
        limit: Maximum number of results

    Returns:
        Results sorted by score, descending
    """
    query = query.strip()
    if len(query) < 2:
        return []

    results = []
    for market in markets:
        score = score_market_query(query, market)
        if score >= min_score:
            results.append(MarketSearchResult(market.search_key, market, score))

    results.sort(key=lambda result: result.score, reverse=True)
    return results[:limit]
