"""
Text processing utilities for market title normalization and scoring.
"""

import re
from datetime import datetime, timezone
from typing import Optional, Set

from rapidfuzz.distance import Levenshtein

STOP_WORDS = frozenset({
    'the', 'a', 'an', 'is', 'are', 'will', 'be', 'to', 'in', 'on', 'at',
    'for', 'of', 'by', 'with', 'if', 'or', 'and', 'this', 'that',
})

TITLE_WEIGHT = 0.5
KEYWORD_WEIGHT = 0.2
DATE_WEIGHT = 0.2
CATEGORY_WEIGHT = 0.1


def normalize_title(title: str) -> str:
    """
    Normalize market title for better matching.

    Steps:
    1. Convert to lowercase
    2. Remove special characters (keep alphanumeric and whitespace)
    3. Collapse runs of whitespace
    4. Strip leading/trailing spaces

    Args:
        title: Raw market title

    Returns:
        Normalized title string
    """
    normalized = title.lower()
    normalized = re.sub(r'[^a-z0-9\s]', '', normalized)
    normalized = re.sub(r'\s+', ' ', normalized)
    return normalized.strip()


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance between two strings."""
    return Levenshtein.distance(a, b)


def calculate_similarity(a: str, b: str) -> float:
    """
    Title similarity in [0, 1] based on edit distance of normalized titles.

    Args:
        a: First title
        b: Second title

    Returns:
        1.0 for identical normalized titles, otherwise
        1 - distance / longest normalized length
    """
    normalized_a = normalize_title(a)
    normalized_b = normalize_title(b)

    if normalized_a == normalized_b:
        return 1.0

    max_length = max(len(normalized_a), len(normalized_b))
    return 1.0 - edit_distance(normalized_a, normalized_b) / max_length


def extract_keywords(title: str) -> Set[str]:
    """
    Extract important keywords from title.

    Args:
        title: Market title

    Returns:
        Set of important keywords
    """
    words = normalize_title(title).split()

    # Filter out stop words and short words
    return {w for w in words if len(w) > 2 and w not in STOP_WORDS}


def keyword_overlap(title1: str, title2: str) -> float:
    """
    Share of the smaller keyword set that also appears in the other title.

    Args:
        title1: First title
        title2: Second title

    Returns:
        Overlap ratio in [0, 1], 0 when either title has no keywords
    """
    keywords1 = extract_keywords(title1)
    keywords2 = extract_keywords(title2)

    if not keywords1 or not keywords2:
        return 0.0

    return len(keywords1 & keywords2) / min(len(keywords1), len(keywords2))


def _calendar_day(value: datetime):
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.date()


def dates_match(date1: Optional[datetime], date2: Optional[datetime]) -> bool:
    """True when both dates are present and fall on the same calendar day."""
    if date1 is None or date2 is None:
        return False
    return _calendar_day(date1) == _calendar_day(date2)


def categories_match(category1: Optional[str], category2: Optional[str]) -> bool:
    if not category1 or not category2:
        return False
    return category1.lower() == category2.lower()


def match_confidence(market1, market2) -> float:
    """
    Weighted match score of two markets, always in [0, 1].

    0.5 title similarity + 0.2 keyword overlap + 0.2 same end date
    + 0.1 same category.
    """
    score = TITLE_WEIGHT * calculate_similarity(market1.title, market2.title)
    score += KEYWORD_WEIGHT * keyword_overlap(market1.title, market2.title)
    if dates_match(market1.end_date, market2.end_date):
        score += DATE_WEIGHT
    if categories_match(market1.category, market2.category):
        score += CATEGORY_WEIGHT
    return score
