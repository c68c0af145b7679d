"""Utilities package."""

from .text_processing import (
    calculate_similarity,
    dates_match,
    edit_distance,
    extract_keywords,
    keyword_overlap,
    match_confidence,
    normalize_title,
)

__all__ = [
    "calculate_similarity",
    "dates_match",
    "edit_distance",
    "extract_keywords",
    "keyword_overlap",
    "match_confidence",
    "normalize_title",
]
