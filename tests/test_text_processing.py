"""Tests for title normalization and match scoring."""

import random
from datetime import datetime, timedelta, timezone

import pytest

from arbscanner.utils.text_processing import (
    calculate_similarity,
    categories_match,
    dates_match,
    edit_distance,
    extract_keywords,
    keyword_overlap,
    match_confidence,
    normalize_title,
)

TITLES = [
    "Will Bitcoin reach $100k in 2025?",
    "  Trump   wins the 2024 ELECTION!! ",
    "Fed cuts rates (March)",
    "",
    "---",
    "Lakers vs. Celtics: who wins?",
]


def test_normalize_title():
    """Test lowercasing, punctuation removal and whitespace collapsing."""
    assert normalize_title("  Trump   wins the 2024 ELECTION!! ") == "trump wins the 2024 election"
    assert normalize_title("Will BTC hit $100k?") == "will btc hit 100k"
    assert normalize_title("---") == ""


@pytest.mark.parametrize("title", TITLES)
def test_normalize_is_idempotent(title):
    """Test normalizing twice changes nothing."""
    once = normalize_title(title)
    assert normalize_title(once) == once


@pytest.mark.parametrize("title", [t for t in TITLES if t.strip()])
def test_similarity_of_identical_titles(title):
    """Test a title is fully similar to itself."""
    assert calculate_similarity(title, title) == 1.0


def test_similarity_is_symmetric():
    """Test argument order does not matter."""
    a = "Will Bitcoin reach 100k in 2025?"
    b = "Bitcoin to hit 100k by end of 2025"
    assert calculate_similarity(a, b) == calculate_similarity(b, a)
    assert 0.0 <= calculate_similarity(a, b) < 1.0


def test_similarity_ignores_case_and_punctuation():
    """Test titles equal after normalization score 1."""
    assert calculate_similarity("Fed cuts rates?", "FED CUTS RATES") == 1.0


def test_edit_distance():
    """Test Levenshtein distance."""
    assert edit_distance("kitten", "sitting") == 3
    assert edit_distance("", "abc") == 3
    assert edit_distance("same", "same") == 0


def test_extract_keywords_drops_stop_words_and_short_words():
    """Test keyword extraction."""
    assert extract_keywords("Will the Fed cut rates in March?") == {"fed", "cut", "rates", "march"}
    assert extract_keywords("is it a go") == set()


def test_keyword_overlap():
    """Test overlap is measured against the smaller keyword set."""
    assert keyword_overlap("Fed cuts rates", "Will the Fed cut rates in March") == pytest.approx(2 / 3)
    assert keyword_overlap("Fed cuts rates", "to be or not") == 0.0


def test_dates_match_same_utc_day():
    """Test end dates on the same UTC calendar day match."""
    first = datetime(2025, 11, 5, 23, 0, tzinfo=timezone.utc)
    second = datetime(2025, 11, 5, 20, 0, tzinfo=timezone(timedelta(hours=-2)))
    assert dates_match(first, second) is True
    assert dates_match(first, first + timedelta(days=1)) is False
    assert dates_match(first, None) is False


def test_categories_match_is_case_insensitive():
    """Test category comparison."""
    assert categories_match("Crypto", "crypto") is True
    assert categories_match("Crypto", "Politics") is False
    assert categories_match(None, "crypto") is False


def test_identical_markets_have_full_confidence(make_market):
    """Test identical title, end date and category give confidence 1."""
    kalshi = make_market("kalshi", "K1")
    polymarket = make_market("polymarket", "P1")
    # 0.5 + 0.2 + 0.2 + 0.1 sums to 0.9999999999999999 in floating point
    assert match_confidence(kalshi, polymarket) == pytest.approx(1.0)


def test_confidence_stays_in_unit_interval(make_market):
    """Test random titles, dates and categories never leave [0, 1]."""
    rng = random.Random(42)
    words = ["bitcoin", "will", "the", "trump", "fed", "rates", "2025", "win", "a", "lakers", "?!"]
    categories = [None, "crypto", "Crypto", "politics", "sports"]
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)

    for _ in range(300):
        markets = []
        for platform in ("kalshi", "polymarket"):
            title = " ".join(rng.choice(words) for _ in range(rng.randint(1, 8)))
            end_date = rng.choice([None, base + timedelta(hours=rng.randint(0, 72))])
            markets.append(make_market(
                platform, "X", title=title,
                category=rng.choice(categories), end_date=end_date,
            ))
        confidence = match_confidence(*markets)
        assert 0.0 <= confidence <= 1.0 + 1e-9
