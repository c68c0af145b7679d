"""Tests for fee-aware arbitrage profit calculations."""

import pytest

from arbscanner.calculator import (
    calculate_cross_market_arbitrage,
    calculate_expected_value,
    calculate_intra_market_arbitrage,
    calculate_kelly_bet,
    sort_by_profit_margin,
)
from arbscanner.models import DEFAULT_FEES, NO, YES, FeeStructure, MarketPair, PlatformFees


def test_cross_market_strategy_one(arbitrage_pair):
    """Test YES ask 0.40 + NO 0.45 with 0.09 fees yields a 6% margin via strategy 1."""
    kalshi, polymarket = arbitrage_pair
    pair = MarketPair(kalshi, polymarket, match_confidence=0.95, match_reason="exact")

    opportunity = calculate_cross_market_arbitrage(pair, DEFAULT_FEES, base_stake=100.0)

    assert opportunity is not None
    assert opportunity.profit_margin == pytest.approx(6.0)
    assert opportunity.expected_profit == pytest.approx(6.0)
    assert opportunity.required_capital == 100.0
    assert opportunity.confidence == 0.95
    assert opportunity.id == "cross-KXBTC-25-0xbtc"
    assert opportunity.trade.buy.platform == "kalshi"
    assert opportunity.trade.buy.side == YES
    assert opportunity.trade.buy.price == pytest.approx(0.40)
    assert opportunity.trade.sell.platform == "polymarket"
    assert opportunity.trade.sell.side == NO
    assert opportunity.trade.sell.price == pytest.approx(0.45)


def test_cross_market_strategy_two(make_market):
    """Test the NO-on-Kalshi leg is chosen when it is cheaper."""
    kalshi = make_market("kalshi", "K1", yes_price=0.7, no_price=0.3, yes_ask=0.72, no_ask=0.30)
    polymarket = make_market("polymarket", "P1", yes_price=0.55, no_price=0.45)
    pair = MarketPair(kalshi, polymarket, 0.9, "exact")

    opportunity = calculate_cross_market_arbitrage(pair, FeeStructure.zero())

    assert opportunity.trade.buy.side == NO
    assert opportunity.trade.sell.side == YES
    assert opportunity.profit_margin == pytest.approx(15.0)


def test_cross_market_no_edge(make_market):
    """Test fairly priced markets produce nothing."""
    kalshi = make_market("kalshi", "K1", yes_price=0.5, no_price=0.5)
    polymarket = make_market("polymarket", "P1", yes_price=0.5, no_price=0.5)
    pair = MarketPair(kalshi, polymarket, 1.0, "exact")

    assert calculate_cross_market_arbitrage(pair, DEFAULT_FEES) is None


def test_cross_market_requires_both_markets(make_market):
    """Test a half-empty pair is skipped."""
    pair = MarketPair(make_market("kalshi", "K1"), None, 1.0, "exact")
    assert calculate_cross_market_arbitrage(pair) is None


def test_intra_market_fair_prices(make_market):
    """Test 0.5 / 0.5 with zero fees has no spread."""
    market = make_market(yes_price=0.5, no_price=0.5)
    assert calculate_intra_market_arbitrage(market, FeeStructure.zero()) is None


def test_intra_market_cheap_asks(make_market):
    """Test asks of 0.46 on both sides yield an 8% margin."""
    market = make_market(yes_price=0.5, no_price=0.5, yes_ask=0.46, no_ask=0.46)

    opportunity = calculate_intra_market_arbitrage(market, FeeStructure.zero())

    assert opportunity is not None
    assert opportunity.profit_margin == pytest.approx(8.0)
    assert opportunity.spread == pytest.approx(0.08)
    assert opportunity.yes_price == 0.46
    assert opportunity.id == "intra-kalshi-M1"


def test_intra_market_fees_count_twice(make_market):
    """Test both legs pay the platform taker fee."""
    market = make_market(yes_price=0.5, no_price=0.5, yes_ask=0.46, no_ask=0.46)
    fees = FeeStructure(kalshi=PlatformFees(0.03), polymarket=PlatformFees(0.0))

    opportunity = calculate_intra_market_arbitrage(market, fees)

    assert opportunity.profit_margin == pytest.approx(2.0)


def test_expected_value():
    """Test EV of a YES contract."""
    assert calculate_expected_value(0.4, 0.5, 0.0) == pytest.approx(0.1)
    assert calculate_expected_value(0.6, 0.5, 0.0) == pytest.approx(-0.1)


def test_kelly_bet():
    """Test half-Kelly sizing and its cap."""
    assert calculate_kelly_bet(1000, 0.4, 0.5) == 0.0
    assert calculate_kelly_bet(1000, 0.9, 0.1) == pytest.approx(250.0)
    # odds 1, kelly 0.2, half 0.1
    assert calculate_kelly_bet(1000, 0.6, 0.5) == pytest.approx(100.0)


def test_sort_by_profit_margin_is_stable(make_market):
    """Test descending order with ties kept in input order."""
    fees = FeeStructure.zero()
    first = calculate_intra_market_arbitrage(
        make_market(market_id="A", yes_ask=0.45, no_ask=0.45), fees)
    second = calculate_intra_market_arbitrage(
        make_market(market_id="B", yes_ask=0.40, no_ask=0.40), fees)
    third = calculate_intra_market_arbitrage(
        make_market(market_id="C", yes_ask=0.45, no_ask=0.45), fees)

    ordered = sort_by_profit_margin([first, second, third])

    assert [opp.market.id for opp in ordered] == ["B", "A", "C"]


def test_kelly_bet_price_bounds():
    """Test free and fully priced contracts do not divide by zero."""
    assert calculate_kelly_bet(1000, 0.6, 0.0) == pytest.approx(250.0)
    assert calculate_kelly_bet(1000, 0.3, 0.0) == pytest.approx(150.0)
    assert calculate_kelly_bet(1000, 1.0, 1.0) == 0.0
