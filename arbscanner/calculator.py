"""
Fee-aware profit calculations for cross-market and intra-market arbitrage.

Every binary contract pays 1.0 at resolution, so holding YES on one venue and
NO on an equivalent market elsewhere (or YES and NO on the same market) locks
in ``1 - cost - fees`` per contract.
"""

from typing import List, Optional, Sequence, TypeVar

from . import config
from .models import (
    DEFAULT_FEES,
    NO,
    YES,
    ArbitrageOpportunity,
    FeeStructure,
    IntraMarketOpportunity,
    Market,
    MarketPair,
    TradeDirective,
    TradeLeg,
)

T = TypeVar("T")


def calculate_cross_market_arbitrage(
    pair: MarketPair,
    fees: FeeStructure = DEFAULT_FEES,
    base_stake: float = config.BASE_STAKE,
) -> Optional[ArbitrageOpportunity]:
    """
    Evaluate both hedged strategies for a matched pair.

    Strategy 1: Buy YES on Kalshi (ask) + NO on Polymarket
    Strategy 2: Buy NO on Kalshi (ask) + YES on Polymarket

    Args:
        pair: Matched market pair
        fees: Per-platform fee rates
        base_stake: Capital committed per opportunity

    Returns:
        The more profitable strategy as an opportunity, or None when neither
        clears the minimum profit
    """
    kalshi, polymarket = pair.kalshi, pair.polymarket
    if kalshi is None or polymarket is None:
        return None

    total_fees = (
        fees.for_platform(kalshi.platform).taker_fee
        + fees.for_platform(polymarket.platform).taker_fee
    )

    strategy_1 = TradeDirective(
        buy=TradeLeg(kalshi.platform, YES, kalshi.ask(YES)),
        sell=TradeLeg(polymarket.platform, NO, polymarket.price(NO)),
    )
    strategy_2 = TradeDirective(
        buy=TradeLeg(kalshi.platform, NO, kalshi.ask(NO)),
        sell=TradeLeg(polymarket.platform, YES, polymarket.price(YES)),
    )

    profit_1 = 1.0 - (strategy_1.buy.price + strategy_1.sell.price) - total_fees
    profit_2 = 1.0 - (strategy_2.buy.price + strategy_2.sell.price) - total_fees

    if profit_1 >= profit_2:
        trade, profit = strategy_1, profit_1
    else:
        trade, profit = strategy_2, profit_2

    if profit <= config.MIN_PROFIT:
        return None

    return ArbitrageOpportunity(
        id=f"cross-{kalshi.id}-{polymarket.id}",
        kalshi=kalshi,
        polymarket=polymarket,
        trade=trade,
        profit_margin=profit * 100,
        required_capital=base_stake,
        expected_profit=profit * base_stake,
        confidence=pair.match_confidence,
    )


def calculate_intra_market_arbitrage(
    market: Market,
    fees: FeeStructure = DEFAULT_FEES,
) -> Optional[IntraMarketOpportunity]:
    """
    Buying both sides of one market is riskless when YES + NO + fees < 1.

    Args:
        market: Market snapshot
        fees: Per-platform fee rates

    Returns:
        Opportunity or None when the spread does not clear the minimum profit
    """
    yes_cost = market.ask(YES)
    no_cost = market.ask(NO)
    total_fees = fees.for_platform(market.platform).taker_fee * 2

    spread = 1.0 - (yes_cost + no_cost) - total_fees
    if spread <= config.MIN_PROFIT:
        return None

    return IntraMarketOpportunity(
        id=f"intra-{market.platform}-{market.id}",
        market=market,
        yes_price=yes_cost,
        no_price=no_cost,
        spread=spread,
        profit_margin=spread * 100,
    )


def calculate_expected_value(price: float, probability: float, fees: float) -> float:
    """EV of one YES contract bought at price given a win probability."""
    return probability * (1 - price - fees) - (1 - probability) * price


def calculate_kelly_bet(bankroll: float, probability: float, price: float) -> float:
    """
    Half-Kelly stake for a binary contract, capped at 25% of bankroll.

    Args:
        bankroll: Available capital
        probability: Estimated probability of the contract paying out
        price: Contract price

    Returns:
        Stake in currency units (0 when there is no edge)
    """
    if probability <= price or price >= 1:
        return 0.0
    if price <= 0:
        # Unbounded odds: full Kelly equals the win probability
        return min(probability / 2, config.KELLY_CAP) * bankroll

    odds = (1 - price) / price
    kelly = (odds * probability - (1 - probability)) / odds
    half_kelly = kelly / 2

    return max(0.0, min(half_kelly, config.KELLY_CAP)) * bankroll


def sort_by_profit_margin(opportunities: Sequence[T]) -> List[T]:
    """Stable sort, highest profit margin first."""
    return sorted(opportunities, key=lambda opp: opp.profit_margin, reverse=True)
