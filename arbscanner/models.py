"""
Data models for the Arbitrage Scanner.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from . import config

YES = "yes"
NO = "no"
SIDES = (YES, NO)

CROSS_MARKET = "cross-market"
INTRA_MARKET = "intra-market"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class Market:
    """Normalized snapshot of one binary market on one platform."""
    platform: str                 # config.KALSHI or config.POLYMARKET
    id: str                       # Platform specific ID
    ticker: str
    title: str                    # Raw title, normalized only when scoring
    yes_price: float              # 0.00 ~ 1.00 (mid)
    no_price: float               # 0.00 ~ 1.00 (mid)
    category: Optional[str] = None
    end_date: Optional[datetime] = None
    yes_bid: Optional[float] = None
    yes_ask: Optional[float] = None
    no_bid: Optional[float] = None
    no_ask: Optional[float] = None
    volume: Optional[float] = None
    liquidity: Optional[float] = None
    last_updated: datetime = field(default_factory=utc_now)
    # Cross-reference identifiers for exact lookups against the store
    slug: Optional[str] = None
    condition_id: Optional[str] = None
    event_ticker: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self):
        """Validate data after initialization."""
        for name in ("yes_price", "no_price", "yes_bid", "yes_ask", "no_bid", "no_ask"):
            value = getattr(self, name)
            if value is not None and not 0.0 <= value <= 1.0:
                raise ValueError(f"Invalid {name}: {value}")

    @property
    def search_key(self) -> str:
        return f"{self.platform}:{self.id}"

    def price(self, side: str) -> float:
        """Mid price for a side."""
        if side == YES:
            return self.yes_price
        if side == NO:
            return self.no_price
        raise ValueError(f"Unknown side: {side}")

    def ask(self, side: str) -> float:
        """Best ask for a side, falling back to the mid price."""
        quote = self.yes_ask if side == YES else self.no_ask if side == NO else None
        if quote is None:
            return self.price(side)
        return quote

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform,
            "id": self.id,
            "ticker": self.ticker,
            "title": self.title,
            "category": self.category,
            "end_date": _iso(self.end_date),
            "yes_price": self.yes_price,
            "no_price": self.no_price,
            "yes_bid": self.yes_bid,
            "yes_ask": self.yes_ask,
            "no_bid": self.no_bid,
            "no_ask": self.no_ask,
            "volume": self.volume,
            "liquidity": self.liquidity,
            "last_updated": _iso(self.last_updated),
            "slug": self.slug,
            "condition_id": self.condition_id,
            "event_ticker": self.event_ticker,
            "url": self.url,
        }


@dataclass
class MarketPair:
    """Two markets believed to describe the same event."""
    kalshi: Optional[Market]
    polymarket: Optional[Market]
    match_confidence: float
    match_reason: str


@dataclass(frozen=True)
class TradeLeg:
    platform: str
    side: str
    price: float


@dataclass(frozen=True)
class TradeDirective:
    buy: TradeLeg
    sell: TradeLeg


@dataclass
class ArbitrageOpportunity:
    """Cross-market opportunity between a matched pair."""

    id: str
    kalshi: Market
    polymarket: Market
    trade: TradeDirective
    profit_margin: float      # Percent
    required_capital: float
    expected_profit: float
    confidence: float
    detected_at: datetime = field(default_factory=utc_now)
    type: str = CROSS_MARKET

    def __str__(self):
        return (
            f"Cross-Market Opportunity ({self.profit_margin:.2f}%)\n"
            f"  Kalshi:     {self.kalshi.title[:50]}\n"
            f"  Polymarket: {self.polymarket.title[:50]}\n"
            f"  Buy {self.trade.buy.side.upper()} on {self.trade.buy.platform} "
            f"@ {self.trade.buy.price:.4f}, "
            f"{self.trade.sell.side.upper()} on {self.trade.sell.platform} "
            f"@ {self.trade.sell.price:.4f}\n"
            f"  Match Confidence: {self.confidence:.2f}\n"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "kalshi": self.kalshi.to_dict(),
            "polymarket": self.polymarket.to_dict(),
            "trade": {
                "buy": vars(self.trade.buy).copy(),
                "sell": vars(self.trade.sell).copy(),
            },
            "profit_margin": self.profit_margin,
            "required_capital": self.required_capital,
            "expected_profit": self.expected_profit,
            "confidence": self.confidence,
            "detected_at": _iso(self.detected_at),
        }


@dataclass
class IntraMarketOpportunity:
    """Yes + No on a single market costing less than the payout after fees."""

    id: str
    market: Market
    yes_price: float
    no_price: float
    spread: float
    profit_margin: float      # Percent
    detected_at: datetime = field(default_factory=utc_now)
    type: str = INTRA_MARKET

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "market": self.market.to_dict(),
            "yes_price": self.yes_price,
            "no_price": self.no_price,
            "spread": self.spread,
            "profit_margin": self.profit_margin,
            "detected_at": _iso(self.detected_at),
        }


Opportunity = Union[ArbitrageOpportunity, IntraMarketOpportunity]


@dataclass(frozen=True)
class PlatformFees:
    taker_fee: float
    maker_fee: float = 0.0


@dataclass(frozen=True)
class FeeStructure:
    """Per-platform fee rates."""
    kalshi: PlatformFees = PlatformFees(config.KALSHI_TAKER_FEE, config.KALSHI_MAKER_FEE)
    polymarket: PlatformFees = PlatformFees(
        config.POLYMARKET_TAKER_FEE, config.POLYMARKET_MAKER_FEE
    )

    def for_platform(self, platform: str) -> PlatformFees:
        if platform == config.KALSHI:
            return self.kalshi
        if platform == config.POLYMARKET:
            return self.polymarket
        raise ValueError(f"Unknown platform: {platform}")

    @classmethod
    def zero(cls) -> "FeeStructure":
        return cls(PlatformFees(0.0), PlatformFees(0.0))


DEFAULT_FEES = FeeStructure()


@dataclass
class DetectionResult:
    cross_market: List[ArbitrageOpportunity]
    intra_market: List[IntraMarketOpportunity]
    total_opportunities: int
    best_opportunity: Optional[Opportunity]
    detected_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cross_market": [opp.to_dict() for opp in self.cross_market],
            "intra_market": [opp.to_dict() for opp in self.intra_market],
            "total_opportunities": self.total_opportunities,
            "best_opportunity": (
                self.best_opportunity.to_dict() if self.best_opportunity else None
            ),
            "detected_at": _iso(self.detected_at),
        }
