"""Cross-platform prediction market arbitrage scanner."""

from .detector import ArbitrageDetector, DetectorConfig
from .matcher import MarketMatcher
from .models import ArbitrageOpportunity, DetectionResult, IntraMarketOpportunity, Market
from .scanner import MarketScanner, ScannerContext

__version__ = "1.0.0"

__all__ = [
    "ArbitrageDetector",
    "ArbitrageOpportunity",
    "DetectionResult",
    "DetectorConfig",
    "IntraMarketOpportunity",
    "Market",
    "MarketMatcher",
    "MarketScanner",
    "ScannerContext",
]
