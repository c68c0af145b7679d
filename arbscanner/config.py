"""
Configuration module for the Arbitrage Scanner.

Contains API endpoints, pagination and retry parameters, detection thresholds,
fee defaults and cache TTLs.
"""

from pathlib import Path

# API Base URLs
KALSHI_API_BASE = "https://api.elections.kalshi.com/trade-api/v2"
GAMMA_API_BASE = "https://gamma-api.polymarket.com"

# Platform identifiers
KALSHI = "kalshi"
POLYMARKET = "polymarket"

# Pagination
KALSHI_PAGE_LIMIT = 100
POLYMARKET_PAGE_LIMIT = 100
MAX_PAGES = 1000  # Safety cap against a misbehaving continuation signal

# Transport / retry
REQUEST_TIMEOUT_SECONDS = 30.0
RETRY_ATTEMPTS = 2  # Retries after the first attempt
RETRY_BACKOFF_BASE = 0.5  # Base delay for exponential backoff (seconds)
RETRY_JITTER_SECONDS = 0.1
USER_AGENT = "ArbitrageScanner/1.0"

# Refresh loop
REFRESH_INTERVAL_SECONDS = 30.0

# Matching / detection
MATCH_THRESHOLD = 0.6
MIN_PROFIT_MARGIN = 0.5  # Percent
MIN_CONFIDENCE = 0.6
MIN_PROFIT = 0.001  # Per-contract profit floor, in currency units
BASE_STAKE = 100.0

# Fees (fraction of notional)
KALSHI_TAKER_FEE = 0.07
KALSHI_MAKER_FEE = 0.0
POLYMARKET_TAKER_FEE = 0.02
POLYMARKET_MAKER_FEE = 0.0

# Kelly sizing
KELLY_CAP = 0.25

# Market search
MIN_SEARCH_SCORE = 0.4
MAX_SEARCH_RESULTS = 50

# Cache TTLs (seconds)
CACHE_MARKETS_TTL = 30.0
CACHE_SNAPSHOTS_TTL = 10.0
CACHE_OPPORTUNITIES_TTL = 5.0
CACHE_LIVE_AGE = 1.0  # Entries younger than this are reported as "live"
CACHE_SNAPSHOTS_MAX_ENTRIES = 5000  # Oldest write evicted beyond this

# Durable store (relative to project root)
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
STORE_DIR = DATA_DIR / "store"

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
