"""
Resilient HTTP transport shared by the market collectors.

Handles per-attempt timeouts, exponential backoff with jitter, retry
classification and cursor/offset pagination.
"""

import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .. import config
from ..exceptions import TransientNetworkError, UpstreamStatusError, is_retryable_status

logger = logging.getLogger(__name__)

Page = Tuple[List[Any], Optional[Any]]


def backoff_delay(
    attempt: int,
    base_delay: float = config.RETRY_BACKOFF_BASE,
    rng: Callable[[], float] = random.random,
) -> float:
    """Delay before retry ``attempt`` (0-based): base * 2**attempt + up to 100ms jitter."""
    return base_delay * (2 ** attempt) + rng() * config.RETRY_JITTER_SECONDS


class ResilientClient:
    """
    Thin wrapper around ``requests.Session`` with automatic retry logic.

    Statuses 408, 429 and 5xx, timeouts and connection failures are retried up
    to ``retry_attempts`` times; any other failure is raised immediately.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = config.REQUEST_TIMEOUT_SECONDS,
        retry_attempts: int = config.RETRY_ATTEMPTS,
        backoff_base: float = config.RETRY_BACKOFF_BASE,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        rng: Callable[[], float] = random.random,
    ):
        """
        Initialize the client.

        Args:
            base_url: Base URL prepended to every endpoint
            api_key: Optional bearer token, passed through untouched
            timeout: Per-attempt timeout in seconds
            retry_attempts: Retries after the first attempt
            backoff_base: Base delay for exponential backoff (seconds)
            session: Pre-built session (tests inject fakes here)
            sleep: Wait function used between attempts
            rng: Source of jitter in [0, 1)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.backoff_base = backoff_base
        self._sleep = sleep
        self._rng = rng

        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": config.USER_AGENT,
            "Accept": "application/json",
        })
        if api_key:
            self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def _wait(self, attempt: int, reason: str) -> None:
        delay = backoff_delay(attempt, self.backoff_base, self._rng)
        logger.warning(
            f"{reason}, retrying in {delay:.2f}s "
            f"(attempt {attempt + 1}/{self.retry_attempts + 1})"
        )
        self._sleep(delay)

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> Any:
        """
        Make an HTTP request with exponential backoff retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            params: Query parameters
            **kwargs: Additional requests arguments

        Returns:
            Decoded JSON body

        Raises:
            UpstreamStatusError: Non-success status (terminal, or retries exhausted)
            TransientNetworkError: Timeout / connection failure after retries
        """
        url = f"{self.base_url}{endpoint}"
        last_error: Optional[Exception] = None

        for attempt in range(self.retry_attempts + 1):
            has_retry = attempt < self.retry_attempts
            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    params=params,
                    timeout=self.timeout,
                    **kwargs
                )
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                last_error = TransientNetworkError(f"{method} {url} failed: {e}")
                last_error.__cause__ = e
                if has_retry:
                    self._wait(attempt, f"Request failed: {e}")
                    continue
                logger.error(
                    f"Request failed after {self.retry_attempts + 1} attempts: {e}"
                )
                raise last_error

            if 200 <= response.status_code < 300:
                return response.json()

            last_error = UpstreamStatusError(response.status_code, response.text, url)
            if is_retryable_status(response.status_code) and has_retry:
                self._wait(attempt, f"HTTP {response.status_code} error")
                continue

            # Don't retry on client errors (4xx except 408/429)
            logger.error(f"HTTP error {response.status_code} from {url}")
            raise last_error

        raise last_error or TransientNetworkError("All retry attempts exhausted")

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", endpoint, params=params)


def paginate(
    fetch_page: Callable[[Optional[Any]], Page],
    max_pages: Optional[int] = config.MAX_PAGES,
) -> List[Any]:
    """
    Accumulate items across pages until the upstream stops returning a cursor.

    Args:
        fetch_page: Called with the current cursor (None first), returns
            (items, next_cursor); an empty/None cursor ends the loop
        max_pages: Safety cap on the number of requests (None disables it)

    Returns:
        All items in page order
    """
    items: List[Any] = []
    cursor: Optional[Any] = None
    pages = 0

    while True:
        page_items, cursor = fetch_page(cursor)
        items.extend(page_items)
        pages += 1

        if cursor is None or cursor == "":
            break

        if max_pages is not None and pages >= max_pages:
            logger.warning(
                f"Stopping pagination after {pages} pages; upstream still reports more"
            )
            break

        logger.debug(f"Fetched {len(items)} items so far, continuing...")

    return items


class MarketCollector:
    """
    Base class for one platform's market source.

    Subclasses implement ``list_markets`` (one page) and ``get_market``;
    ``fetch_all_markets`` walks every page through ``paginate``.
    """

    platform: str = ""

    def __init__(self, client: ResilientClient, max_pages: Optional[int] = config.MAX_PAGES):
        self.client = client
        self.max_pages = max_pages

    def list_markets(
        self,
        filters: Optional[Dict[str, Any]] = None,
        cursor: Optional[Any] = None,
    ) -> Page:
        raise NotImplementedError

    def get_market(self, market_id: str):
        raise NotImplementedError

    def _parse_many(self, raw_markets: List[Dict[str, Any]]) -> List[Any]:
        markets = []
        for raw in raw_markets:
            try:
                market = self._parse_market(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Failed to parse {self.platform} market: {e}")
                continue
            if market is not None:
                markets.append(market)
        return markets

    def _parse_market(self, raw: Dict[str, Any]):
        raise NotImplementedError

    def fetch_all_markets(self, filters: Optional[Dict[str, Any]] = None) -> List[Any]:
        """
        Fetch every open market from the platform.

        Raises:
            DataSourceError: When a page request fails after retries
        """
        logger.info(f"Fetching {self.platform} markets...")
        markets = paginate(
            lambda cursor: self.list_markets(filters, cursor),
            max_pages=self.max_pages,
        )
        logger.info(f"Fetched {len(markets)} {self.platform} markets")
        return markets
