"""
Exception hierarchy for the Arbitrage Scanner.
"""

from typing import Optional

RETRYABLE_STATUSES = {408, 429}


class ArbScannerError(Exception):
    """Base class for all scanner errors."""


class DataSourceError(ArbScannerError):
    """An upstream market source could not deliver data."""


class TransientNetworkError(DataSourceError):
    """Timeout, connection reset or DNS failure talking to an upstream."""


class UpstreamStatusError(DataSourceError):
    """Upstream answered with a non-success HTTP status."""

    def __init__(self, status: int, body: str = "", url: Optional[str] = None):
        self.status = status
        self.body = body
        self.url = url
        message = f"HTTP {status}"
        if url:
            message += f" from {url}"
        if body:
            message += f": {body[:200]}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return is_retryable_status(self.status)


class PlatformUnavailableError(DataSourceError):
    """Live fetch, cache and durable store are all exhausted for a platform."""

    def __init__(self, platform: str, cause: Optional[BaseException] = None):
        self.platform = platform
        self.cause = cause
        message = f"No market data available for {platform}"
        if cause is not None:
            message += f" ({cause})"
        super().__init__(message)


class PartialFetchFailure(ArbScannerError):
    """One platform was not served live while the other was."""

    def __init__(self, live: list, degraded: dict):
        self.live = live
        self.degraded = degraded
        details = ", ".join(f"{p}={s or 'unavailable'}" for p, s in degraded.items())
        super().__init__(f"Partial fetch: live={live}, degraded: {details}")


class PersistenceFailure(ArbScannerError):
    """A background write to the durable store failed."""

    def __init__(self, platform: str, cause: BaseException):
        self.platform = platform
        self.cause = cause
        super().__init__(f"Failed to persist {platform} markets: {cause}")


def is_retryable_status(status: int) -> bool:
    """408, 429 and every 5xx are worth another attempt."""
    return status >= 500 or status in RETRYABLE_STATUSES
