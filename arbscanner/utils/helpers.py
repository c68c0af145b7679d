"""
Utility functions for the Arbitrage Scanner.

Provides logging setup and upstream timestamp/number parsing.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from dateutil import parser as date_parser

from .. import config


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure structured logging with timestamps.

    Args:
        level: Logging level (default: INFO)

    Returns:
        Configured logger instance
    """
    logging.basicConfig(
        level=level,
        format=config.LOG_FORMAT,
        datefmt=config.LOG_DATE_FORMAT,
    )
    return logging.getLogger("arbscanner")


def parse_timestamp(ts: Union[str, int, float, None]) -> Optional[datetime]:
    """
    Convert ISO dates or unix timestamps to an aware UTC datetime.

    Args:
        ts: Timestamp as ISO string (e.g., "2025-12-01T00:00:00Z") or unix seconds

    Returns:
        Datetime object (UTC) or None when ts is empty

    Raises:
        ValueError: If timestamp format is invalid
    """
    if ts is None or ts == "":
        return None

    if isinstance(ts, (int, float)):
        return datetime.fromtimestamp(ts, tz=timezone.utc)

    if isinstance(ts, str):
        try:
            parsed = date_parser.parse(ts)
        except (ValueError, OverflowError) as e:
            try:
                return datetime.fromtimestamp(float(ts), tz=timezone.utc)
            except ValueError:
                raise ValueError(f"Invalid timestamp format: {ts}") from e
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    raise ValueError(f"Unsupported timestamp type: {type(ts)}")


def to_float(value: Any) -> Optional[float]:
    """Coerce an upstream numeric field (number or numeric string) to float."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def cents_to_price(value: Any) -> Optional[float]:
    """Integer cents (0-100) to a [0, 1] decimal price."""
    cents = to_float(value)
    if cents is None:
        return None
    return min(max(cents / 100.0, 0.0), 1.0)
