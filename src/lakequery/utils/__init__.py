"""Utility functions and helpers for lakequery."""

from lakequery.utils.datetime import (
    format_timestamp,
    parse_date,
    parse_timestamp,
    resolve_timezone,
)
from lakequery.utils.decorators import (
    retry_with_backoff,
    traced,
)

__all__ = [
    # DateTime utilities
    "format_timestamp",
    "parse_date",
    "parse_timestamp",
    "resolve_timezone",
    # Decorators
    "retry_with_backoff",
    "traced",
]
