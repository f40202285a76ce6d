"""Logging infrastructure for lakequery.

This module provides structured logging with JSON output, query/job context
tracking and OpenTelemetry trace correlation.
"""

from lakequery.logging.filters import ContextFilter
from lakequery.logging.logger import CustomJsonFormatter, get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "CustomJsonFormatter",
    "ContextFilter",
]
