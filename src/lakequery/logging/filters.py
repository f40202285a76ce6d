"""Logging filters for context injection.

This module provides filters that inject context variables into log records,
so every line logged while a query executes can be correlated to its query
and remote job.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

from lakequery.__version__ import __version__

query_id_var: ContextVar[Optional[str]] = ContextVar("query_id", default=None)
job_id_var: ContextVar[Optional[str]] = ContextVar("job_id", default=None)

_static_context: Dict[str, Any] = {}


class ContextFilter(logging.Filter):
    """Logging filter that adds context variables to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context variables to the log record.

        Args:
            record: Log record to enhance

        Returns:
            Always True (doesn't filter out any records)
        """
        for key, value in _static_context.items():
            setattr(record, key, value)
        # explicit extra= values win over the ambient query context
        if getattr(record, "query_id", None) is None:
            setattr(record, "query_id", query_id_var.get())
        if getattr(record, "job_id", None) is None:
            setattr(record, "job_id", job_id_var.get())
        setattr(record, "sdk_name", "lakequery")
        setattr(record, "sdk_version", __version__)
        return True


def set_logging_context(
    environment: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Replace the static attributes added to every record."""
    _static_context.clear()
    if environment is not None:
        _static_context["environment"] = environment
    if extra:
        _static_context.update(extra)


def set_query_context(
    query_id: Optional[str] = None,
    job_id: Optional[str] = None,
) -> None:
    """Set query context variables."""
    if query_id is not None:
        query_id_var.set(query_id)
    if job_id is not None:
        job_id_var.set(job_id)


def clear_query_context() -> None:
    """Clear all query context variables."""
    query_id_var.set(None)
    job_id_var.set(None)
