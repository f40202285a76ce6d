"""JSON logging for lakequery.

Records are rendered as one JSON object per line. Any ``extra=`` field is
carried through, query/job ids come from :class:`ContextFilter`, and the
active OpenTelemetry span is attached so log lines join up with traces.
"""

from __future__ import annotations

import base64
import json
import logging
import logging.config
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Set

from lakequery.telemetry import current_trace_ids


def _standard_record_keys() -> Set[str]:
    blank = logging.LogRecord("lakequery", logging.INFO, __file__, 0, "", (), None)
    return set(blank.__dict__) | {"asctime", "message"}


_STANDARD_KEYS = _standard_record_keys()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _json_default(value: Any) -> Any:
    # result values end up in extra= fields; keep decimals exact
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return str(value)


class CustomJsonFormatter(logging.Formatter):
    """Formatter emitting one JSON document per record.

    Besides the standard ``timestamp``/``level``/``logger``/``message``
    fields, lakequery errors raised with ``exc_info`` contribute their
    ``error_code`` so failures can be grouped without parsing messages.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {
            key: value for key, value in record.__dict__.items() if key not in _STANDARD_KEYS
        }
        log_record.update({
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        })

        ids = current_trace_ids()
        if ids:
            log_record["trace_id"], log_record["span_id"] = ids

        if record.exc_info:
            exc = record.exc_info[1]
            error_code = getattr(exc, "error_code", None)
            if error_code is not None:
                log_record.setdefault("error_code", getattr(error_code, "value", error_code))
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=_json_default)


def setup_logging(level: str = "INFO", http_level: str = "WARNING") -> None:
    """Send lakequery logs to stdout as JSON via ``logging.config.dictConfig``.

    Library code never calls this; host applications and scripts opt in.
    Only the ``lakequery`` logger tree is configured, plus ``urllib3`` whose
    connection pool messages are capped at ``http_level``.

    Args:
        level: Level for lakequery loggers (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        http_level: Level for the underlying HTTP connection pool logger.
    """
    level = level.upper()
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "lq_json": {"()": "lakequery.logging.logger.CustomJsonFormatter"},
        },
        "filters": {
            "lq_context": {"()": "lakequery.logging.filters.ContextFilter"},
        },
        "handlers": {
            "lq_console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "lq_json",
                "filters": ["lq_context"],
                "stream": "ext://sys.stdout",
            }
        },
        "loggers": {
            "lakequery": {
                "level": level,
                "handlers": ["lq_console"],
                "propagate": False,
            },
            "urllib3": {"level": http_level.upper()},
        },
    })
