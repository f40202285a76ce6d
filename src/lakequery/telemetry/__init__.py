"""OpenTelemetry entry points.

lakequery depends on the OpenTelemetry API only. Spans and instruments are
no-ops until the host application installs an SDK provider.
"""

from typing import Optional, Tuple

from opentelemetry import metrics, trace

from lakequery.__version__ import __version__

INSTRUMENTATION_NAME = "lakequery"

__all__ = [
    "INSTRUMENTATION_NAME",
    "current_trace_ids",
    "get_tracer",
    "get_meter",
]


def get_tracer(name: str = INSTRUMENTATION_NAME, version: Optional[str] = None):
    """Return a tracer from the active provider, versioned with lakequery."""
    return trace.get_tracer(name, version or __version__)


def get_meter(name: str = INSTRUMENTATION_NAME, version: Optional[str] = None):
    """Return a meter from the active provider, versioned with lakequery."""
    return metrics.get_meter(name, version or __version__)


def current_trace_ids() -> Optional[Tuple[str, str]]:
    """Return ``(trace_id, span_id)`` of the active span as hex, or None."""
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None
    return format(span_context.trace_id, "032x"), format(span_context.span_id, "016x")
