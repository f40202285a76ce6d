"""Monitoring infrastructure for query execution metrics."""

from lakequery.monitoring.metrics import ExecutionMetrics, get_execution_metrics

__all__ = [
    "ExecutionMetrics",
    "get_execution_metrics",
]
