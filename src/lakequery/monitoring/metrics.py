"""OpenTelemetry instruments for query executions.

Instruments are created from the globally configured meter provider; when
the host application configures no provider the calls are no-ops.
"""

import threading
from typing import Dict, Optional

from lakequery.__version__ import __version__
from lakequery.telemetry import get_meter


class ExecutionMetrics:
    """Counters and histograms describing remote query executions.

    Attributes:
        query_counter: Executions by final outcome
        poll_counter: Status polls issued
        page_counter: Result pages fetched
        rows_counter: Rows delivered to callers
        cancel_counter: Remote cancel requests sent
        duration_histogram: Execution wall-clock time until the last row
    """

    def __init__(self, meter_name: str = "lakequery"):
        self.meter = get_meter(meter_name, __version__)
        self._setup_instruments()

    def _setup_instruments(self) -> None:
        """Setup OpenTelemetry instruments."""
        self.query_counter = self.meter.create_counter(
            "lakequery_queries_total",
            description="Total number of query executions",
            unit="queries"
        )
        self.poll_counter = self.meter.create_counter(
            "lakequery_job_polls_total",
            description="Total number of job status polls",
            unit="polls"
        )
        self.page_counter = self.meter.create_counter(
            "lakequery_result_pages_total",
            description="Total number of result pages fetched",
            unit="pages"
        )
        self.rows_counter = self.meter.create_counter(
            "lakequery_rows_delivered_total",
            description="Total rows delivered to callers",
            unit="rows"
        )
        self.cancel_counter = self.meter.create_counter(
            "lakequery_remote_cancels_total",
            description="Total remote cancel requests",
            unit="requests"
        )
        self.duration_histogram = self.meter.create_histogram(
            "lakequery_execution_duration_seconds",
            description="Duration of query executions",
            unit="seconds"
        )

    def record_outcome(self, outcome: str, duration_seconds: float,
                       attributes: Optional[Dict[str, str]] = None) -> None:
        tags = {**(attributes or {}), "outcome": outcome}
        self.query_counter.add(1, tags)
        self.duration_histogram.record(duration_seconds, tags)


_metrics: Optional[ExecutionMetrics] = None
_metrics_lock = threading.Lock()


def get_execution_metrics() -> ExecutionMetrics:
    """Return the shared metrics instance, creating it on first use."""
    global _metrics
    with _metrics_lock:
        if _metrics is None:
            _metrics = ExecutionMetrics()
        return _metrics
