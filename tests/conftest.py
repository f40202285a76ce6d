"""Shared fixtures: an in-memory job API and fast-polling settings."""

from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from lakequery.constants import JobState, normalize_job_state
from lakequery.settings import ConnectionSettings
from lakequery.types.job import Job, RawPage


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeJobClient:
    """Scripted stand-in for ``JobClient``.

    ``states`` is the sequence of remote job states returned by successive
    status calls (the last one repeats). Rows are served by offset/limit from
    ``rows``, at most ``max_page_rows`` per page when set; ``fail_at`` maps an
    offset to the error raised when that page is requested. ``on_error`` runs
    just before a scripted error is raised, standing in for whatever happens
    while the real client pauses between retries.
    """

    def __init__(
        self,
        states: Sequence[str] = ("COMPLETED",),
        schema: Sequence[Dict[str, Any]] = (),
        rows: Sequence[Any] = (),
        report_row_count: bool = True,
        error_message: Optional[str] = None,
        submit_error: Optional[Exception] = None,
        status_error: Optional[Exception] = None,
        probe_error: Optional[Exception] = None,
        fail_at: Optional[Dict[int, Exception]] = None,
        schema_at: Optional[Dict[int, Sequence[Dict[str, Any]]]] = None,
        clock: Optional[FakeClock] = None,
        seconds_per_status: float = 0.0,
        max_page_rows: Optional[int] = None,
        on_error: Optional[Callable[[], None]] = None,
    ):
        self.states = list(states)
        self.schema = list(schema)
        self.rows = list(rows)
        self.report_row_count = report_row_count
        self.error_message = error_message
        self.submit_error = submit_error
        self.status_error = status_error
        self.probe_error = probe_error
        self.fail_at = dict(fail_at or {})
        self.schema_at = dict(schema_at or {})
        self.clock = clock
        self.seconds_per_status = seconds_per_status
        self.max_page_rows = max_page_rows
        self.on_error = on_error

        self.submitted: List[str] = []
        self.status_calls = 0
        self.page_requests: List[tuple] = []
        self.cancelled: List[str] = []
        self.probes = 0
        self.closed = False
        self.interrupts: List[tuple] = []

    def _fail(self, error: Exception) -> None:
        if self.on_error is not None:
            self.on_error()
        raise error

    def submit(self, sql: str, token=None, deadline=None) -> str:
        self.submitted.append(sql)
        self.interrupts.append((token, deadline))
        if self.submit_error is not None:
            self._fail(self.submit_error)
        return "job-1"

    def status(self, job_id: str, token=None, deadline=None) -> Job:
        self.status_calls += 1
        self.interrupts.append((token, deadline))
        if self.clock is not None:
            self.clock.advance(self.seconds_per_status)
        if self.status_error is not None:
            self._fail(self.status_error)
        index = min(self.status_calls - 1, len(self.states) - 1)
        state = normalize_job_state(self.states[index])
        completed = state is JobState.COMPLETED
        return Job(
            id=job_id,
            state=state,
            row_count=len(self.rows) if completed and self.report_row_count else None,
            error_message=self.error_message,
        )

    def fetch_page(self, job_id: str, offset: int, limit: int, token=None, deadline=None) -> RawPage:
        self.page_requests.append((offset, limit))
        self.interrupts.append((token, deadline))
        if offset in self.fail_at:
            self._fail(self.fail_at[offset])
        if self.max_page_rows is not None:
            limit = min(limit, self.max_page_rows)
        return RawPage(
            offset=offset,
            schema_fields=tuple(self.schema_at.get(offset, self.schema)),
            raw_rows=tuple(self.rows[offset:offset + limit]),
            total_row_count=len(self.rows) if self.report_row_count else None,
        )

    def cancel(self, job_id: str) -> bool:
        self.cancelled.append(job_id)
        return True

    def probe(self) -> None:
        self.probes += 1
        if self.probe_error is not None:
            raise self.probe_error

    def get_connection_info(self) -> Dict[str, Any]:
        return {"base_url": "http://engine.test:9047"}

    def close(self) -> None:
        self.closed = True

    @property
    def page_offsets(self) -> List[int]:
        return [offset for offset, _ in self.page_requests]


def make_settings(**overrides: Any) -> ConnectionSettings:
    values: Dict[str, Any] = {
        "base_url": "http://engine.test:9047",
        "page_size": 100,
        "poll_base_interval": 0.001,
        "poll_max_interval": 0.004,
        "query_timeout_seconds": 5.0,
        "request_timeout_seconds": 1.0,
        "max_retries": 2,
        "retry_initial_delay": 0.0,
        "retry_max_delay": 0.0,
    }
    values.update(overrides)
    return ConnectionSettings(**values)


@pytest.fixture
def settings() -> ConnectionSettings:
    """Settings with tiny poll intervals so tests never really wait."""
    return make_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics():
    """Metrics collector backed by the no-op meter provider."""
    from lakequery.monitoring import ExecutionMetrics
    return ExecutionMetrics(meter_name="lakequery.tests")


INT_SCHEMA = [{"name": "n", "type": {"name": "BIGINT"}}]


def int_rows(count: int) -> List[List[int]]:
    return [[i] for i in range(count)]
