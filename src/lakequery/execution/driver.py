"""Query execution facade.

``RemoteQueryDriver`` is the entry point used by the host platform. One
``execute`` call runs a single sequential state machine:

    submit -> poll until terminal -> open the first results page -> RowStream

Every network call and every poll sleep is a point where cancellation is
checked. The driver holds no per-query state; any number of threads may call
``execute`` concurrently and they only share the client's connection pool.
"""

import time
import uuid
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

import pandas as pd

from lakequery.client import JobClient
from lakequery.common.exceptions import LakeQueryError, QueryCancelledError, QueryTimeoutError
from lakequery.execution.cancellation import CancellationToken, Deadline
from lakequery.execution.paginator import ResultPaginator
from lakequery.execution.poller import JobPoller
from lakequery.execution.stream import RowStream
from lakequery.logging import get_logger
from lakequery.logging.filters import clear_query_context, set_query_context
from lakequery.monitoring import ExecutionMetrics, get_execution_metrics
from lakequery.settings import ConnectionSettings, get_settings
from lakequery.utils.datetime import resolve_timezone
from lakequery.utils.decorators import traced

if TYPE_CHECKING:
    from lakequery.metadata import Catalog

logger = get_logger(__name__)

_MAX_STATEMENT_ATTRIBUTE = 4096


class RemoteQueryDriver:
    """Runs SQL against a remote engine that only exposes a REST job API.

    Results come back as a lazy :class:`RowStream` whose column schema is
    known before the first row is read. Memory use is bounded by one page
    regardless of the result size.

    Failure contract:
        - errors before ``execute`` returns (submit, poll, first page) are
          raised from ``execute`` itself and no rows were produced
        - errors while iterating after rows were delivered are raised as
          ``PartialResultError`` carrying the number of rows already handed out
        - a stream that simply ends is complete unless ``stream.cancelled``

    Example:
        >>> driver = RemoteQueryDriver(settings)
        >>> stream = driver.execute("SELECT 1 AS one")
        >>> stream.schema.names
        ['one']
        >>> list(stream)
        [(1,)]
    """

    def __init__(
        self,
        settings: Optional[ConnectionSettings] = None,
        client: Optional[JobClient] = None,
        metrics: Optional[ExecutionMetrics] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the driver.

        Args:
            settings: Connection settings; defaults to the cached environment settings
            client: Pre-built job client, mainly for tests
            metrics: Metrics collector; defaults to the shared instance
            clock: Monotonic clock used for deadlines and durations
        """
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self.client = client or JobClient(self.settings)
        self.metrics = metrics or get_execution_metrics()
        self._clock = clock
        self._poller = JobPoller(self.client, self.settings, self.metrics)
        self._assume_tz = resolve_timezone(self.settings.time_zone)
        self._catalog: Optional['Catalog'] = None

    def _span_attributes(self, sql: str) -> Dict[str, Any]:
        """Build OpenTelemetry span attributes for an execution."""
        statement = (sql or "").strip()
        if len(statement) > _MAX_STATEMENT_ATTRIBUTE:
            statement = f"{statement[:_MAX_STATEMENT_ATTRIBUTE - 3]}..."
        return {
            "db.system": "dremio",
            "db.operation": "execute",
            "db.statement": statement,
            "db.statement.length": len(statement),
            "server.address": self.settings.base_url,
            "lakequery.page_size": self.settings.page_size,
        }

    # ============================================================================
    # Execution
    # ============================================================================

    @traced(
        span_name="lakequery.execute",
        attribute_getter=lambda self, sql, cancellation_token=None: self._span_attributes(sql),
    )
    def execute(self, sql: str, cancellation_token: Optional[CancellationToken] = None) -> RowStream:
        """Submit ``sql`` and return a lazy stream over its result rows.

        Args:
            sql: SQL text in the remote engine's dialect
            cancellation_token: Optional token the caller can cancel from any thread

        Returns:
            RowStream with the resolved schema and the first page buffered

        Raises:
            SQLSyntaxError: If the statement is rejected at submit (no polls are made)
            QueryExecutionError: If the remote job fails
            QueryCancelledError: If cancelled by the caller or by the remote engine
            QueryTimeoutError: If the job does not finish before the deadline
            AuthError, TransportError, ServerError, JobNotFoundError
        """
        token = cancellation_token or CancellationToken()
        query_id = uuid.uuid4().hex
        started_at = self._clock()
        job_id: Optional[str] = None
        set_query_context(query_id=query_id)

        try:
            token.raise_if_cancelled()
            deadline = Deadline(self.settings.query_timeout_seconds, clock=self._clock)
            job_id = self._submit(sql, token, deadline)
            set_query_context(job_id=job_id)
            logger.info("Query submitted", extra={"query_id": query_id, "job_id": job_id})

            if token.cancelled:
                self.client.cancel(job_id)
                raise QueryCancelledError(
                    token.reason or "Cancelled by caller",
                    details={"job_id": job_id},
                )

            job = self._poller.wait(job_id, deadline, token)
            paginator = ResultPaginator(
                self.client,
                job,
                page_size=self.settings.page_size,
                token=token,
                deadline=deadline,
                assume_tz=self._assume_tz,
                metrics=self.metrics,
            )
            schema = paginator.open()
        except LakeQueryError as exc:
            duration = self._clock() - started_at
            self.metrics.record_outcome(type(exc).__name__, duration)
            logger.error(
                "Query execution failed",
                extra={
                    "query_id": query_id,
                    "job_id": job_id,
                    "error_code": exc.error_code.value,
                    "duration.seconds": f"{duration:.6f}",
                },
            )
            raise
        finally:
            clear_query_context()

        logger.info(
            "Query results ready",
            extra={
                "query_id": query_id,
                "job_id": job_id,
                "columns": len(schema),
                "row_count": job.row_count,
            },
        )
        return RowStream(paginator, token, metrics=self.metrics, started_at=started_at, clock=self._clock)

    def _submit(self, sql: str, token: CancellationToken, deadline: Deadline) -> str:
        try:
            return self.client.submit(sql, token=token, deadline=deadline)
        except LakeQueryError as exc:
            if not exc.is_retryable:
                raise
            # retries were cut short; no job id is known, so nothing to cancel
            if token.cancelled:
                raise QueryCancelledError(token.reason or "Cancelled by caller", cause=exc) from exc
            if deadline.expired:
                raise QueryTimeoutError(
                    f"Query was not accepted within {deadline.seconds} seconds",
                    details={"timeout_seconds": deadline.seconds},
                    cause=exc,
                ) from exc
            raise

    def cancel(self, handle: Union[RowStream, CancellationToken], reason: str = "Cancelled by caller") -> None:
        """Abort an in-flight execution from outside.

        Accepts either the stream returned by ``execute`` or the token that
        was passed to it. The execution stops at its next suspension point
        and issues one best-effort remote cancel.
        """
        if isinstance(handle, RowStream):
            handle.cancel(reason)
        elif isinstance(handle, CancellationToken):
            handle.cancel(reason)
        else:
            raise TypeError(
                f"cancel() expects a RowStream or CancellationToken, got {type(handle).__name__}"
            )

    def test_connection(self) -> bool:
        """Test if the remote engine is reachable with the configured credentials.

        Issues a single catalog request without retries.

        Returns:
            True if connection is successful, False otherwise
        """
        try:
            self.client.probe()
            return True
        except LakeQueryError as exc:
            logger.error(
                "Connection test failed",
                extra={"server.address": self.settings.base_url, "error": str(exc)},
            )
            return False

    # ============================================================================
    # Convenience
    # ============================================================================

    def query(self, sql: str, cancellation_token: Optional[CancellationToken] = None) -> List[Dict[str, Any]]:
        """Execute ``sql`` and return every row as a dict."""
        with self.execute(sql, cancellation_token) as stream:
            return list(stream.as_dicts())

    def fetch_dataframe(self, sql: str, cancellation_token: Optional[CancellationToken] = None) -> pd.DataFrame:
        """Execute ``sql`` and return the full result as a pandas DataFrame."""
        with self.execute(sql, cancellation_token) as stream:
            return stream.to_dataframe()

    @property
    def catalog(self) -> 'Catalog':
        """Metadata browser running INFORMATION_SCHEMA queries through this driver."""
        if self._catalog is None:
            from lakequery.metadata import Catalog
            self._catalog = Catalog(self)
        return self._catalog

    def get_connection_info(self) -> Dict[str, Any]:
        return self.client.get_connection_info()

    def release(self) -> None:
        """Close the HTTP session owned by this driver."""
        if self._owns_client:
            self.client.close()
        logger.debug("Driver released", extra={"server.address": self.settings.base_url})

    def __enter__(self) -> "RemoteQueryDriver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
