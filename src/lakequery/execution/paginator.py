"""Sequential page retrieval for a completed job.

Pages are requested strictly one after another at offsets 0, n0, n0+n1, ...
so the rows come out in the order the remote engine produced them. Only the
current page is held in memory.
"""

from dataclasses import dataclass
from datetime import tzinfo
from typing import TYPE_CHECKING, Optional, Tuple

from lakequery.common.exceptions import (
    ErrorCode,
    LakeQueryError,
    PartialResultError,
    QueryCancelledError,
    QueryExecutionError,
    QueryTimeoutError,
)
from lakequery.execution.cancellation import CancellationToken, Deadline
from lakequery.execution.type_mapper import build_schema, decode_row
from lakequery.logging import get_logger
from lakequery.monitoring import ExecutionMetrics
from lakequery.types.job import ColumnSchema, Job, Page, Row

if TYPE_CHECKING:
    from lakequery.client import JobClient

logger = get_logger(__name__)


@dataclass
class PageCursor:
    """Position of a paginator within a job's result set."""
    job_id: str
    page_size: int
    next_offset: int = 0
    fetched: int = 0
    pages_fetched: int = 0
    rows: Tuple[Row, ...] = ()
    position: int = 0
    exhausted: bool = False

    @property
    def has_buffered_row(self) -> bool:
        return self.position < len(self.rows)


class ResultPaginator:
    """Lazy, forward-only iterator over the rows of a COMPLETED job.

    ``open()`` fetches the first page and resolves the column schema before
    any row is handed out. Iteration then stops when a page is empty or when
    the cumulative row count reaches the reported row count. Only when no row
    count is reported does a page shorter than the page size end the result.

    A failure on any page after the first is raised as
    ``PartialResultError`` so callers can tell delivered rows from a result
    that never started.
    """

    def __init__(
        self,
        client: 'JobClient',
        job: Job,
        page_size: int,
        token: CancellationToken,
        deadline: Optional[Deadline] = None,
        assume_tz: Optional[tzinfo] = None,
        metrics: Optional[ExecutionMetrics] = None,
    ):
        self._client = client
        self._job = job
        self._token = token
        self._deadline = deadline
        self._assume_tz = assume_tz
        self._metrics = metrics
        self._cursor = PageCursor(job_id=job.id, page_size=page_size)
        self._remote_cancel_sent = False
        self.schema: Optional[ColumnSchema] = None
        self.rows_delivered = 0
        self.cancelled = False

    @property
    def job(self) -> Job:
        return self._job

    @property
    def cursor(self) -> PageCursor:
        return self._cursor

    @property
    def exhausted(self) -> bool:
        return self._cursor.exhausted and not self._cursor.has_buffered_row

    def open(self) -> ColumnSchema:
        """Fetch the first page and resolve the schema.

        Errors here propagate unchanged: no row has been delivered yet.
        """
        if self.schema is not None:
            return self.schema
        if self._token.cancelled:
            self._cancel_remote("caller cancellation")
            raise QueryCancelledError(
                self._token.reason or "Cancelled by caller",
                details={"job_id": self._job.id},
            )
        self._check_deadline()
        self._load_next_page()
        return self.schema

    def __iter__(self) -> "ResultPaginator":
        return self

    def __next__(self) -> Row:
        if self.schema is None:
            self.open()

        cursor = self._cursor
        while True:
            if self._token.cancelled:
                self._stop_for_cancellation()
                raise StopIteration
            if cursor.has_buffered_row:
                break
            if cursor.exhausted:
                raise StopIteration
            self._advance()

        row = cursor.rows[cursor.position]
        cursor.position += 1
        self.rows_delivered += 1
        return row

    def close(self) -> None:
        """Stop paginating; the remaining pages are never requested."""
        self._cursor.exhausted = True
        self._cursor.rows = ()
        self._cursor.position = 0

    def _advance(self) -> None:
        try:
            self._check_deadline()
            self._load_next_page()
        except QueryCancelledError as exc:
            if not self._token.cancelled:
                raise self._partial(exc) from exc
            self._stop_for_cancellation()
        except LakeQueryError as exc:
            raise self._partial(exc) from exc

    def _partial(self, exc: LakeQueryError) -> PartialResultError:
        return PartialResultError(
            f"Result retrieval failed after {self.rows_delivered} rows: {exc.message}",
            rows_delivered=self.rows_delivered,
            cause=exc,
            details={"job_id": self._job.id, "offset": self._cursor.next_offset},
        )

    def _raise_if_interrupted(self, exc: LakeQueryError) -> None:
        """Report a transient failure cut short by cancel or deadline as such."""
        if not exc.is_retryable:
            return
        if self._token.cancelled:
            self._cancel_remote("caller cancellation")
            raise QueryCancelledError(
                self._token.reason or "Cancelled by caller",
                details={"job_id": self._job.id},
                cause=exc,
            )
        self._check_deadline()

    def _check_deadline(self) -> None:
        if self._deadline is not None and self._deadline.expired:
            self._cancel_remote("deadline exceeded")
            raise QueryTimeoutError(
                f"Job {self._job.id} results were not retrieved within {self._deadline.seconds} seconds",
                details={"job_id": self._job.id, "timeout_seconds": self._deadline.seconds},
            )

    def _load_next_page(self) -> Page:
        cursor = self._cursor
        try:
            raw = self._client.fetch_page(
                cursor.job_id,
                cursor.next_offset,
                cursor.page_size,
                token=self._token,
                deadline=self._deadline,
            )
        except LakeQueryError as exc:
            self._raise_if_interrupted(exc)
            raise

        page_schema = build_schema(raw.schema_fields)
        if self.schema is None:
            self.schema = page_schema
        elif raw.schema_fields and page_schema != self.schema:
            raise QueryExecutionError(
                f"Result schema changed at offset {raw.offset}",
                error_code=ErrorCode.SCHEMA_MISMATCH,
                details={
                    "job_id": cursor.job_id,
                    "expected": self.schema.names,
                    "received": page_schema.names,
                },
            )

        page = Page(
            offset=raw.offset,
            rows=tuple(decode_row(raw_row, self.schema, self._assume_tz) for raw_row in raw.raw_rows),
            columns=self.schema,
            total_row_count=raw.total_row_count,
        )

        cursor.rows = page.rows
        cursor.position = 0
        cursor.next_offset = page.next_offset
        cursor.fetched += page.row_count_in_page
        cursor.pages_fetched += 1
        cursor.exhausted = self._is_last_page(page)

        if self._metrics:
            self._metrics.page_counter.add(1)
        logger.debug(
            "Fetched result page",
            extra={
                "job_id": cursor.job_id,
                "offset": page.offset,
                "rows": page.row_count_in_page,
                "fetched": cursor.fetched,
            },
        )
        return page

    def _is_last_page(self, page: Page) -> bool:
        expected = self._job.row_count
        if expected is None:
            expected = page.total_row_count

        if page.row_count_in_page == 0:
            if expected is not None and self._cursor.fetched < expected:
                logger.warning(
                    "Empty result page before the reported row count was reached",
                    extra={
                        "job_id": self._job.id,
                        "fetched": self._cursor.fetched,
                        "row_count": expected,
                    },
                )
            return True
        if expected is not None:
            # the server may cap page sizes, so a short page is not the end
            return self._cursor.fetched >= expected
        return page.row_count_in_page < self._cursor.page_size

    def _stop_for_cancellation(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            logger.info(
                "Result stream cancelled by caller",
                extra={"job_id": self._job.id, "rows_delivered": self.rows_delivered},
            )
            self._cancel_remote("caller cancellation")
        self.close()

    def _cancel_remote(self, reason: str) -> None:
        if self._remote_cancel_sent:
            return
        self._remote_cancel_sent = True
        if self._metrics:
            self._metrics.cancel_counter.add(1, {"reason": reason})
        self._client.cancel(self._job.id)
