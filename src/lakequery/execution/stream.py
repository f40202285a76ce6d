"""Caller-facing row stream returned by ``RemoteQueryDriver.execute``."""

import time
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional

import pandas as pd

from lakequery.common.exceptions import LakeQueryError
from lakequery.execution.cancellation import CancellationToken
from lakequery.logging import get_logger
from lakequery.monitoring import ExecutionMetrics
from lakequery.types.job import ColumnSchema, Job, Row

if TYPE_CHECKING:
    from lakequery.execution.paginator import ResultPaginator

logger = get_logger(__name__)


class RowStream:
    """Lazy, forward-only, single-pass sequence of rows of one job.

    The column schema is resolved before the stream is handed out, so
    ``schema`` is available without consuming any row. Iterating a second
    time continues where the first iteration stopped; re-running a query
    requires a fresh ``execute``.

    The stream ends in one of three ways:
        - all rows delivered (``complete`` is True)
        - the caller cancelled (``cancelled`` is True, remote job cancelled)
        - a ``PartialResultError`` raised after the rows already delivered

    Example:
        >>> with driver.execute("SELECT id, name FROM users") as stream:
        ...     print(stream.schema.names)
        ...     for row in stream:
        ...         handle(row)
    """

    def __init__(
        self,
        paginator: 'ResultPaginator',
        token: CancellationToken,
        metrics: Optional[ExecutionMetrics] = None,
        started_at: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._paginator = paginator
        self._token = token
        self._metrics = metrics
        self._clock = clock
        self._started_at = started_at if started_at is not None else clock()
        self._finished = False
        self.complete = False

    @property
    def schema(self) -> ColumnSchema:
        return self._paginator.schema

    @property
    def job(self) -> Job:
        return self._paginator.job

    @property
    def job_id(self) -> str:
        return self._paginator.job.id

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def rows_delivered(self) -> int:
        return self._paginator.rows_delivered

    @property
    def cancelled(self) -> bool:
        return self._paginator.cancelled

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        """Request cancellation; the stream ends before its next row."""
        self._token.cancel(reason)

    def close(self) -> None:
        """Stop reading; pages not yet fetched are never requested."""
        if self._finished:
            return
        self._paginator.close()
        self._finish("closed")

    def __iter__(self) -> Iterator[Row]:
        return self

    def __next__(self) -> Row:
        if self._finished:
            raise StopIteration
        try:
            return next(self._paginator)
        except StopIteration:
            if self._paginator.cancelled:
                self._finish("cancelled")
            else:
                self.complete = True
                self._finish("completed")
            raise
        except LakeQueryError as exc:
            self._finish(type(exc).__name__)
            raise

    def __enter__(self) -> "RowStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ============================================================================
    # Convenience consumers
    # ============================================================================

    def as_dicts(self) -> Iterator[Dict[str, Any]]:
        """Yield the remaining rows as ``{column name: value}`` dicts."""
        names = self.schema.names
        for row in self:
            yield dict(zip(names, row))

    def fetch_all(self) -> List[Row]:
        """Consume the remaining rows into a list."""
        return list(self)

    def to_dataframe(self) -> pd.DataFrame:
        """Consume the remaining rows into a pandas DataFrame.

        Column order follows the schema; decimals stay ``Decimal`` objects
        (object dtype) so no precision is lost.
        """
        return pd.DataFrame.from_records(list(self), columns=list(self.schema.names))

    def _finish(self, outcome: str) -> None:
        if self._finished:
            return
        self._finished = True
        duration = self._clock() - self._started_at
        if self._metrics:
            self._metrics.rows_counter.add(self.rows_delivered)
            self._metrics.record_outcome(outcome, duration)
        logger.info(
            "Result stream finished",
            extra={
                "job_id": self.job_id,
                "outcome": outcome,
                "rows_delivered": self.rows_delivered,
                "duration.seconds": f"{duration:.6f}",
            },
        )

    def __repr__(self) -> str:
        return (
            f"RowStream(job_id={self.job_id!r}, columns={len(self.schema)}, "
            f"rows_delivered={self.rows_delivered}, complete={self.complete})"
        )
