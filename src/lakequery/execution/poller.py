"""Job lifecycle polling.

After submit, the poller repeatedly asks the remote engine for the job's
status until it reaches a terminal state. The delay between polls starts at
``poll_base_interval`` and grows by ``poll_backoff_factor`` up to
``poll_max_interval``, so fast queries return quickly while long running ones
cost few requests. Sleeping happens on the cancellation token, which makes
each sleep an interruptible suspension point rather than a busy wait.
"""

from typing import TYPE_CHECKING, Optional

from lakequery.common.exceptions import (
    LakeQueryError,
    QueryCancelledError,
    QueryTimeoutError,
    query_execution_error,
)
from lakequery.constants import JobState
from lakequery.execution.cancellation import CancellationToken, Deadline
from lakequery.logging import get_logger
from lakequery.monitoring import ExecutionMetrics
from lakequery.types.job import Job

if TYPE_CHECKING:
    from lakequery.client import JobClient
    from lakequery.settings import ConnectionSettings

logger = get_logger(__name__)


class JobPoller:
    """Drives one submitted job to a terminal state.

    Terminal handling:
        COMPLETED: the job snapshot is returned for pagination.
        FAILED: ``QueryExecutionError`` with the remote message verbatim.
        CANCELLED: ``QueryCancelledError`` marked as remote-initiated.

    Deadline expiry and caller cancellation both send exactly one remote
    cancel before raising ``QueryTimeoutError`` / ``QueryCancelledError``.
    Transient status failures are retried inside the client, whose pauses
    wake on cancel and stop at the deadline; a transient error cut short
    that way is reported as the cancellation or timeout. Anything else that
    escapes the client (including ``JobNotFoundError``) is fatal.
    """

    def __init__(
        self,
        client: 'JobClient',
        settings: 'ConnectionSettings',
        metrics: Optional[ExecutionMetrics] = None,
    ):
        self._client = client
        self._base_interval = settings.poll_base_interval
        self._max_interval = settings.poll_max_interval
        self._factor = settings.poll_backoff_factor
        self._metrics = metrics

    def wait(self, job_id: str, deadline: Deadline, token: CancellationToken) -> Job:
        """Poll ``job_id`` until it is terminal.

        Args:
            job_id: Remote job id returned by submit
            deadline: Execution deadline started at submit time
            token: Caller's cancellation token

        Returns:
            The COMPLETED job snapshot (with ``row_count`` when reported)
        """
        interval = self._base_interval
        polls = 0

        while True:
            self._check_interrupted(job_id, deadline, token, polls)

            try:
                job = self._client.status(job_id, token=token, deadline=deadline)
            except LakeQueryError as exc:
                if exc.is_retryable:
                    self._check_interrupted(job_id, deadline, token, polls, cause=exc)
                raise
            polls += 1
            if self._metrics:
                self._metrics.poll_counter.add(1, {"state": job.state.value})

            if job.state is JobState.COMPLETED:
                logger.info(
                    "Job completed",
                    extra={"job_id": job_id, "polls": polls, "row_count": job.row_count},
                )
                return job
            if job.state is JobState.FAILED:
                raise query_execution_error(
                    job.error_message or f"Job {job_id} failed",
                    job_id=job_id,
                )
            if job.state is JobState.CANCELLED:
                raise QueryCancelledError(
                    job.error_message or f"Job {job_id} was cancelled by the remote engine",
                    remote=True,
                    details={"job_id": job_id},
                )

            remaining = deadline.remaining
            if remaining <= 0:
                self._timeout(job_id, deadline, polls)

            logger.debug(
                "Job not finished, waiting",
                extra={"job_id": job_id, "state": job.state.value, "delay": interval},
            )
            token.wait(min(interval, remaining))
            interval = min(interval * self._factor, self._max_interval)

    def _check_interrupted(
        self,
        job_id: str,
        deadline: Deadline,
        token: CancellationToken,
        polls: int,
        cause: Optional[LakeQueryError] = None,
    ) -> None:
        if token.cancelled:
            self._abandon(job_id, "caller cancellation")
            raise QueryCancelledError(
                token.reason or "Cancelled by caller",
                details={"job_id": job_id, "polls": polls},
                cause=cause,
            )
        if deadline.expired:
            self._timeout(job_id, deadline, polls)

    def _abandon(self, job_id: str, reason: str) -> None:
        logger.info("Abandoning job", extra={"job_id": job_id, "reason": reason})
        if self._metrics:
            self._metrics.cancel_counter.add(1, {"reason": reason})
        self._client.cancel(job_id)

    def _timeout(self, job_id: str, deadline: Deadline, polls: int) -> None:
        self._abandon(job_id, "deadline exceeded")
        raise QueryTimeoutError(
            f"Job {job_id} did not finish within {deadline.seconds} seconds",
            details={"job_id": job_id, "polls": polls, "timeout_seconds": deadline.seconds},
        )
