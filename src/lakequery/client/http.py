"""HTTP client for the remote engine's REST job API.

The client issues the four job operations (submit, status, fetch page,
cancel) plus a lightweight connection probe, and translates HTTP failures
into the lakequery error taxonomy:

    =====================  ==========================================  =========
    Condition              Error                                       Retried
    =====================  ==========================================  =========
    connect/read failure   TransportError                              yes
    408                    TransportError                              yes
    429, 5xx               ServerError                                 yes
    401, 403               AuthError                                   no
    404 on a job endpoint  JobNotFoundError                            no
    400/422 on submit      SQLSyntaxError (remote message verbatim)    no
    other 4xx              QueryExecutionError                         no
    =====================  ==========================================  =========

One ``requests.Session`` backs all calls. Its connection pool is bounded by
``pool_maxsize`` and blocks when exhausted, so any number of concurrent
executions share a fixed number of sockets.
"""

import time
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from lakequery.client.auth import BearerTokenAuth, PasswordLoginAuth, parse_retry_after
from lakequery.common.exceptions import (
    AuthError,
    LakeQueryError,
    QueryExecutionError,
    ServerError,
    TransportError,
    ErrorCode,
    job_not_found_error,
    query_execution_error,
    syntax_error,
    transport_error,
)
from lakequery.constants import normalize_job_state
from lakequery.logging import get_logger
from lakequery.types.job import Job, RawPage
from lakequery.utils.decorators import retry_with_backoff, traced

if TYPE_CHECKING:
    from lakequery.execution.cancellation import CancellationToken, Deadline
    from lakequery.settings import ConnectionSettings

logger = get_logger(__name__)


def _retry_after(exc: Exception) -> Optional[float]:
    return getattr(exc, "retry_after", None)


class JobClient:
    """Client for the submit/status/results/cancel endpoints.

    The client is stateless apart from the HTTP session and the cached login
    token, and is safe to share between concurrently executing queries.

    Example:
        >>> client = JobClient(settings)
        >>> job_id = client.submit("SELECT 1")
        >>> job = client.status(job_id)
        >>> page = client.fetch_page(job_id, offset=0, limit=500)
    """

    def __init__(
        self,
        settings: 'ConnectionSettings',
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], Any] = time.sleep,
    ):
        """Initialize the client.

        Args:
            settings: Connection settings
            session: Optional pre-built session, mainly for tests
            sleep: Function used to wait between retries
        """
        self.settings = settings
        self._session = session or self._create_session()
        self._auth = self._create_auth()
        self._connection_info: Dict[str, Any] = {
            "base_url": settings.base_url,
            "api_path": settings.api_path,
            "auth": type(self._auth).__name__ if self._auth else "none",
        }
        self._sleep = sleep

    def _create_session(self) -> requests.Session:
        """Create HTTP session with a bounded, shared connection pool."""
        session = requests.Session()
        adapter = HTTPAdapter(
            pool_connections=self.settings.pool_connections,
            pool_maxsize=self.settings.pool_maxsize,
            pool_block=True,
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.verify = self.settings.verify_ssl
        session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        return session

    def _create_auth(self):
        settings = self.settings
        if settings.auth_token is not None:
            return BearerTokenAuth(settings.auth_token.get_secret_value())
        if settings.uses_password_login:
            return PasswordLoginAuth(
                session=self._session,
                login_url=f"{settings.base_url}{settings.login_path}",
                username=settings.username,
                password=settings.password.get_secret_value(),
                timeout=settings.request_timeout_seconds,
            )
        return None

    def _span_attributes(self, operation: str, job_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            "lakequery.operation": operation,
            "lakequery.job_id": job_id,
            "server.address": self.settings.base_url,
        }

    # ============================================================================
    # Transport
    # ============================================================================

    def _send(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        job_id: Optional[str] = None,
        sql: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send one request and return the decoded JSON body."""
        url = f"{self.settings.api_url}{path}"
        response = self._request(method, url, operation, body=body, params=params)

        if response.status_code == 401 and isinstance(self._auth, PasswordLoginAuth):
            logger.info("Session token rejected, logging in again", extra={"operation": operation})
            self._auth.invalidate()
            response = self._request(method, url, operation, body=body, params=params)

        self._raise_for_status(response, operation, job_id=job_id, sql=sql)
        return self._parse_body(response, operation)

    def _send_with_retry(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        token: Optional['CancellationToken'] = None,
        deadline: Optional['Deadline'] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """Send with bounded retries of transient failures.

        With a token or deadline, the pauses between attempts wait on the
        token and never run past the deadline. Once either fires, the last
        transient error is raised without a further attempt.
        """
        def keep_retrying(exc: Exception) -> bool:
            if token is not None and token.cancelled:
                return False
            return deadline is None or not deadline.expired

        def pause(seconds: float) -> None:
            if deadline is not None:
                seconds = min(seconds, deadline.remaining)
            if token is not None:
                token.wait(seconds)
            else:
                self._sleep(seconds)

        send = retry_with_backoff(
            max_retries=self.settings.max_retries,
            initial_delay=self.settings.retry_initial_delay,
            max_delay=self.settings.retry_max_delay,
            exponential_base=2,
            retry_on=(TransportError, ServerError),
            retry_condition=keep_retrying,
            min_delay_for=_retry_after,
            sleep=pause,
        )(self._send)
        return send(method, path, operation, **kwargs)

    def _request(
        self,
        method: str,
        url: str,
        operation: str,
        *,
        body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        try:
            return self._session.request(
                method,
                url,
                json=body,
                params=params,
                auth=self._auth,
                timeout=self.settings.request_timeout_seconds,
            )
        except requests.exceptions.RequestException as exc:
            raise transport_error(
                f"{operation} request to {url} failed: {exc}",
                url=url,
                operation=operation,
                cause=exc,
            ) from exc

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = payload.get("errorMessage") or payload.get("message") or payload.get("error")
            if message:
                return str(message)
        return response.text.strip() or response.reason or f"HTTP {response.status_code}"

    def _raise_for_status(
        self,
        response: requests.Response,
        operation: str,
        *,
        job_id: Optional[str] = None,
        sql: Optional[str] = None,
    ) -> None:
        status = response.status_code
        if status < 400:
            return

        message = self._error_message(response)
        details = {"status_code": status, "operation": operation}

        if status in (401, 403):
            raise AuthError(f"Authorization failed: {message}", details=details)
        if status == 404 and job_id is not None:
            raise job_not_found_error(job_id, details=details)
        if status == 408:
            raise transport_error(f"Request timed out: {message}", operation=operation, details=details)
        if status == 429:
            raise ServerError(
                f"Rate limited: {message}",
                status_code=status,
                retry_after=parse_retry_after(response.headers.get("Retry-After")),
                error_code=ErrorCode.RATE_LIMIT_ERROR,
            )
        if status >= 500:
            raise ServerError(message, status_code=status)
        if operation == "submit" and status in (400, 422):
            raise syntax_error(message, sql=sql, status_code=status)
        raise query_execution_error(message, sql=sql, job_id=job_id, details=details)

    @staticmethod
    def _parse_body(response: requests.Response, operation: str) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            payload = response.json(parse_float=Decimal)
        except ValueError as exc:
            raise QueryExecutionError(
                f"Invalid JSON in {operation} response",
                details={"operation": operation, "status_code": response.status_code},
                cause=exc,
            ) from exc
        if not isinstance(payload, dict):
            raise QueryExecutionError(
                f"Unexpected {operation} response: expected an object",
                details={"operation": operation},
            )
        return payload

    # ============================================================================
    # Job operations
    # ============================================================================

    @traced(
        span_name="lakequery.client.submit",
        attribute_getter=lambda self, sql, **_: self._span_attributes("submit"),
        result_attributes=lambda job_id: {"lakequery.job_id": job_id},
    )
    def submit(
        self,
        sql: str,
        token: Optional['CancellationToken'] = None,
        deadline: Optional['Deadline'] = None,
    ) -> str:
        """Submit a SQL statement and return the remote job id.

        Raises:
            SQLSyntaxError: If the remote engine rejects the statement
            AuthError: If credentials are rejected
            TransportError, ServerError: After retries are exhausted, or as
                soon as ``token`` is cancelled or ``deadline`` expires
        """
        payload = self._send_with_retry(
            "POST", "/sql", "submit", body={"sql": sql}, sql=sql, token=token, deadline=deadline
        )
        job_id = payload.get("id")
        if not job_id:
            raise query_execution_error("Submit response did not contain a job id", sql=sql)
        logger.debug("Job submitted", extra={"job_id": job_id})
        return str(job_id)

    @traced(
        span_name="lakequery.client.status",
        attribute_getter=lambda self, job_id, **_: self._span_attributes("status", job_id),
        result_attributes=lambda job: {
            "lakequery.job.state": job.state.value,
            "lakequery.job.row_count": job.row_count,
        },
    )
    def status(
        self,
        job_id: str,
        token: Optional['CancellationToken'] = None,
        deadline: Optional['Deadline'] = None,
    ) -> Job:
        """Return the current snapshot of a job.

        Raises:
            JobNotFoundError: If the job id is unknown
        """
        payload = self._send_with_retry(
            "GET", f"/job/{job_id}", "status", job_id=job_id, token=token, deadline=deadline
        )
        row_count = payload.get("rowCount")
        return Job(
            id=str(payload.get("id") or job_id),
            state=normalize_job_state(payload.get("jobState")),
            row_count=int(row_count) if row_count is not None else None,
            error_message=payload.get("errorMessage"),
        )

    @traced(
        span_name="lakequery.client.fetch_page",
        attribute_getter=lambda self, job_id, offset, limit, **_: {
            **self._span_attributes("fetch_page", job_id),
            "lakequery.page.offset": offset,
            "lakequery.page.limit": limit,
        },
        result_attributes=lambda page: {"lakequery.page.rows": page.row_count_in_page},
    )
    def fetch_page(
        self,
        job_id: str,
        offset: int,
        limit: int,
        token: Optional['CancellationToken'] = None,
        deadline: Optional['Deadline'] = None,
    ) -> RawPage:
        """Fetch one page of a completed job's results.

        Returns:
            RawPage with undecoded schema and rows. The server may return
            fewer than ``limit`` rows on any page, not only the last one.
        """
        payload = self._send_with_retry(
            "GET",
            f"/job/{job_id}/results",
            "fetch_page",
            params={"offset": offset, "limit": limit},
            job_id=job_id,
            token=token,
            deadline=deadline,
        )
        total = payload.get("rowCount")
        return RawPage(
            offset=offset,
            schema_fields=tuple(payload.get("schema") or ()),
            raw_rows=tuple(payload.get("rows") or ()),
            total_row_count=int(total) if total is not None else None,
        )

    @traced(
        span_name="lakequery.client.cancel",
        attribute_getter=lambda self, job_id: self._span_attributes("cancel", job_id),
    )
    def cancel(self, job_id: str) -> bool:
        """Ask the remote engine to cancel a job.

        Best effort and a single attempt: the execution is already being
        abandoned, so failures are logged and reported as False, never raised.
        """
        try:
            self._send("POST", f"/job/{job_id}/cancel", "cancel", job_id=job_id)
        except LakeQueryError as exc:
            logger.warning(
                "Remote job cancel failed",
                extra={"job_id": job_id, "error": str(exc)},
            )
            return False
        logger.info("Remote job cancel requested", extra={"job_id": job_id})
        return True

    @traced(
        span_name="lakequery.client.probe",
        attribute_getter=lambda self: self._span_attributes("probe"),
    )
    def probe(self) -> None:
        """Issue a single lightweight catalog request, without retries."""
        self._send("GET", "/catalog", "probe")

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection information for debugging/logging."""
        return self._connection_info.copy()

    def close(self) -> None:
        """Close the HTTP session and its pooled connections."""
        self._session.close()
