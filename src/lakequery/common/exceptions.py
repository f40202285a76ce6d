from enum import Enum
from typing import Any, Dict, Optional

from lakequery.logging import get_logger

logger = get_logger(__name__)


class ErrorCode(Enum):
    """Standard error codes for lakequery operations.

    Each category has a specific number range for easy identification.

    Attributes:
        CONFIG_*: Configuration-related errors (1xxx)
        CONNECTION_*: Network, transport and authentication errors (3xxx)
        EXECUTION_*: Remote query execution errors (4xxx)
        RESOURCE_*: Resource availability errors (5xxx)
        DATA_*: Result decoding and integrity errors (6xxx)
        RETRY_*: Transient/retryable errors (9xxx)
    """
    # Configuration errors (1xxx)
    CONFIG_ERROR = "CONFIG_001"
    CONFIG_MISSING = "CONFIG_002"
    CONFIG_INVALID = "CONFIG_003"

    # Connection errors (3xxx)
    CONNECTION_ERROR = "CONNECTION_001"
    AUTH_ERROR = "CONNECTION_002"
    TIMEOUT_ERROR = "CONNECTION_003"

    # Execution errors (4xxx)
    EXECUTION_ERROR = "EXECUTION_001"
    QUERY_EXECUTION_ERROR = "EXECUTION_002"
    SYNTAX_ERROR = "EXECUTION_003"
    QUERY_CANCELLED = "EXECUTION_004"
    QUERY_TIMEOUT = "EXECUTION_005"
    PARTIAL_RESULT = "EXECUTION_006"

    # Resource errors (5xxx)
    RESOURCE_NOT_FOUND = "RESOURCE_001"
    JOB_NOT_FOUND = "RESOURCE_002"

    # Data errors (6xxx)
    TYPE_CONVERSION_ERROR = "DATA_001"
    SCHEMA_MISMATCH = "DATA_002"

    # Retry/Transient errors (9xxx)
    SERVER_ERROR = "RETRY_001"
    RATE_LIMIT_ERROR = "RETRY_002"


class LakeQueryError(Exception):
    """Base exception for all lakequery errors.

    Subclasses pick their ``default_code`` and whether they are transient;
    both can be overridden per instance. Construction logs the error once,
    at WARNING when retryable and ERROR otherwise, keyed by ``error_code``.
    """

    default_code: ErrorCode = ErrorCode.EXECUTION_ERROR
    retryable_by_default: bool = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        is_retryable: Optional[bool] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.cause = cause
        self.is_retryable = self.retryable_by_default if is_retryable is None else is_retryable
        if cause is not None:
            self.__cause__ = cause

        log = logger.warning if self.is_retryable else logger.error
        log(
            message,
            extra={
                "error_code": self.error_code.value,
                "error_type": type(self).__name__,
                "details": self.details,
                "is_retryable": self.is_retryable,
            },
        )

    def __str__(self) -> str:
        """String representation of the error."""
        msg = f"[{self.error_code.value}] {self.message}"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {str(self.cause)})"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
            "is_retryable": self.is_retryable
        }


class ConfigurationError(LakeQueryError):
    """Driver configuration is missing or invalid."""
    default_code = ErrorCode.CONFIG_ERROR


class TransportError(LakeQueryError):
    """Connection, DNS or timeout failure at the HTTP layer."""
    default_code = ErrorCode.CONNECTION_ERROR
    retryable_by_default = True


class ServerError(LakeQueryError):
    """The remote API answered with a 5xx (or 429) status."""
    default_code = ErrorCode.SERVER_ERROR
    retryable_by_default = True

    def __init__(self, message: str, status_code: Optional[int] = None,
                 retry_after: Optional[float] = None, **kwargs):
        self.status_code = status_code
        self.retry_after = retry_after
        details = kwargs.pop("details", None) or {}
        if status_code is not None:
            details["status_code"] = status_code
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message, details=details, **kwargs)


class AuthError(LakeQueryError):
    """Credentials were rejected (401/403)."""
    default_code = ErrorCode.AUTH_ERROR


class QueryExecutionError(LakeQueryError):
    """The remote engine failed the statement.

    ``message`` carries the remote error text verbatim.
    """
    default_code = ErrorCode.QUERY_EXECUTION_ERROR


class SQLSyntaxError(QueryExecutionError):
    """The remote engine rejected the statement at submit time."""
    default_code = ErrorCode.SYNTAX_ERROR


class TypeConversionError(QueryExecutionError):
    """A result value could not be decoded into its canonical type."""
    default_code = ErrorCode.TYPE_CONVERSION_ERROR


class JobNotFoundError(LakeQueryError):
    """The job id is unknown to the remote engine; the job cannot be resumed."""
    default_code = ErrorCode.JOB_NOT_FOUND


class QueryCancelledError(LakeQueryError):
    """The execution was cancelled by the caller or by the remote engine."""
    default_code = ErrorCode.QUERY_CANCELLED

    def __init__(self, message: str, remote: bool = False, **kwargs):
        self.remote = remote
        details = kwargs.pop("details", None) or {}
        details["initiator"] = "remote" if remote else "caller"
        super().__init__(message, details=details, **kwargs)


class QueryTimeoutError(LakeQueryError):
    """The per-execution deadline was exceeded."""
    default_code = ErrorCode.QUERY_TIMEOUT


class PartialResultError(LakeQueryError):
    """Some rows were already delivered before an unrecoverable failure.

    Attributes:
        rows_delivered: Number of rows handed to the caller before the failure
    """
    default_code = ErrorCode.PARTIAL_RESULT

    def __init__(self, message: str, rows_delivered: int, cause: BaseException, **kwargs):
        self.rows_delivered = rows_delivered
        details = kwargs.pop("details", None) or {}
        details["rows_delivered"] = rows_delivered
        super().__init__(message, details=details, cause=cause, **kwargs)


def is_transient(exc: BaseException) -> bool:
    """Return True for failures the HTTP client retries locally."""
    return isinstance(exc, (TransportError, ServerError))


def _truncate_sql(sql: str) -> str:
    return sql[:500] + "..." if len(sql) > 500 else sql


# Helper functions for common error scenarios
def configuration_error(
    message: str,
    config_key: Optional[str] = None,
    **kwargs
) -> ConfigurationError:
    """Create a configuration error.

    Args:
        message: Error message
        config_key: Configuration key that caused the error
        **kwargs: Additional error details

    Returns:
        ConfigurationError with CONFIG_ERROR code
    """
    details = kwargs.pop('details', {})
    if config_key:
        details["config_key"] = config_key
    return ConfigurationError(message, details=details, **kwargs)


def transport_error(
    message: str,
    url: Optional[str] = None,
    operation: Optional[str] = None,
    **kwargs
) -> TransportError:
    """Create a transport error.

    Args:
        message: Error message
        url: Endpoint that could not be reached
        operation: Client operation that failed (submit, status, ...)
        **kwargs: Additional error details

    Returns:
        TransportError, retryable
    """
    details = kwargs.pop('details', {})
    if url:
        details["url"] = url
    if operation:
        details["operation"] = operation
    return TransportError(message, details=details, **kwargs)


def query_execution_error(
    message: str,
    sql: Optional[str] = None,
    job_id: Optional[str] = None,
    **kwargs
) -> QueryExecutionError:
    """Create a query execution error carrying the remote message verbatim.

    Args:
        message: Remote error message
        sql: SQL text that failed (if known)
        job_id: Remote job id (if one was created)
        **kwargs: Additional error details

    Returns:
        QueryExecutionError with QUERY_EXECUTION_ERROR code
    """
    details = kwargs.pop('details', {})
    if sql:
        details["sql"] = _truncate_sql(sql)
    if job_id:
        details["job_id"] = job_id
    return QueryExecutionError(message, details=details, **kwargs)


def syntax_error(
    message: str,
    sql: Optional[str] = None,
    status_code: Optional[int] = None,
    **kwargs
) -> SQLSyntaxError:
    """Create a syntax error for a statement rejected at submit time."""
    details = kwargs.pop('details', {})
    if sql:
        details["sql"] = _truncate_sql(sql)
    if status_code is not None:
        details["status_code"] = status_code
    return SQLSyntaxError(message, details=details, **kwargs)


def job_not_found_error(
    job_id: str,
    **kwargs
) -> JobNotFoundError:
    """Create a job not found error.

    Args:
        job_id: Job id the remote engine no longer knows about
        **kwargs: Additional error details

    Returns:
        JobNotFoundError with JOB_NOT_FOUND code
    """
    details = kwargs.pop('details', {})
    details["job_id"] = job_id
    return JobNotFoundError(f"Job {job_id} was not found", details=details, **kwargs)
