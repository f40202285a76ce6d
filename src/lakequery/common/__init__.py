"""Common utilities shared across lakequery modules."""

from lakequery.common.exceptions import (
    AuthError,
    ConfigurationError,
    ErrorCode,
    JobNotFoundError,
    LakeQueryError,
    PartialResultError,
    QueryCancelledError,
    QueryExecutionError,
    QueryTimeoutError,
    ServerError,
    SQLSyntaxError,
    TransportError,
    TypeConversionError,
    is_transient,
)

__all__ = [
    "AuthError",
    "ConfigurationError",
    "ErrorCode",
    "JobNotFoundError",
    "LakeQueryError",
    "PartialResultError",
    "QueryCancelledError",
    "QueryExecutionError",
    "QueryTimeoutError",
    "ServerError",
    "SQLSyntaxError",
    "TransportError",
    "TypeConversionError",
    "is_transient",
]
