from lakequery.__version__ import __version__

from lakequery.execution import (
    CancellationToken,
    RemoteQueryDriver,
    RowStream,
    map_type,
)
from lakequery.constants import CanonicalType, JobState
from lakequery.types import Column, ColumnSchema, Job, Page

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
)

from lakequery.settings import ConnectionSettings, get_settings, reload_settings
from lakequery.logging import setup_logging


__all__ = [
    "__version__",

    "RemoteQueryDriver",
    "RowStream",
    "CancellationToken",
    "map_type",

    "CanonicalType",
    "JobState",
    "Column",
    "ColumnSchema",
    "Job",
    "Page",

    # Exceptions (public API)
    "LakeQueryError",
    "ErrorCode",
    "ConfigurationError",
    "TransportError",
    "ServerError",
    "AuthError",
    "QueryExecutionError",
    "SQLSyntaxError",
    "TypeConversionError",
    "JobNotFoundError",
    "QueryCancelledError",
    "QueryTimeoutError",
    "PartialResultError",

    "ConnectionSettings",
    "get_settings",
    "reload_settings",
    "setup_logging",
]
