"""Query execution: type mapping, job polling, pagination and the driver facade.

Data flow of one execution:

    SQL -> RemoteQueryDriver.execute -> JobClient.submit
        -> JobPoller.wait (status polls with backoff until terminal)
        -> ResultPaginator (sequential pages, decoded by the type mapper)
        -> RowStream handed to the caller
"""

from lakequery.execution.cancellation import CancellationToken, Deadline
from lakequery.execution.driver import RemoteQueryDriver
from lakequery.execution.paginator import PageCursor, ResultPaginator
from lakequery.execution.poller import JobPoller
from lakequery.execution.stream import RowStream
from lakequery.execution.type_mapper import (
    REMOTE_TYPE_MAP,
    build_schema,
    decode_row,
    decode_value,
    encode_value,
    map_type,
)

__all__ = [
    "CancellationToken",
    "Deadline",
    "RemoteQueryDriver",
    "PageCursor",
    "ResultPaginator",
    "JobPoller",
    "RowStream",
    "REMOTE_TYPE_MAP",
    "build_schema",
    "decode_row",
    "decode_value",
    "encode_value",
    "map_type",
]
