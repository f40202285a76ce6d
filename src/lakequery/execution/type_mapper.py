"""Remote column types to canonical types, and value decoding.

The mapping is a closed table keyed by the base remote type name. Type
parameters (``DECIMAL(38,2)``, ``VARCHAR(65536)``) are ignored, and anything
not in the table falls back to STRING with a single warning per type name.
"""

import base64
import binascii
import json
import re
import threading
from datetime import date, datetime, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

from pydantic import ValidationError

from lakequery.common.exceptions import ErrorCode, QueryExecutionError, TypeConversionError
from lakequery.constants import CanonicalType
from lakequery.logging import get_logger
from lakequery.types.job import Column, ColumnSchema, Row
from lakequery.utils.datetime import format_timestamp, parse_date, parse_timestamp

logger = get_logger(__name__)

_ABSENT = object()

REMOTE_TYPE_MAP: Dict[str, CanonicalType] = {
    # integer
    "integer": CanonicalType.INTEGER,
    "int": CanonicalType.INTEGER,
    "bigint": CanonicalType.INTEGER,
    "smallint": CanonicalType.INTEGER,
    "tinyint": CanonicalType.INTEGER,
    # float
    "float": CanonicalType.FLOAT,
    "double": CanonicalType.FLOAT,
    "double precision": CanonicalType.FLOAT,
    "real": CanonicalType.FLOAT,
    # decimal
    "decimal": CanonicalType.DECIMAL,
    "numeric": CanonicalType.DECIMAL,
    # boolean
    "boolean": CanonicalType.BOOLEAN,
    "bool": CanonicalType.BOOLEAN,
    "bit": CanonicalType.BOOLEAN,
    # timestamp
    "timestamp": CanonicalType.TIMESTAMP,
    "timestamptz": CanonicalType.TIMESTAMP,
    "datetime": CanonicalType.TIMESTAMP,
    # date
    "date": CanonicalType.DATE,
    # binary
    "varbinary": CanonicalType.BINARY,
    "binary": CanonicalType.BINARY,
    "binary varying": CanonicalType.BINARY,
    # string
    "varchar": CanonicalType.STRING,
    "char": CanonicalType.STRING,
    "character varying": CanonicalType.STRING,
    "character": CanonicalType.STRING,
    "text": CanonicalType.STRING,
    "string": CanonicalType.STRING,
    "time": CanonicalType.STRING,
    "interval": CanonicalType.STRING,
    "interval_day_seconds": CanonicalType.STRING,
    "interval_year_months": CanonicalType.STRING,
    "list": CanonicalType.STRING,
    "struct": CanonicalType.STRING,
    "map": CanonicalType.STRING,
    "union": CanonicalType.STRING,
    "uuid": CanonicalType.STRING,
    # null
    "null": CanonicalType.NULL,
}

_TYPE_PARAMS = re.compile(r"\s*[(<].*$")

_warned_types: Set[str] = set()
_warned_lock = threading.Lock()

_TRUE_STRINGS = frozenset({"true", "t", "1", "yes"})
_FALSE_STRINGS = frozenset({"false", "f", "0", "no"})


def remote_type_name(descriptor: Union[str, Mapping[str, Any], None]) -> str:
    """Extract the type name from a schema ``type`` entry.

    The results endpoint reports either a plain string (``"BIGINT"``) or an
    object (``{"name": "DECIMAL", "precision": 38, "scale": 2}``).
    """
    if descriptor is None:
        return ""
    if isinstance(descriptor, Mapping):
        return str(descriptor.get("name") or descriptor.get("type") or "")
    return str(descriptor)


def map_type(descriptor: Union[str, Mapping[str, Any], None]) -> CanonicalType:
    """Map a remote type descriptor to its canonical type.

    Total function: unknown types map to STRING and are logged once.
    """
    name = remote_type_name(descriptor)
    base = _TYPE_PARAMS.sub("", name.strip().lower())
    canonical = REMOTE_TYPE_MAP.get(base)
    if canonical is None and base.startswith("interval"):
        canonical = CanonicalType.STRING
    if canonical is not None:
        return canonical

    with _warned_lock:
        first_time = base not in _warned_types
        _warned_types.add(base)
    if first_time:
        logger.warning(
            "Unsupported remote column type, falling back to string",
            extra={"remote_type": name},
        )
    return CanonicalType.STRING


def build_schema(fields: Iterable[Mapping[str, Any]]) -> ColumnSchema:
    """Build a :class:`ColumnSchema` from the results endpoint ``schema`` list."""
    columns = []
    for field in fields or []:
        type_name = remote_type_name(field.get("type"))
        columns.append(
            Column(
                name=str(field.get("name")),
                remote_type=type_name,
                canonical_type=map_type(type_name),
            )
        )
    try:
        return ColumnSchema(columns=tuple(columns))
    except ValidationError as exc:
        raise QueryExecutionError(
            "Invalid result schema",
            error_code=ErrorCode.SCHEMA_MISMATCH,
            details={"columns": [column.name for column in columns]},
            cause=exc,
        ) from exc


def decode_value(raw: Any, canonical_type: CanonicalType, assume_tz: Optional[tzinfo] = None) -> Any:
    """Coerce a raw JSON value into the runtime representation of its type.

    Args:
        raw: Value as parsed from the response body
        canonical_type: Canonical type of the value's column
        assume_tz: Zone for timestamps without an offset (UTC when omitted)

    Returns:
        Decoded value, or None for nulls

    Raises:
        TypeConversionError: If the value cannot be represented in the type
    """
    if raw is None or raw is _ABSENT or canonical_type is CanonicalType.NULL:
        return None
    if raw == "" and canonical_type is not CanonicalType.STRING:
        return None

    try:
        if canonical_type is CanonicalType.STRING:
            if isinstance(raw, (dict, list)):
                return json.dumps(raw, default=str, separators=(",", ":"))
            return raw if isinstance(raw, str) else str(raw)

        if canonical_type is CanonicalType.INTEGER:
            if isinstance(raw, bool):
                return int(raw)
            if isinstance(raw, int):
                return raw
            if isinstance(raw, Decimal):
                if raw != raw.to_integral_value():
                    raise ValueError(f"{raw} is not integral")
                return int(raw)
            return int(str(raw).strip())

        if canonical_type is CanonicalType.FLOAT:
            return float(raw)

        if canonical_type is CanonicalType.DECIMAL:
            if isinstance(raw, Decimal):
                return raw
            if isinstance(raw, float):
                # JSON bodies are parsed with Decimal; a float only arrives
                # from callers that decoded the payload themselves.
                return Decimal(repr(raw))
            return Decimal(str(raw).strip())

        if canonical_type is CanonicalType.BOOLEAN:
            if isinstance(raw, bool):
                return raw
            text = str(raw).strip().lower()
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
            raise ValueError(f"{raw!r} is not a boolean")

        if canonical_type is CanonicalType.TIMESTAMP:
            if isinstance(raw, datetime):
                return parse_timestamp(raw.isoformat(), assume_tz)
            return parse_timestamp(str(raw), assume_tz)

        if canonical_type is CanonicalType.DATE:
            return parse_date(raw)

        if canonical_type is CanonicalType.BINARY:
            if isinstance(raw, (bytes, bytearray)):
                return bytes(raw)
            return base64.b64decode(str(raw), validate=True)

    except (ValueError, TypeError, InvalidOperation, binascii.Error) as exc:
        raise TypeConversionError(
            f"Cannot decode value {raw!r} as {canonical_type.value}",
            details={"canonical_type": canonical_type.value},
            cause=exc,
        ) from exc

    raise TypeConversionError(f"Unhandled canonical type {canonical_type!r}")


def encode_value(value: Any, canonical_type: CanonicalType) -> Any:
    """Render a canonical value the way the results endpoint transmits it.

    Inverse of :func:`decode_value`; used by tests and fixtures.
    """
    if value is None or canonical_type is CanonicalType.NULL:
        return None
    if canonical_type is CanonicalType.DECIMAL:
        return str(value)
    if canonical_type is CanonicalType.TIMESTAMP:
        return format_timestamp(value)
    if canonical_type is CanonicalType.DATE:
        return value.isoformat() if isinstance(value, date) else str(value)
    if canonical_type is CanonicalType.BINARY:
        return base64.b64encode(value).decode("ascii")
    if canonical_type is CanonicalType.FLOAT:
        return float(value)
    if canonical_type is CanonicalType.INTEGER:
        return int(value)
    if canonical_type is CanonicalType.BOOLEAN:
        return bool(value)
    return str(value)


def decode_row(
    raw_row: Union[Sequence[Any], Mapping[str, Any]],
    schema: ColumnSchema,
    assume_tz: Optional[tzinfo] = None,
) -> Row:
    """Decode one raw row into a tuple aligned to ``schema``.

    Rows arrive either as positional arrays or as objects keyed by column
    name. In the object form the remote engine omits null fields, so a
    missing key is a null rather than an error.
    """
    if isinstance(raw_row, Mapping):
        values: List[Any] = [raw_row.get(column.name, _ABSENT) for column in schema]
    else:
        values = list(raw_row)
        if len(values) != len(schema):
            raise TypeConversionError(
                f"Row has {len(values)} values but the schema has {len(schema)} columns",
                details={"columns": schema.names},
            )
    return tuple(
        decode_value(value, column.canonical_type, assume_tz)
        for value, column in zip(values, schema)
    )
