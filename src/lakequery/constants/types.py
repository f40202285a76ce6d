"""Canonical value types exposed to the host platform."""

from enum import Enum


class CanonicalType(str, Enum):
    """Generic column type taxonomy, independent of the remote engine.

    Runtime representation of decoded values:
        STRING: ``str``
        INTEGER: ``int``
        FLOAT: ``float``
        DECIMAL: ``decimal.Decimal`` (never converted through ``float``)
        BOOLEAN: ``bool``
        TIMESTAMP: timezone-aware ``datetime`` in UTC
        DATE: ``date``
        BINARY: ``bytes``
        NULL: always ``None``
    """

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    DATE = "date"
    BINARY = "binary"
    NULL = "null"
