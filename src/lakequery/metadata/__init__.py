"""Schema and table metadata queries."""

from lakequery.metadata.catalog import Catalog, format_literal, quote_identifier, table_reference

__all__ = [
    "Catalog",
    "format_literal",
    "quote_identifier",
    "table_reference",
]
