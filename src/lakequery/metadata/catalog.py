"""Metadata browsing on top of the query execution core.

Every method here is an ordinary ``execute`` of a fixed INFORMATION_SCHEMA
query, so it goes through the same submit/poll/paginate path, retries and
cancellation as user SQL. Statements are built with sqlglot so identifiers
and literals are always quoted correctly.
"""

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List

import sqlglot
from sqlglot import exp

from lakequery.execution.type_mapper import map_type
from lakequery.logging import get_logger

if TYPE_CHECKING:
    from lakequery.execution.driver import RemoteQueryDriver

logger = get_logger(__name__)

SYSTEM_SCHEMA = "INFORMATION_SCHEMA"
SYSTEM_SCHEMA_PREFIX = "sys"


def quote_identifier(name: str) -> str:
    """Render ``name`` as a double-quoted identifier."""
    return exp.to_identifier(name, quoted=True).sql()


def table_reference(*parts: str) -> str:
    """Render a dotted, fully quoted path such as ``"space"."folder"."table"``."""
    return ".".join(quote_identifier(part) for part in parts)


def format_literal(value: Any) -> str:
    """Render a Python scalar as a SQL literal.

    Raises:
        TypeError: For values without a literal form
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return exp.Boolean(this=value).sql()
    if isinstance(value, (int, float, Decimal)):
        return exp.Literal.number(str(value)).sql()
    if isinstance(value, str):
        return exp.Literal.string(value).sql()
    raise TypeError(f"Cannot render {type(value).__name__} as a SQL literal")


def _information_schema(table: str) -> exp.Table:
    return exp.table_(exp.to_identifier(table, quoted=True), db=exp.to_identifier(SYSTEM_SCHEMA))


def _user_schemas_only() -> exp.Expression:
    schema = exp.column("TABLE_SCHEMA")
    return exp.and_(
        schema.neq(exp.Literal.string(SYSTEM_SCHEMA)),
        exp.not_(schema.like(exp.Literal.string(f"{SYSTEM_SCHEMA_PREFIX}%"))),
    )


class Catalog:
    """Schema, table and column listing for the remote engine.

    Example:
        >>> catalog = driver.catalog
        >>> catalog.list_schemas()
        ['lake.sales', 'lake.marketing']
        >>> catalog.describe_table("lake.sales", "orders")
        [{'name': 'id', 'type': 'BIGINT', 'canonical_type': 'integer'}, ...]
    """

    def __init__(self, driver: 'RemoteQueryDriver'):
        self._driver = driver

    # ============================================================================
    # Statement builders
    # ============================================================================

    @staticmethod
    def schemas_sql() -> str:
        return (
            sqlglot.select(exp.column("TABLE_SCHEMA").as_("table_schema"))
            .distinct()
            .from_(_information_schema("TABLES"))
            .where(_user_schemas_only())
            .order_by(exp.column("TABLE_SCHEMA"))
            .sql()
        )

    @staticmethod
    def tables_sql(schema: str) -> str:
        return (
            sqlglot.select(exp.column("TABLE_NAME").as_("table_name"))
            .from_(_information_schema("TABLES"))
            .where(exp.column("TABLE_SCHEMA").eq(exp.Literal.string(schema)))
            .order_by(exp.column("TABLE_NAME"))
            .sql()
        )

    @staticmethod
    def columns_sql(schema: str, table: str) -> str:
        return (
            sqlglot.select(
                exp.column("COLUMN_NAME").as_("column_name"),
                exp.column("DATA_TYPE").as_("data_type"),
            )
            .from_(_information_schema("COLUMNS"))
            .where(
                exp.column("TABLE_SCHEMA").eq(exp.Literal.string(schema)),
                exp.column("TABLE_NAME").eq(exp.Literal.string(table)),
            )
            .order_by(exp.column("ORDINAL_POSITION"))
            .sql()
        )

    @staticmethod
    def all_columns_sql() -> str:
        return (
            sqlglot.select(
                exp.column("TABLE_SCHEMA").as_("table_schema"),
                exp.column("TABLE_NAME").as_("table_name"),
                exp.column("COLUMN_NAME").as_("column_name"),
                exp.column("DATA_TYPE").as_("data_type"),
            )
            .from_(_information_schema("COLUMNS"))
            .where(_user_schemas_only())
            .order_by(
                exp.column("TABLE_SCHEMA"),
                exp.column("TABLE_NAME"),
                exp.column("ORDINAL_POSITION"),
            )
            .sql()
        )

    # ============================================================================
    # Queries
    # ============================================================================

    def list_schemas(self) -> List[str]:
        """Return user schema names, sorted, without system schemas."""
        rows = self._driver.query(self.schemas_sql())
        return sorted(row["table_schema"] for row in rows)

    def list_tables(self, schema: str) -> List[str]:
        """Return the table and view names of ``schema``."""
        rows = self._driver.query(self.tables_sql(schema))
        return [row["table_name"] for row in rows]

    def describe_table(self, schema: str, table: str) -> List[Dict[str, str]]:
        """Return the columns of ``schema.table`` in ordinal order.

        Each entry carries the remote type name and its canonical type.
        """
        rows = self._driver.query(self.columns_sql(schema, table))
        if not rows:
            logger.warning("Table has no visible columns", extra={"schema": schema, "table": table})
        return [
            {
                "name": row["column_name"],
                "type": row["data_type"],
                "canonical_type": map_type(row["data_type"]).value,
            }
            for row in rows
        ]

    def tables_schema(self) -> Dict[str, Dict[str, List[Dict[str, str]]]]:
        """Return ``{schema: {table: [{name, type}, ...]}}`` for every user table."""
        result: Dict[str, Dict[str, List[Dict[str, str]]]] = {}
        for row in self._driver.query(self.all_columns_sql()):
            tables = result.setdefault(row["table_schema"], {})
            tables.setdefault(row["table_name"], []).append(
                {"name": row["column_name"], "type": row["data_type"]}
            )
        return result
