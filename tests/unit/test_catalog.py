"""Tests for INFORMATION_SCHEMA metadata queries."""

from unittest.mock import Mock

import pytest

from lakequery.metadata import Catalog, format_literal, quote_identifier, table_reference


class TestSqlRendering:
    """Test identifier and literal rendering."""

    def test_quote_identifier(self):
        assert quote_identifier("orders") == '"orders"'

    def test_table_reference(self):
        assert table_reference("lake", "sales", "orders") == '"lake"."sales"."orders"'

    @pytest.mark.parametrize("value,expected", [
        (None, "NULL"),
        (True, "TRUE"),
        (42, "42"),
        ("O'Brien", "'O''Brien'"),
    ])
    def test_format_literal(self, value, expected):
        assert format_literal(value) == expected

    def test_format_literal_rejects_objects(self):
        with pytest.raises(TypeError):
            format_literal(object())


class TestCatalog:
    """Test catalog queries through a mocked driver."""

    @pytest.fixture
    def driver(self):
        return Mock()

    def test_schemas_sql_excludes_system_schemas(self):
        sql = Catalog.schemas_sql()

        assert 'INFORMATION_SCHEMA."TABLES"' in sql
        assert "'INFORMATION_SCHEMA'" in sql
        assert "LIKE 'sys%'" in sql
        assert sql.startswith("SELECT DISTINCT")

    def test_tables_sql_quotes_literal(self):
        sql = Catalog.tables_sql("it's")

        assert "TABLE_SCHEMA = 'it''s'" in sql

    def test_list_schemas_sorted(self, driver):
        driver.query.return_value = [{"table_schema": "zeta"}, {"table_schema": "alpha"}]

        assert Catalog(driver).list_schemas() == ["alpha", "zeta"]
        driver.query.assert_called_once_with(Catalog.schemas_sql())

    def test_list_tables(self, driver):
        driver.query.return_value = [{"table_name": "orders"}, {"table_name": "customers"}]

        assert Catalog(driver).list_tables("lake.sales") == ["orders", "customers"]

    def test_describe_table_maps_types(self, driver):
        driver.query.return_value = [
            {"column_name": "id", "data_type": "BIGINT"},
            {"column_name": "total", "data_type": "DECIMAL"},
        ]

        columns = Catalog(driver).describe_table("lake.sales", "orders")

        assert columns == [
            {"name": "id", "type": "BIGINT", "canonical_type": "integer"},
            {"name": "total", "type": "DECIMAL", "canonical_type": "decimal"},
        ]
        sql = driver.query.call_args.args[0]
        assert "TABLE_NAME = 'orders'" in sql
        assert 'INFORMATION_SCHEMA."COLUMNS"' in sql

    def test_tables_schema_groups_columns(self, driver):
        driver.query.return_value = [
            {"table_schema": "s", "table_name": "a", "column_name": "x", "data_type": "INT"},
            {"table_schema": "s", "table_name": "a", "column_name": "y", "data_type": "VARCHAR"},
            {"table_schema": "s", "table_name": "b", "column_name": "z", "data_type": "DATE"},
        ]

        assert Catalog(driver).tables_schema() == {
            "s": {
                "a": [{"name": "x", "type": "INT"}, {"name": "y", "type": "VARCHAR"}],
                "b": [{"name": "z", "type": "DATE"}],
            }
        }
