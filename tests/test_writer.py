"""
tests/test_writer.py
--------------------
Unit tests for core/writer.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from core.dialect import GENERIC
from core.writer import MetaWriter, get_writer
from errors import ConfigurationError, UnsupportedTypeError
from models.datatypes import DataType
from models.schema import Column, Index, IndexType, Schema, Table


@pytest.fixture
def pg() -> MetaWriter:
    return get_writer("postgresql")


@pytest.fixture
def orders_table() -> Table:
    """Unqualified table with a composite key, a normal index and no unique key."""
    table = Table("orders")
    table.add_column(Column(None, "order_id", DataType.bigint(), not_null=True))
    table.add_column(Column(None, "line_no", DataType.smallint(), not_null=True))
    table.add_column(Column(None, "amount", DataType.decimal(10, 2)))
    table.add_column(Column(None, "placed_at", DataType.timestamp()))
    columns = table.columns
    table.add_index(
        Index(None, "pk_orders", IndexType.PRIMARY_KEY, [columns["order_id"], columns["line_no"]])
    )
    table.add_index(Index(None, "idx_orders_placed", IndexType.NORMAL, [columns["placed_at"]]))
    return table


class TestCreateTable:
    def test_generic_create_statements(self, orders_table: Table) -> None:
        statements = MetaWriter(GENERIC).create_statements_for(
            _without(orders_table, "amount")
        )
        assert statements == [
            "CREATE TABLE orders (\n"
            "  order_id BIGINT NOT NULL,\n"
            "  line_no SMALLINT NOT NULL,\n"
            "  placed_at TIMESTAMP,\n"
            "  CONSTRAINT pk_orders PRIMARY KEY (order_id, line_no)\n"
            ")",
            "CREATE INDEX idx_orders_placed ON orders (placed_at)",
        ]

    def test_postgresql_qualified_with_if_not_exists(self, pg: MetaWriter, users_table: Table) -> None:
        statements = pg.create_statements_for(users_table)
        assert statements == [
            'CREATE TABLE IF NOT EXISTS "shop"."users" (\n'
            "  id INT NOT NULL,\n"
            "  name VARCHAR(50) NOT NULL,\n"
            "  email VARCHAR(100),\n"
            "  CONSTRAINT pk_users PRIMARY KEY (id),\n"
            "  CONSTRAINT uk_users_email UNIQUE (email)\n"
            ")"
        ]

    def test_db2_has_no_if_not_exists(self, users_table: Table) -> None:
        create = get_writer("db2").create_statements_for(users_table)[0]
        assert create.startswith('CREATE TABLE "shop"."users" (\n')

    def test_mysql_primary_index_is_unnamed(self) -> None:
        table = Table("t", schema=Schema("s"))
        id_column = table.add_column(Column(None, "id", DataType.integer(), not_null=True))
        table.add_index(Index(None, "PRIMARY", IndexType.PRIMARY_KEY, [id_column]))
        create = get_writer("mysql").create_statements_for(table)[0]
        assert "  PRIMARY KEY (id)\n" in create
        assert "CONSTRAINT" not in create

    def test_unsupported_type_propagates(self) -> None:
        table = Table("t")
        table.add_column(Column(None, "doc", DataType.unknown("jsonb")))
        with pytest.raises(UnsupportedTypeError):
            get_writer("postgresql").create_statements_for(table)


class TestCreateStatementFor:
    def test_schema(self, pg: MetaWriter) -> None:
        assert pg.create_statement_for(Schema("shop")) == "CREATE SCHEMA IF NOT EXISTS shop"
        assert get_writer("db2").create_statement_for(Schema("shop")) == "CREATE SCHEMA shop"

    def test_column(self, pg: MetaWriter, users_table: Table) -> None:
        assert pg.create_statement_for(users_table.columns["email"]) == (
            'ALTER TABLE "shop"."users" ADD COLUMN email VARCHAR(100)'
        )
        assert pg.create_statement_for(users_table.columns["name"]).endswith("name VARCHAR(50) NOT NULL")

    def test_unique_index(self, pg: MetaWriter, users_table: Table) -> None:
        assert pg.create_statement_for(users_table.indexes["uk_users_email"]) == (
            'CREATE UNIQUE INDEX uk_users_email ON "shop"."users" (email)'
        )

    def test_primary_key_becomes_alter_table(self, pg: MetaWriter, users_table: Table) -> None:
        assert pg.create_statement_for(users_table.indexes["pk_users"]) == (
            'ALTER TABLE "shop"."users" ADD CONSTRAINT pk_users PRIMARY KEY (id)'
        )

    def test_unsupported_entity(self, pg: MetaWriter) -> None:
        with pytest.raises(TypeError):
            pg.create_statement_for("users")


class TestDml:
    def test_insert(self, pg: MetaWriter, users_table: Table) -> None:
        assert pg.insert_sql_for(users_table) == (
            'INSERT INTO "shop"."users" (id, name, email)\nVALUES (?, ?, ?)'
        )

    def test_update_by_primary_key(self, pg: MetaWriter, users_table: Table) -> None:
        assert pg.update_by_primary_key_sql_for(users_table) == (
            'UPDATE "shop"."users" SET name = ?, email = ?\nWHERE "id" = ?'
        )

    def test_update_with_only_key_columns(self, pg: MetaWriter) -> None:
        table = Table("tags")
        table.add_column(Column(None, "tag", DataType.varchar(20)))
        with pytest.raises(ConfigurationError):
            pg.update_by_primary_key_sql_for(table)

    def test_delete_by_primary_key(self, orders_table: Table) -> None:
        assert get_writer("mysql").delete_by_primary_key_sql_for(orders_table) == (
            "DELETE FROM orders WHERE `order_id` = ? AND `line_no` = ?"
        )

    def test_delete_all(self, pg: MetaWriter, users_table: Table) -> None:
        assert pg.delete_all_sql_for(users_table) == 'DELETE FROM "shop"."users" WHERE 1 = 1'

    def test_truncate(self, pg: MetaWriter, users_table: Table) -> None:
        assert pg.truncate_table_sql_for(users_table) == 'TRUNCATE TABLE "shop"."users"'
        assert get_writer("db2").truncate_table_sql_for(users_table) == (
            'TRUNCATE TABLE "shop"."users" IMMEDIATE'
        )


class TestExecutingOperations:
    def test_create_table_runs_every_statement(self, orders_table: Table) -> None:
        session = MagicMock()
        writer = get_writer("postgresql")
        executed = writer.create_table(session, orders_table)
        assert executed == writer.create_statements_for(orders_table)
        assert [c.args[0] for c in session.execute_update.call_args_list] == executed

    def test_create_index_skips_primary_key(self, users_table: Table, caplog) -> None:
        session = MagicMock()
        with caplog.at_level("INFO", logger="schema_migrator"):
            result = get_writer("postgresql").create_index(session, users_table.indexes["pk_users"])
        assert result is None
        session.execute_update.assert_not_called()
        assert "pk_users" in caplog.text

    def test_create_index_and_column_return_sql(self, users_table: Table) -> None:
        session = MagicMock()
        writer = get_writer("mysql")
        sql = writer.create_index(session, users_table.indexes["uk_users_email"])
        assert sql == "CREATE UNIQUE INDEX uk_users_email ON `shop`.`users` (email)"
        column_sql = writer.create_column(session, users_table.columns["email"])
        assert column_sql == "ALTER TABLE `shop`.`users` ADD COLUMN email VARCHAR(100)"
        assert session.execute_update.call_count == 2

    def test_create_schema(self) -> None:
        session = MagicMock()
        assert get_writer("mysql").create_schema(session, Schema("shop")) == (
            "CREATE SCHEMA IF NOT EXISTS shop"
        )
        session.execute_update.assert_called_once_with("CREATE SCHEMA IF NOT EXISTS shop")


def _without(table: Table, column_name: str) -> Table:
    """Copy of *table* without one column (indexes on it are not expected)."""
    copy = Table(table.name, schema=table.schema)
    copy.columns = {n: c for n, c in table.columns.items() if n != column_name}
    copy.indexes = table.indexes
    return copy
