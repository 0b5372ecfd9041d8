"""
core/writer.py
--------------
Renders the schema model into DDL / DML text and executes DDL.

``MetaWriter`` is composed with one :class:`~core.dialect.Dialect`; pick one by
name with :func:`get_writer`. Every ``*_sql_for`` / ``create_statement*``
method is a pure string builder; ``create_schema`` / ``create_table`` /
``create_column`` / ``create_index`` execute through a
:class:`~core.database.Session` and return what they ran.

Design Decisions:
    * Column lists in CREATE / INSERT / UPDATE are unquoted; the table name
      and the primary-key predicate are quoted per dialect.
    * PRIMARY KEY and UNIQUE constraints are written inline in CREATE TABLE;
      NORMAL indexes follow as separate CREATE INDEX statements, in index-map
      order.
    * A missing primary key on an existing table is not added automatically;
      ``create_index`` only logs it.
"""
from __future__ import annotations

from functools import singledispatchmethod

from core.database import Session
from core.dialect import Dialect, get_dialect
from errors import ConfigurationError
from logger import get_logger
from models.datatypes import DataType
from models.schema import Column, Index, IndexType, Schema, Table

log = get_logger(__name__)


def _column_list(columns) -> str:
    return ", ".join(column.name for column in columns)


def _constraint(index: Index) -> str:
    # MySQL names every primary key PRIMARY, a reserved word elsewhere
    if index.name.upper() == "PRIMARY":
        return ""
    return f"CONSTRAINT {index.name} "


class MetaWriter:
    """
    Example::

        writer = get_writer("postgresql")
        for sql in writer.create_statements_for(table):
            print(sql + ";")
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect

    def quote(self, identifier: str) -> str:
        return self.dialect.quote(identifier)

    def table_name(self, table: Table) -> str:
        return self.dialect.table_name(table)

    def _if_not_exists(self) -> str:
        return "IF NOT EXISTS " if self.dialect.supports_if_not_exists else ""

    # ------------------------------------------------------------------
    # DDL text
    # ------------------------------------------------------------------

    def data_type_to_string(self, data_type: DataType) -> str:
        return self.dialect.render_data_type(data_type)

    def column_in_create_table(self, column: Column) -> str:
        not_null = " NOT NULL" if column.not_null else ""
        return f"{column.name} {self.data_type_to_string(column.data_type)}{not_null}"

    def create_statements_for(self, table: Table) -> list[str]:
        """
        CREATE TABLE with inline key constraints, then one CREATE INDEX per
        NORMAL index.
        """
        parts = [self.column_in_create_table(column) for column in table.columns.values()]
        normal_indexes = []
        for index in table.indexes.values():
            if index.index_type == IndexType.PRIMARY_KEY:
                parts.append(f"{_constraint(index)}PRIMARY KEY ({_column_list(index.columns)})")
            elif index.index_type == IndexType.UNIQUE_KEY:
                parts.append(f"{_constraint(index)}UNIQUE ({_column_list(index.columns)})")
            else:
                normal_indexes.append(index)

        body = ",\n  ".join(parts)
        statements = [f"CREATE TABLE {self._if_not_exists()}{self.table_name(table)} (\n  {body}\n)"]
        statements.extend(self.create_statement_for(index) for index in normal_indexes)
        return statements

    @singledispatchmethod
    def create_statement_for(self, entity) -> str:
        raise TypeError(f"No CREATE statement for {type(entity).__name__}")

    @create_statement_for.register(Index)
    def _(self, index: Index) -> str:
        table_name = self.table_name(index.table)
        columns = _column_list(index.columns)
        if index.index_type == IndexType.PRIMARY_KEY:
            return f"ALTER TABLE {table_name} ADD {_constraint(index)}PRIMARY KEY ({columns})"
        unique = "UNIQUE " if index.index_type == IndexType.UNIQUE_KEY else ""
        return f"CREATE {unique}INDEX {index.name} ON {table_name} ({columns})"

    @create_statement_for.register(Schema)
    def _(self, schema: Schema) -> str:
        return f"CREATE SCHEMA {self._if_not_exists()}{schema.name}"

    @create_statement_for.register(Column)
    def _(self, column: Column) -> str:
        return f"ALTER TABLE {self.table_name(column.table)} ADD COLUMN {self.column_in_create_table(column)}"

    # ------------------------------------------------------------------
    # DML text
    # ------------------------------------------------------------------

    def insert_sql_for(self, table: Table) -> str:
        names = list(table.columns)
        placeholders = ", ".join("?" for _ in names)
        return f"INSERT INTO {self.table_name(table)} ({', '.join(names)})\nVALUES ({placeholders})"

    def update_by_primary_key_sql_for(self, table: Table) -> str:
        """
        Raises:
            ConfigurationError: If every column is a key column.
        """
        key_names = {column.name for column in table.primary_key_columns()}
        assignments = [f"{name} = ?" for name in table.columns if name not in key_names]
        if not assignments:
            raise ConfigurationError(
                f"Table {table.name} has no non-key column to update"
            )
        return (
            f"UPDATE {self.table_name(table)} SET {', '.join(assignments)}\n"
            f"{self.dialect.where_sql_for_primary_key(table)}"
        )

    def delete_by_primary_key_sql_for(self, table: Table) -> str:
        return f"DELETE FROM {self.table_name(table)} {self.dialect.where_sql_for_primary_key(table)}"

    def delete_all_sql_for(self, table: Table) -> str:
        return f"DELETE FROM {self.table_name(table)} WHERE 1 = 1"

    def truncate_table_sql_for(self, table: Table) -> str:
        return f"TRUNCATE TABLE {self.table_name(table)}{self.dialect.truncate_suffix}"

    # ------------------------------------------------------------------
    # Executing operations
    # ------------------------------------------------------------------

    def create_schema(self, session: Session, schema: Schema) -> str:
        sql = self.create_statement_for(schema)
        session.execute_update(sql)
        log.info("Created schema %s", schema.name)
        return sql

    def create_table(self, session: Session, table: Table) -> list[str]:
        table_name = self.table_name(table)
        log.info("Creating table %s", table_name)
        statements = self.create_statements_for(table)
        for sql in statements:
            session.execute_update(sql)
        log.info("Created table %s", table_name)
        return statements

    def create_column(self, session: Session, column: Column) -> str:
        sql = self.create_statement_for(column)
        session.execute_update(sql)
        log.info("Created column %s.%s", self.table_name(column.table), column.name)
        return sql

    def create_index(self, session: Session, index: Index) -> str | None:
        if index.index_type == IndexType.PRIMARY_KEY:
            log.info(
                "Skipping primary key %s on %s: adding a primary key to an existing table is not supported",
                index.name, self.table_name(index.table),
            )
            return None
        sql = self.create_statement_for(index)
        session.execute_update(sql)
        log.info("Created index %s.%s", self.table_name(index.table), index.name)
        return sql


def get_writer(name: str) -> MetaWriter:
    """
    Build the writer for a dialect name (``generic``, ``mysql``, ``postgresql``, ``db2``).

    Raises:
        ConfigurationError: If the dialect name is unknown.
    """
    return MetaWriter(get_dialect(name))
