"""
core/catalogs/postgresql.py
---------------------------
PostgreSQL introspection through ``information_schema`` and ``pg_indexes``.

Index kinds come from two places: a ``PRIMARY KEY`` table constraint marks the
primary key, otherwise the ``indexdef`` text decides between a unique and a
normal index. ``indexdef`` is parsed with a fixed grammar::

    CREATE [UNIQUE ]INDEX name ON schema.table USING method (col[, col...])

Expression indexes, partial indexes and quoted column names do not match it
and are reported as :class:`~errors.CatalogError`.
"""
from __future__ import annotations

import re
from typing import Any, Mapping

from core.catalogs import (
    TypeFactory,
    as_int,
    as_text,
    lookup_data_type,
    resolve_index_columns,
    table_key,
)
from core.database import Session
from errors import CatalogError
from logger import get_logger
from models.datatypes import DataType
from models.schema import Column, Index, IndexType, Schema, Table

log = get_logger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")

INDEX_DEFINITION_PATTERN = re.compile(
    r'^CREATE (UNIQUE )?INDEX ("?)(\w+)\2 '
    r"ON (\w+)\.(\w+) "
    r"USING (\w+) \((\w+(?:, \w+)*)\)"
)

_SCHEMAS_SQL = (
    "SELECT schema_name FROM information_schema.schemata "
    "WHERE schema_name NOT IN ({}) "
    "ORDER BY schema_name"
).format(", ".join(f"'{s}'" for s in SYSTEM_SCHEMAS))

_TABLES_SQL = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = ? AND table_type = 'BASE TABLE' ORDER BY table_name"
)

_COLUMNS_SQL = (
    "SELECT column_name, data_type, character_maximum_length, numeric_precision, "
    "numeric_scale, datetime_precision, is_nullable "
    "FROM information_schema.columns "
    "WHERE table_schema = ? AND table_name = ? ORDER BY ordinal_position"
)

_INDEXES_SQL = (
    "SELECT p.indexname, p.indexdef, c.constraint_type "
    "FROM pg_indexes p "
    "LEFT JOIN information_schema.table_constraints c "
    "ON c.table_schema = p.schemaname AND c.table_name = p.tablename "
    "AND c.constraint_name = p.indexname "
    "WHERE p.schemaname = ? AND p.tablename = ? "
    "GROUP BY p.indexname, p.indexdef, c.constraint_type ORDER BY p.indexname"
)


def _decimal(row: Mapping[str, Any]) -> DataType:
    return DataType.decimal(as_int(row["numeric_precision"]), as_int(row["numeric_scale"]))


TYPES: dict[str, TypeFactory] = {
    "integer": lambda row: DataType.integer(),
    "bigint": lambda row: DataType.bigint(),
    "smallint": lambda row: DataType.smallint(),
    "double precision": lambda row: DataType.double(),
    "real": lambda row: DataType.float(),
    "numeric": _decimal,
    "character varying": lambda row: DataType.varchar(as_int(row["character_maximum_length"])),
    "character": lambda row: DataType.char(as_int(row["character_maximum_length"])),
    "timestamp without time zone": lambda row: DataType.timestamp(as_int(row["datetime_precision"])),
    "date": lambda row: DataType.date(),
    "time without time zone": lambda row: DataType.time(as_int(row["datetime_precision"])),
    "text": lambda row: DataType.clob(),
    "bytea": lambda row: DataType.blob(),
}


class PostgreSqlCatalog:
    name = "postgresql"

    def read_schemas(self, session: Session) -> list[Schema]:
        return [Schema(row["schema_name"]) for row in session.query(_SCHEMAS_SQL)]

    def read_tables(self, session: Session, schema: Schema) -> list[Table]:
        return [
            Table(row["table_name"], schema=schema)
            for row in session.query(_TABLES_SQL, (schema.name,))
        ]

    def read_columns(self, session: Session, table: Table) -> dict[str, Column]:
        result: dict[str, Column] = {}
        for row in session.query(_COLUMNS_SQL, table_key(table)):
            column = Column(
                table,
                row["column_name"],
                lookup_data_type(TYPES, as_text(row["data_type"]), row, self.name),
                not_null=row["is_nullable"] == "NO",
            )
            result[column.name] = column
        return result

    def read_indexes(self, session: Session, table: Table) -> dict[str, Index]:
        result: dict[str, Index] = {}
        for row in session.query(_INDEXES_SQL, table_key(table)):
            index = self._parse_index(table, row["indexname"], row["indexdef"], row["constraint_type"])
            result[index.name] = index
        return result

    def _parse_index(
        self,
        table: Table,
        index_name: str,
        definition: str,
        constraint_type: str | None,
    ) -> Index:
        match = INDEX_DEFINITION_PATTERN.match(definition)
        if match is None:
            raise CatalogError(f"Invalid index definition: {definition}")
        if match.group(2) == '"':
            log.debug("Quoted index name: %s", match.group(3))

        if constraint_type == "PRIMARY KEY":
            index_type = IndexType.PRIMARY_KEY
        elif match.group(1):
            index_type = IndexType.UNIQUE_KEY
        else:
            index_type = IndexType.NORMAL
        log.debug(
            "%s index %s.%s, constraint type: %s",
            index_type.value, table.schema.name, index_name, constraint_type,
        )
        columns = resolve_index_columns(table, match.group(7).split(", "), index_name)
        return Index(table, index_name, index_type, columns)
