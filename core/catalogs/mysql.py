"""
core/catalogs/mysql.py
----------------------
MySQL introspection through ``information_schema``.
"""
from __future__ import annotations

from typing import Any, Mapping

from core.catalogs import (
    TypeFactory,
    as_int,
    as_text,
    lookup_data_type,
    optional_comment,
    resolve_index_columns,
    table_key,
)
from core.database import Session
from logger import get_logger
from models.datatypes import DataType
from models.schema import Column, Index, IndexType, Schema, Table

log = get_logger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "mysql", "performance_schema", "sys")

_SCHEMAS_SQL = (
    "SELECT schema_name FROM information_schema.schemata "
    "WHERE schema_name NOT IN ({}) "
    "ORDER BY schema_name"
).format(", ".join(f"'{s}'" for s in SYSTEM_SCHEMAS))

_TABLES_SQL = (
    "SELECT table_name, table_comment FROM information_schema.tables "
    "WHERE table_schema = ? AND table_type = 'BASE TABLE' ORDER BY table_name"
)

_COLUMNS_SQL = (
    "SELECT column_name, data_type, character_maximum_length, numeric_precision, "
    "numeric_scale, datetime_precision, is_nullable, column_comment "
    "FROM information_schema.columns "
    "WHERE table_schema = ? AND table_name = ? ORDER BY ordinal_position"
)

_INDEXES_SQL = (
    "SELECT s.index_name, s.non_unique, s.column_name, c.constraint_type "
    "FROM information_schema.statistics s "
    "LEFT JOIN information_schema.table_constraints c "
    "ON c.table_schema = s.table_schema AND c.table_name = s.table_name "
    "AND c.constraint_name = s.index_name "
    "WHERE s.table_schema = ? AND s.table_name = ? "
    "ORDER BY s.index_name, s.seq_in_index, c.constraint_type"
)


def _decimal(row: Mapping[str, Any]) -> DataType:
    return DataType.decimal(as_int(row["numeric_precision"]), as_int(row["numeric_scale"]))


def _varchar(row: Mapping[str, Any]) -> DataType:
    return DataType.varchar(as_int(row["character_maximum_length"]))


def _char(row: Mapping[str, Any]) -> DataType:
    return DataType.char(as_int(row["character_maximum_length"]))


def _timestamp(row: Mapping[str, Any]) -> DataType:
    return DataType.timestamp(as_int(row["datetime_precision"]))


def _time(row: Mapping[str, Any]) -> DataType:
    return DataType.time(as_int(row["datetime_precision"]))


TYPES: dict[str, TypeFactory] = {
    "int": lambda row: DataType.integer(),
    "integer": lambda row: DataType.integer(),
    "mediumint": lambda row: DataType.integer(),
    "bigint": lambda row: DataType.bigint(),
    "smallint": lambda row: DataType.smallint(),
    "tinyint": lambda row: DataType.smallint(),
    "double": lambda row: DataType.double(),
    "float": lambda row: DataType.float(),
    "decimal": _decimal,
    "numeric": _decimal,
    "varchar": _varchar,
    "char": _char,
    "datetime": _timestamp,
    "timestamp": _timestamp,
    "date": lambda row: DataType.date(),
    "time": _time,
    "text": lambda row: DataType.clob(),
    "tinytext": lambda row: DataType.clob(),
    "mediumtext": lambda row: DataType.clob(),
    "longtext": lambda row: DataType.clob(),
    "blob": lambda row: DataType.blob(),
    "tinyblob": lambda row: DataType.blob(),
    "mediumblob": lambda row: DataType.blob(),
    "longblob": lambda row: DataType.blob(),
}


class MySqlCatalog:
    name = "mysql"

    def read_schemas(self, session: Session) -> list[Schema]:
        return [Schema(as_text(row["schema_name"])) for row in session.query(_SCHEMAS_SQL)]

    def read_tables(self, session: Session, schema: Schema) -> list[Table]:
        return [
            Table(
                as_text(row["table_name"]),
                schema=schema,
                comment=optional_comment(row["table_comment"]),
            )
            for row in session.query(_TABLES_SQL, (schema.name,))
        ]

    def read_columns(self, session: Session, table: Table) -> dict[str, Column]:
        result: dict[str, Column] = {}
        for row in session.query(_COLUMNS_SQL, table_key(table)):
            type_name = as_text(row["data_type"]).lower()
            column = Column(
                table,
                as_text(row["column_name"]),
                lookup_data_type(TYPES, type_name, row, self.name),
                not_null=as_text(row["is_nullable"]) == "NO",
                comment=optional_comment(row["column_comment"]),
            )
            result[column.name] = column
        return result

    def read_indexes(self, session: Session, table: Table) -> dict[str, Index]:
        # one row per (index, column); group consecutive rows by index name
        grouped: dict[str, tuple[IndexType, list[str]]] = {}
        for row in session.query(_INDEXES_SQL, table_key(table)):
            index_name = as_text(row["index_name"])
            if index_name not in grouped:
                index_type = _index_type(
                    as_text(row["constraint_type"]), as_int(row["non_unique"]) == 0
                )
                log.debug("%s index %s.%s", index_type.value, table.name, index_name)
                grouped[index_name] = (index_type, [])
            grouped[index_name][1].append(as_text(row["column_name"]))

        return {
            name: Index(table, name, index_type, resolve_index_columns(table, columns, name))
            for name, (index_type, columns) in grouped.items()
        }


def _index_type(constraint_type: str | None, unique: bool) -> IndexType:
    if constraint_type == "PRIMARY KEY":
        return IndexType.PRIMARY_KEY
    if unique:
        return IndexType.UNIQUE_KEY
    return IndexType.NORMAL
