"""
core/catalogs/db2.py
--------------------
IBM Db2 introspection through the ``SYSCAT`` views.

``SYSCAT.INDEXES.COLNAMES`` lists key columns each prefixed by its sort
direction, e.g. ``+ID-CREATED_AT``; ``UNIQUERULE`` is ``P`` (primary key),
``U`` (unique) or ``D`` (duplicates allowed).
"""
from __future__ import annotations

import re
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
from errors import CatalogError
from logger import get_logger
from models.datatypes import DataType
from models.schema import Column, Index, IndexType, Schema, Table

log = get_logger(__name__)

_COLNAMES_PATTERN = re.compile(r"(?:[+-]\w+)+")
_COLNAME_PATTERN = re.compile(r"[+-](\w+)")

_SCHEMAS_SQL = (
    "SELECT SCHEMANAME, REMARKS FROM SYSCAT.SCHEMATA "
    "WHERE DEFINER <> 'SYSIBM' ORDER BY SCHEMANAME"
)

_TABLES_SQL = (
    "SELECT TABNAME, REMARKS FROM SYSCAT.TABLES "
    "WHERE TABSCHEMA = ? AND \"TYPE\" = 'T' ORDER BY TABNAME"
)

_COLUMNS_SQL = (
    "SELECT COLNAME, TYPENAME, \"LENGTH\", SCALE, \"NULLS\", REMARKS "
    "FROM SYSCAT.COLUMNS WHERE TABSCHEMA = ? AND TABNAME = ? ORDER BY COLNO"
)

_INDEXES_SQL = (
    "SELECT INDNAME, COLNAMES, UNIQUERULE "
    "FROM SYSCAT.INDEXES WHERE TABSCHEMA = ? AND TABNAME = ? ORDER BY INDNAME"
)

_INDEX_TYPES = {
    "P": IndexType.PRIMARY_KEY,
    "U": IndexType.UNIQUE_KEY,
}


def _scaled(factory):
    return lambda row: factory(as_int(row["SCALE"]))


def _sized(factory):
    return lambda row: factory(as_int(row["LENGTH"]))


TYPES: dict[str, TypeFactory] = {
    "INTEGER": lambda row: DataType.integer(),
    "BIGINT": lambda row: DataType.bigint(),
    "SMALLINT": lambda row: DataType.smallint(),
    "DOUBLE": lambda row: DataType.double(),
    "REAL": lambda row: DataType.float(),
    "DECIMAL": lambda row: DataType.decimal(as_int(row["LENGTH"]), as_int(row["SCALE"])),
    "VARCHAR": _sized(DataType.varchar),
    "LONG VARCHAR": _sized(DataType.varchar),
    "CHARACTER": _sized(DataType.char),
    "TIMESTAMP": _scaled(DataType.timestamp),
    "TIME": _scaled(DataType.time),
    "DATE": lambda row: DataType.date(),
    "CLOB": lambda row: DataType.clob(),
    "BLOB": lambda row: DataType.blob(),
}


def parse_column_names(column_names: str) -> list[str]:
    """
    Split a ``COLNAMES`` value such as ``+ID-NAME`` into ``["ID", "NAME"]``.

    Raises:
        CatalogError: If the value is not a sequence of signed column names.
    """
    if not column_names or not _COLNAMES_PATTERN.fullmatch(column_names):
        raise CatalogError(f"Invalid COLNAMES: {column_names!r}")
    return _COLNAME_PATTERN.findall(column_names)


class Db2Catalog:
    name = "db2"

    def read_schemas(self, session: Session) -> list[Schema]:
        return [
            Schema(as_text(row["SCHEMANAME"]).strip(), comment=optional_comment(row["REMARKS"]))
            for row in session.query(_SCHEMAS_SQL)
        ]

    def read_tables(self, session: Session, schema: Schema) -> list[Table]:
        return [
            Table(
                as_text(row["TABNAME"]).strip(),
                schema=schema,
                comment=optional_comment(row["REMARKS"]),
            )
            for row in session.query(_TABLES_SQL, (schema.name,))
        ]

    def read_columns(self, session: Session, table: Table) -> dict[str, Column]:
        result: dict[str, Column] = {}
        for row in session.query(_COLUMNS_SQL, table_key(table)):
            type_name = as_text(row["TYPENAME"]).strip()
            column = Column(
                table,
                as_text(row["COLNAME"]),
                lookup_data_type(TYPES, type_name, row, self.name),
                not_null=as_text(row["NULLS"]) == "N",
                comment=optional_comment(row["REMARKS"]),
            )
            result[column.name] = column
        return result

    def read_indexes(self, session: Session, table: Table) -> dict[str, Index]:
        result: dict[str, Index] = {}
        for row in session.query(_INDEXES_SQL, table_key(table)):
            index_name = as_text(row["INDNAME"])
            try:
                names = parse_column_names(as_text(row["COLNAMES"]))
            except CatalogError as exc:
                raise CatalogError(f"{exc} on index {index_name} of table {table.name}") from exc
            index_type = _INDEX_TYPES.get(as_text(row["UNIQUERULE"]), IndexType.NORMAL)
            result[index_name] = Index(
                table, index_name, index_type, resolve_index_columns(table, names, index_name)
            )
        return result
