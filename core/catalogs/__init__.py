"""
core/catalogs
-------------
Per-dialect catalog introspection.

A catalog knows which system views to query and how to decode their rows into
the schema model. It does not know about quoting or DDL; that is the
dialect's job (``core/dialect.py``). ``core/reader.py`` composes the two.

Each module exposes one class satisfying :class:`Catalog`:

    * ``mysql.MySqlCatalog``           – information_schema
    * ``postgresql.PostgreSqlCatalog`` – information_schema + pg_indexes
    * ``db2.Db2Catalog``               – SYSCAT views
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping, Protocol

from core.database import Session
from errors import CatalogError, ConfigurationError
from logger import get_logger
from models.datatypes import DataType
from models.schema import Column, Index, Schema, Table

log = get_logger(__name__)

TypeFactory = Callable[[Mapping[str, Any]], DataType]


class Catalog(Protocol):
    name: str

    def read_schemas(self, session: Session) -> list[Schema]: ...

    def read_tables(self, session: Session, schema: Schema) -> list[Table]: ...

    def read_columns(self, session: Session, table: Table) -> dict[str, Column]: ...

    def read_indexes(self, session: Session, table: Table) -> dict[str, Index]: ...


def as_text(value: Any) -> str | None:
    """Catalog strings may arrive as ``bytes`` / ``bytearray`` from some drivers."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def as_int(value: Any) -> int:
    """Catalog numbers are NULL for kinds they do not apply to; read those as 0."""
    if value is None:
        return 0
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("ascii")
    return int(value)


def optional_comment(value: Any) -> str | None:
    text = as_text(value)
    return text or None


def lookup_data_type(
    types: Mapping[str, TypeFactory],
    type_name: str,
    row: Mapping[str, Any],
    catalog_name: str,
) -> DataType:
    """Map a catalog type name to a DataType; unrecognised names become UNKNOWN."""
    factory = types.get(type_name)
    if factory is None:
        log.debug("Unknown %s type: %s", catalog_name, type_name)
        return DataType.unknown(type_name)
    return factory(row)


def resolve_index_columns(table: Table, column_names: Iterable[str], index_name: str) -> list[Column]:
    """
    Resolve index column names to the table's already-read Column objects.

    Raises:
        CatalogError: If a name is not a column of the table.
    """
    resolved = []
    for name in column_names:
        column = table.columns.get(name)
        if column is None:
            raise CatalogError(
                f"Index {index_name} on table {table.name} references unknown column {name!r}"
            )
        resolved.append(column)
    return resolved


def table_key(table: Table) -> tuple[str, str]:
    """
    ``(schema, table)`` parameters for a catalog query.

    Raises:
        ConfigurationError: If the table has no schema to look it up in.
    """
    if table.schema is None:
        raise ConfigurationError(f"Table {table.name} has no schema; catalogs look tables up by schema")
    return table.schema.name, table.name
