"""
core/dialect.py
---------------
Per-dialect identifier quoting, DDL type names and capabilities.

Every reader and writer is composed with one :class:`Dialect`; there is no
subclass per product. A dialect is plain data:

    * ``quote_char``             – wraps identifiers ("" = pass through).
    * ``type_names``             – DataTypeKind → DDL type name.
    * ``supports_if_not_exists`` – CREATE SCHEMA / TABLE ... IF NOT EXISTS.
    * ``truncate_suffix``        – appended to TRUNCATE TABLE (Db2 IMMEDIATE).

Design Decisions:
    * Embedded quote characters are NOT escaped; identifiers are already
      restricted to ``[A-Za-z_]\\w*`` by the schema model.
    * Parameterised types render as ``NAME`` when precision/length is 0,
      else ``NAME(p)`` or ``NAME(p, s)``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from errors import ConfigurationError, UnsupportedTypeError
from logger import get_logger
from models.datatypes import LENGTH_KINDS, PRECISION_KINDS, DataType, DataTypeKind
from models.schema import Table

log = get_logger(__name__)

K = DataTypeKind

_BASE_TYPE_NAMES: dict[DataTypeKind, str] = {
    K.INTEGER: "INT",
    K.BIGINT: "BIGINT",
    K.SMALLINT: "SMALLINT",
    K.DATE: "DATE",
    K.TIME: "TIME",
    K.TIMESTAMP: "TIMESTAMP",
    K.CHAR: "CHAR",
    K.VARCHAR: "VARCHAR",
}

_DB2_TYPE_NAMES = {
    **_BASE_TYPE_NAMES,
    K.DOUBLE: "DOUBLE PRECISION",
    K.FLOAT: "REAL",
    K.CLOB: "CLOB",
    K.BLOB: "BLOB",
    K.DECIMAL: "DECIMAL",
}

_POSTGRESQL_TYPE_NAMES = {
    **_BASE_TYPE_NAMES,
    K.DOUBLE: "DOUBLE PRECISION",
    K.FLOAT: "REAL",
    K.CLOB: "TEXT",
    K.BLOB: "BYTEA",
    K.DECIMAL: "NUMERIC",
}

_MYSQL_TYPE_NAMES = {
    **_BASE_TYPE_NAMES,
    K.TIMESTAMP: "DATETIME",
    K.DOUBLE: "DOUBLE",
    K.FLOAT: "FLOAT",
    K.CLOB: "LONGTEXT",
    K.BLOB: "LONGBLOB",
    K.DECIMAL: "DECIMAL",
}


@dataclass(frozen=True)
class Dialect:
    name: str
    quote_char: str = ""
    type_names: Mapping[DataTypeKind, str] = field(default_factory=lambda: dict(_BASE_TYPE_NAMES))
    supports_if_not_exists: bool = False
    truncate_suffix: str = ""

    def quote(self, identifier: str) -> str:
        return f"{self.quote_char}{identifier}{self.quote_char}"

    def table_name(self, table: Table) -> str:
        """Bare name without a schema, else ``quote(schema).quote(table)``."""
        if table.schema is None:
            return table.name
        return f"{self.quote(table.schema.name)}.{self.quote(table.name)}"

    def where_sql_for_primary_key(self, table: Table) -> str:
        conditions = [f"{self.quote(c.name)} = ?" for c in table.primary_key_columns()]
        return "WHERE " + " AND ".join(conditions)

    def render_data_type(self, data_type: DataType) -> str:
        """
        Render *data_type* as this dialect's DDL type.

        Raises:
            UnsupportedTypeError: If the dialect has no name for the kind.
        """
        type_name = self.type_names.get(data_type.kind)
        if type_name is None:
            raise UnsupportedTypeError(
                f"Unsupported data type for {self.name}: {data_type}"
            )
        if data_type.kind == K.DECIMAL:
            return _with_parameters(type_name, data_type.precision, data_type.scale)
        if data_type.kind in PRECISION_KINDS:
            return _with_parameters(type_name, data_type.precision)
        if data_type.kind in LENGTH_KINDS:
            return _with_parameters(type_name, data_type.length)
        return type_name


def _with_parameters(type_name: str, precision: int, scale: int | None = None) -> str:
    if precision <= 0:
        return type_name
    if scale is not None and 0 <= scale <= precision:
        return f"{type_name}({precision}, {scale})"
    return f"{type_name}({precision})"


def sql_standard_identifier(identifier: str) -> str:
    """
    Fold an all lower-case identifier to upper case as the SQL standard does.

    A mixed-case identifier is returned unchanged; PostgreSQL folds unquoted
    names to lower case, so a mixed-case one must have been created quoted.
    """
    has_lower = any(c.islower() for c in identifier)
    has_upper = any(c.isupper() for c in identifier)
    if has_lower and not has_upper:
        return identifier.upper()
    if has_lower:
        log.warning("Identifier %r is mixed-case; leaving it unchanged", identifier)
    return identifier


GENERIC = Dialect(name="generic")
MYSQL = Dialect(
    name="mysql",
    quote_char="`",
    type_names=_MYSQL_TYPE_NAMES,
    supports_if_not_exists=True,
)
POSTGRESQL = Dialect(
    name="postgresql",
    quote_char='"',
    type_names=_POSTGRESQL_TYPE_NAMES,
    supports_if_not_exists=True,
)
DB2 = Dialect(
    name="db2",
    quote_char='"',
    type_names=_DB2_TYPE_NAMES,
    truncate_suffix=" IMMEDIATE",
)

_DIALECTS = {d.name: d for d in (GENERIC, MYSQL, POSTGRESQL, DB2)}
_ALIASES = {"postgres": "postgresql", "postgre": "postgresql", "ibm_db2": "db2"}


def get_dialect(name: str) -> Dialect:
    """
    Look up a dialect by (case-insensitive) name.

    Raises:
        ConfigurationError: If the name is not a known dialect.
    """
    key = name.lower()
    key = _ALIASES.get(key, key)
    try:
        return _DIALECTS[key]
    except KeyError:
        raise ConfigurationError(
            f"Unknown dialect {name!r}; expected one of {sorted(_DIALECTS)}"
        ) from None
