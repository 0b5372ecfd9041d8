"""
models/schema.py
----------------
In-memory model of an introspected (or hand-assembled) database schema.

    Schema ──< Table ──< Column
                  └───< Index ──> Column

Back references (``Table.schema``, ``Column.table``, ``Index.table``) are plain
attributes, not ownership. Entities validate their invariants both on
construction and on every later assignment, so a model that exists is a model
that can be rendered.

Design Decisions:
    * Identifier names must match ``[A-Za-z_]\\w*``; anything else is a
      :class:`~errors.ConfigurationError`.
    * ``Table.columns`` preserves insertion order (= catalog ordinal position)
      and is the order used for SELECT / INSERT column lists.
    * Equality follows the natural key: Schema by name, Table by
      (schema, name), Column and Index by (table, name).
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Mapping

from errors import ConfigurationError
from models.datatypes import DataType

IDENTIFIER_PATTERN = re.compile(r"[A-Za-z_]\w*")


def validate_identifier(name: Any, what: str) -> str:
    """Return *name* unchanged, or raise ConfigurationError if it is not an identifier."""
    if not isinstance(name, str) or not IDENTIFIER_PATTERN.fullmatch(name):
        raise ConfigurationError(f"Invalid {what} name: {name!r}")
    return name


class IndexType(str, Enum):
    PRIMARY_KEY = "primary_key"
    UNIQUE_KEY = "unique_key"
    NORMAL = "normal"


class Schema:
    """A named namespace of tables."""

    def __init__(self, name: str, comment: str | None = None) -> None:
        self.name = name
        self.comment = comment
        self.tables: list[Table] = []

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = validate_identifier(value, "schema")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Schema):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Schema(name={self.name!r})"


class Table:
    """
    A table with its ordered columns and its indexes.

    Assign complete maps through the ``columns`` / ``indexes`` properties, or
    build incrementally with :meth:`add_column` / :meth:`add_index`; both paths
    enforce the same invariants.
    """

    def __init__(self, name: str, schema: Schema | None = None, comment: str | None = None) -> None:
        self.name = name
        self.schema = schema
        self.comment = comment
        self._columns: dict[str, Column] = {}
        self._indexes: dict[str, Index] = {}

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = validate_identifier(value, "table")

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    @property
    def columns(self) -> dict[str, Column]:
        return self._columns

    @columns.setter
    def columns(self, value: Mapping[str, Column]) -> None:
        if value is None:
            raise ConfigurationError("columns must not be None")
        if not value:
            raise ConfigurationError(f"Table {self.name} must have at least one column")
        for key, column in value.items():
            if column is None:
                raise ConfigurationError(f"Column {key!r} of table {self.name} is None")
            if key != column.name:
                raise ConfigurationError(
                    f"Column map key {key!r} does not match column name {column.name!r}"
                )
        self._columns = dict(value)

    def add_column(self, column: Column) -> Column:
        if column.name in self._columns:
            raise ConfigurationError(f"Duplicate column {column.name} in table {self.name}")
        column.table = self
        self._columns[column.name] = column
        return column

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    @property
    def indexes(self) -> dict[str, Index]:
        return self._indexes

    @indexes.setter
    def indexes(self, value: Mapping[str, Index]) -> None:
        if value is None:
            raise ConfigurationError("indexes must not be None")
        primary_keys = 0
        for key, index in value.items():
            if index is None:
                raise ConfigurationError(f"Index {key!r} of table {self.name} is None")
            if key != index.name:
                raise ConfigurationError(
                    f"Index map key {key!r} does not match index name {index.name!r}"
                )
            if index.index_type == IndexType.PRIMARY_KEY:
                primary_keys += 1
                if primary_keys > 1:
                    raise ConfigurationError(
                        f"Table {self.name} must have at most one primary key"
                    )
        self._indexes = dict(value)

    def add_index(self, index: Index) -> Index:
        if index.name in self._indexes:
            raise ConfigurationError(f"Duplicate index {index.name} on table {self.name}")
        merged = {**self._indexes, index.name: index}
        self.indexes = merged
        index.table = self
        return index

    @property
    def primary_key(self) -> Index | None:
        for index in self._indexes.values():
            if index.index_type == IndexType.PRIMARY_KEY:
                return index
        return None

    def primary_key_columns(self) -> list[Column]:
        """
        Columns of the PRIMARY_KEY index, or every column when the table has
        no known primary key (used to build WHERE clauses).
        """
        pk = self.primary_key
        if pk is not None:
            return list(pk.columns)
        return list(self._columns.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self.schema == other.schema and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.schema, self.name))

    def __repr__(self) -> str:
        return f"Table(schema={self.schema!r}, name={self.name!r})"


class Column:
    """One column of a table."""

    def __init__(
        self,
        table: Table | None,
        name: str,
        data_type: DataType,
        not_null: bool = False,
        comment: str | None = None,
    ) -> None:
        self.table = table
        self.name = name
        self.data_type = data_type
        self.not_null = not_null
        self.comment = comment

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = validate_identifier(value, "column")

    def extract(self, row: Mapping[str, Any]) -> Any:
        """Read this column's value out of a fetched row."""
        return self.data_type.extract(row, self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Column):
            return NotImplemented
        return self.table == other.table and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.table, self.name))

    def __repr__(self) -> str:
        return (
            f"Column(table={self.table!r}, name={self.name!r}, "
            f"data_type={self.data_type}, not_null={self.not_null})"
        )


class Index:
    """A primary key, unique key or plain index over ordered columns."""

    def __init__(
        self,
        table: Table | None,
        name: str,
        index_type: IndexType,
        columns: list[Column],
    ) -> None:
        self.table = table
        self.name = name
        self.index_type = IndexType(index_type)
        self.columns = list(columns)

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = validate_identifier(value, "index")

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Index):
            return NotImplemented
        return self.table == other.table and self.name == other.name

    def __hash__(self) -> int:
        return hash((self.table, self.name))

    def __repr__(self) -> str:
        return (
            f"Index(table={self.table!r}, name={self.name!r}, "
            f"index_type={self.index_type.value}, columns={self.column_names})"
        )
