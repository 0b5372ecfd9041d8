"""
tests/conftest.py
-----------------
Shared fixtures: in-memory sqlite sessions with a small catalog reader, and
fake sessions that return canned catalog rows or record what they execute.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import re
import sqlite3
from typing import Any, Callable

import pytest

from core.catalogs import resolve_index_columns
from core.database import Row, Session
from core.dialect import GENERIC
from core.reader import MetaReader
from core.writer import MetaWriter
from models.datatypes import DataType
from models.schema import Column, Index, IndexType, Schema, Table

_DECLARED_TYPE = re.compile(r"\s*([A-Za-z ]+?)\s*(?:\(\s*(\d+)\s*(?:,\s*(\d+)\s*)?\))?\s*")

_SQLITE_TYPES: dict[str, Callable[[int, int], DataType]] = {
    "INT": lambda p, s: DataType.integer(),
    "INTEGER": lambda p, s: DataType.integer(),
    "BIGINT": lambda p, s: DataType.bigint(),
    "SMALLINT": lambda p, s: DataType.smallint(),
    "VARCHAR": lambda p, s: DataType.varchar(p),
    "CHAR": lambda p, s: DataType.char(p),
    "TEXT": lambda p, s: DataType.clob(),
    "BLOB": lambda p, s: DataType.blob(),
    "DATE": lambda p, s: DataType.date(),
    "TIMESTAMP": lambda p, s: DataType.timestamp(p),
    "DECIMAL": lambda p, s: DataType.decimal(p, s),
}


def _sqlite_data_type(declared: str) -> DataType:
    match = _DECLARED_TYPE.fullmatch(declared or "")
    if match is None:
        return DataType.unknown(declared)
    name = match.group(1).upper()
    factory = _SQLITE_TYPES.get(name)
    if factory is None:
        return DataType.unknown(name)
    return factory(int(match.group(2) or 0), int(match.group(3) or 0))


class SqliteCatalog:
    """Catalog over sqlite's PRAGMAs; tables are unqualified."""

    name = "sqlite"

    def read_schemas(self, session: Session) -> list[Schema]:
        return [Schema("main")]

    def read_tables(self, session: Session, schema: Schema) -> list[Table]:
        rows = session.query(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [Table(row["name"]) for row in rows]

    def read_columns(self, session: Session, table: Table) -> dict[str, Column]:
        result = {}
        for row in session.query(f"PRAGMA table_info({table.name})"):
            column = Column(table, row["name"], _sqlite_data_type(row["type"]), not_null=bool(row["notnull"]))
            result[column.name] = column
        return result

    def read_indexes(self, session: Session, table: Table) -> dict[str, Index]:
        result: dict[str, Index] = {}
        key_rows = sorted(
            (row for row in session.query(f"PRAGMA table_info({table.name})") if row["pk"]),
            key=lambda row: row["pk"],
        )
        if key_rows:
            name = f"pk_{table.name}"
            columns = resolve_index_columns(table, [row["name"] for row in key_rows], name)
            result[name] = Index(table, name, IndexType.PRIMARY_KEY, columns)
        for row in session.query(f"PRAGMA index_list({table.name})"):
            if row["origin"] == "pk":
                continue
            names = [r["name"] for r in session.query(f"PRAGMA index_info({row['name']})")]
            index_type = IndexType.UNIQUE_KEY if row["unique"] else IndexType.NORMAL
            result[row["name"]] = Index(
                table, row["name"], index_type, resolve_index_columns(table, names, row["name"])
            )
        return result


class CannedSession:
    """
    Answers ``query`` with canned rows chosen by a marker found in the SQL.

    A response may be a list of dicts or a callable taking the query params.
    """

    def __init__(self, responses: dict[str, Any]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, Any]] = []

    def query(self, sql: str, params=None) -> list[Row]:
        self.calls.append((sql, params))
        for marker, response in self.responses.items():
            if marker in sql:
                rows = response(params) if callable(response) else response
                return [Row(r) for r in rows]
        return []


class RecordingSession:
    """Target session that records statements and batches instead of running them."""

    def __init__(self) -> None:
        self.updates: list[str] = []
        self.batches: list[tuple[str, list[list]]] = []

    def execute_update(self, sql: str, params=None) -> int:
        self.updates.append(sql)
        return 0

    def execute_batch(self, sql: str, rows) -> int:
        self.batches.append((sql, [list(r) for r in rows]))
        return len(rows)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

def _sqlite_session() -> Session:
    return Session(sqlite3.connect(":memory:", isolation_level=None), name="sqlite")


@pytest.fixture
def sqlite_session():
    with _sqlite_session() as session:
        yield session


@pytest.fixture
def target_sqlite_session():
    with _sqlite_session() as session:
        yield session


@pytest.fixture
def sqlite_reader() -> MetaReader:
    return MetaReader(GENERIC, SqliteCatalog())


@pytest.fixture
def generic_writer() -> MetaWriter:
    return MetaWriter(GENERIC)


def create_users(session: Session, rows: int = 0, with_email: bool = True) -> None:
    """Create a ``users`` table (PK + one NORMAL index) holding *rows* rows."""
    email = ",\n  email VARCHAR(100)" if with_email else ""
    session.execute_update(
        f"CREATE TABLE users (\n  id INTEGER PRIMARY KEY,\n  name VARCHAR(50) NOT NULL{email}\n)"
    )
    session.execute_update("CREATE INDEX idx_users_name ON users (name)")
    if rows:
        columns = "id, name, email" if with_email else "id, name"
        placeholders = "?, ?, ?" if with_email else "?, ?"
        data = [
            (i, f"user{i}", f"user{i}@example.com") if with_email else (i, f"user{i}")
            for i in range(1, rows + 1)
        ]
        session.execute_batch(f"INSERT INTO users ({columns}) VALUES ({placeholders})", data)


@pytest.fixture
def make_users() -> Callable[..., None]:
    return create_users


@pytest.fixture
def users_table() -> Table:
    """A hand-assembled ``shop.users`` table with a primary key and a unique key."""
    table = Table("users", schema=Schema("shop"))
    table.add_column(Column(None, "id", DataType.integer(), not_null=True))
    table.add_column(Column(None, "name", DataType.varchar(50), not_null=True))
    table.add_column(Column(None, "email", DataType.varchar(100)))
    table.add_index(Index(None, "pk_users", IndexType.PRIMARY_KEY, [table.columns["id"]]))
    table.add_index(Index(None, "uk_users_email", IndexType.UNIQUE_KEY, [table.columns["email"]]))
    return table
