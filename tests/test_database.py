"""
tests/test_database.py
----------------------
Unit tests for core/database.py, run against in-memory sqlite sessions and
mocked drivers.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import sqlite3
from unittest.mock import MagicMock, patch

import pytest

from config import DatabaseConfig
from core import database
from core.database import Row, Session, connect, translate_placeholders
from errors import ConfigurationError, ConnectionLostError, DatabaseError


class TestTranslatePlaceholders:
    def test_qmark_unchanged(self) -> None:
        sql = "SELECT * FROM t WHERE a = ? AND b = '100%'"
        assert translate_placeholders(sql, "qmark") == sql

    def test_format(self) -> None:
        assert translate_placeholders("INSERT INTO t (a, b)\nVALUES (?, ?)", "format") == (
            "INSERT INTO t (a, b)\nVALUES (%s, %s)"
        )

    def test_pyformat_doubles_percent(self) -> None:
        assert translate_placeholders("SELECT ? FROM t WHERE s LIKE 'a%'", "pyformat") == (
            "SELECT %s FROM t WHERE s LIKE 'a%%'"
        )

    def test_numeric(self) -> None:
        assert translate_placeholders("WHERE a = ? AND b = ?", "numeric") == "WHERE a = :1 AND b = :2"

    def test_question_mark_in_literal_kept(self) -> None:
        assert translate_placeholders("SELECT '?', \"a?\", ? FROM t", "format") == (
            "SELECT '?', \"a?\", %s FROM t"
        )

    def test_unsupported_style(self) -> None:
        with pytest.raises(ConfigurationError):
            translate_placeholders("SELECT ?", "named")


class TestRow:
    def test_exact_key(self) -> None:
        assert Row({"id": 1})["id"] == 1

    def test_case_insensitive_fallback(self) -> None:
        row = Row({"SCHEMANAME": "SHOP"})
        assert row["schemaname"] == "SHOP"
        assert row["SchemaName"] == "SHOP"

    def test_missing_key(self) -> None:
        with pytest.raises(KeyError):
            Row({"id": 1})["name"]


class TestSqliteSession:
    def test_driver_detection(self, sqlite_session: Session) -> None:
        assert sqlite_session.driver == "sqlite3"
        assert sqlite_session.paramstyle == "qmark"

    def test_query_returns_rows_by_label(self, sqlite_session: Session, make_users) -> None:
        make_users(sqlite_session, rows=3)
        rows = sqlite_session.query("SELECT id, name FROM users WHERE id > ? ORDER BY id", (1,))
        assert [r["name"] for r in rows] == ["user2", "user3"]
        assert rows[0]["ID"] == 2

    def test_execute_update_returns_rowcount(self, sqlite_session: Session, make_users) -> None:
        make_users(sqlite_session, rows=5)
        assert sqlite_session.execute_update("DELETE FROM users WHERE id <= ?", (2,)) == 2

    def test_execute_batch(self, sqlite_session: Session, make_users) -> None:
        make_users(sqlite_session)
        sent = sqlite_session.execute_batch(
            "INSERT INTO users (id, name, email) VALUES (?, ?, ?)",
            [[1, "a", None], [2, "b", "b@example.com"]],
        )
        assert sent == 2
        assert sqlite_session.query("SELECT COUNT(*) AS n FROM users")[0]["n"] == 2

    def test_execute_batch_empty_is_noop(self, sqlite_session: Session) -> None:
        assert sqlite_session.execute_batch("INSERT INTO nowhere VALUES (?)", []) == 0

    def test_stream_yields_in_order(self, sqlite_session: Session, make_users) -> None:
        make_users(sqlite_session, rows=25)
        ids = [row["id"] for row in sqlite_session.stream("SELECT id FROM users ORDER BY id", fetch_size=10)]
        assert ids == list(range(1, 26))

    def test_stream_is_lazy(self, sqlite_session: Session, make_users) -> None:
        make_users(sqlite_session, rows=3)
        rows = sqlite_session.stream("SELECT id FROM users ORDER BY id", fetch_size=1)
        assert next(rows)["id"] == 1
        rows.close()

    def test_driver_error_wrapped(self, sqlite_session: Session) -> None:
        with pytest.raises(DatabaseError) as excinfo:
            sqlite_session.query("SELECT * FROM missing_table")
        assert isinstance(excinfo.value.__cause__, sqlite3.Error)

    def test_closed_session_raises(self) -> None:
        session = Session(sqlite3.connect(":memory:"))
        session.close()
        assert session.closed
        with pytest.raises(ConnectionLostError):
            session.query("SELECT 1")
        with pytest.raises(ConnectionLostError):
            session.execute_update("SELECT 1")

    def test_context_manager_closes(self) -> None:
        with Session(sqlite3.connect(":memory:")) as session:
            session.query("SELECT 1")
        assert session.closed

    def test_commit_and_rollback(self, make_users) -> None:
        with Session(sqlite3.connect(":memory:")) as session:
            make_users(session)
            session.commit()
            session.execute_update("INSERT INTO users (id, name) VALUES (?, ?)", (1, "a"))
            session.rollback()
            assert session.query("SELECT COUNT(*) AS n FROM users")[0]["n"] == 0


class TestFormatStyleDriver:
    """A fake driver whose paramstyle is ``format`` gets translated SQL."""

    def test_params_translated(self) -> None:
        connection = MagicMock()
        cursor = connection.cursor.return_value
        cursor.description = [("id",)]
        cursor.fetchall.return_value = [(7,)]
        session = Session(connection, paramstyle="format", error_class=RuntimeError)
        rows = session.query("SELECT id FROM t WHERE a = ? AND s LIKE 'x%'", [3])
        cursor.execute.assert_called_once_with("SELECT id FROM t WHERE a = %s AND s LIKE 'x%%'", (3,))
        assert rows == [{"id": 7}]

    def test_without_params_sql_untouched(self) -> None:
        connection = MagicMock()
        session = Session(connection, paramstyle="format", error_class=RuntimeError)
        session.execute_update("UPDATE t SET s = 'x%'")
        connection.cursor.return_value.execute.assert_called_once_with("UPDATE t SET s = 'x%'")

    def test_executemany_used_for_batches(self) -> None:
        connection = MagicMock()
        session = Session(connection, paramstyle="format", error_class=RuntimeError)
        session.execute_batch("INSERT INTO t VALUES (?, ?)", [[1, "a"], [2, "b"]])
        connection.cursor.return_value.executemany.assert_called_once_with(
            "INSERT INTO t VALUES (%s, %s)", [(1, "a"), (2, "b")]
        )


class TestConnect:
    def _config(self, dialect: str = "postgresql") -> DatabaseConfig:
        return DatabaseConfig(dialect=dialect, host="db", port=5432, database="shop")

    def test_unknown_dialect(self) -> None:
        with pytest.raises(ConfigurationError):
            connect(self._config("oracle"), "u", "p")

    def test_success_sets_autocommit(self) -> None:
        conn = MagicMock(spec=["cursor", "close", "commit", "rollback", "autocommit"])
        opener = MagicMock(return_value=conn)
        with patch.dict(database._OPENERS, {"postgresql": opener}):
            session = connect(self._config(), "u", "p", autocommit=True)
        opener.assert_called_once()
        assert conn.autocommit is True
        assert session.connection is conn

    def test_retries_with_linear_backoff(self) -> None:
        conn = MagicMock(spec=["cursor", "close", "commit", "rollback", "autocommit"])
        opener = MagicMock(side_effect=[DatabaseError("down"), DatabaseError("down"), conn])
        with patch.dict(database._OPENERS, {"postgresql": opener}), \
                patch.object(database.time, "sleep") as sleep:
            connect(self._config(), "u", "p", max_retries=3, retry_delay=0.5)
        assert opener.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [0.5, 1.0]

    def test_gives_up_after_max_retries(self) -> None:
        opener = MagicMock(side_effect=DatabaseError("down"))
        with patch.dict(database._OPENERS, {"postgresql": opener}), \
                patch.object(database.time, "sleep") as sleep:
            with pytest.raises(DatabaseError, match="after 2 attempts"):
                connect(self._config(), "u", "p", max_retries=2)
        assert opener.call_count == 2
        assert sleep.call_count == 1

    def test_set_autocommit_preferred(self) -> None:
        conn = MagicMock()
        opener = MagicMock(return_value=conn)
        with patch.dict(database._OPENERS, {"db2": opener}):
            connect(self._config("db2"), "u", "p")
        conn.set_autocommit.assert_called_once_with(False)
