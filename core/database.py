"""
core/database.py
----------------
Database session management and statement execution.

Design Decisions:
    * ``Session`` wraps any DB-API 2.0 connection (mysql-connector, psycopg2,
      ibm_db_dbi, sqlite3 ...) so the rest of the package never touches a
      driver directly. It is a context manager that closes the connection on
      exit; it never commits or rolls back on its own, transaction control
      stays with the caller.
    * Statements are written once with ``?`` placeholders and translated to
      the driver's ``paramstyle`` (qmark / format / pyformat / numeric) at
      execution time.
    * Driver exceptions are wrapped in :class:`~errors.DatabaseError` with the
      original exception preserved as ``__cause__``.
    * ``stream()`` uses a server-side cursor where the driver offers one
      (psycopg2 named cursor, mysql-connector unbuffered cursor) and
      ``fetchmany`` batches everywhere, so a large table is never
      materialised in memory.
    * Retry logic for opening connections uses linear back-off
      (``retry_delay * attempt``).
"""
from __future__ import annotations

import itertools
import sys
import time
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

import mysql.connector
import psycopg2
from psycopg2.extras import execute_batch as _pg_execute_batch

from config import CONFIG, DatabaseConfig
from errors import ConfigurationError, ConnectionLostError, DatabaseError
from logger import get_logger

log = get_logger(__name__)

Params = Sequence[Any]

_stream_ids = itertools.count(1)


class Row(dict):
    """
    A fetched row keyed by column label.

    Lookups fall back to a case-insensitive match, since Db2 reports catalog
    labels in upper case while MySQL and PostgreSQL report them in lower case.
    """

    def __missing__(self, key: Any) -> Any:
        if isinstance(key, str):
            lowered = key.lower()
            for name, value in self.items():
                if isinstance(name, str) and name.lower() == lowered:
                    return value
        raise KeyError(key)


def _driver_module(connection: Any):
    """Walk up the connection class's module path to the DB-API module."""
    parts = type(connection).__module__.split(".")
    while parts:
        module = sys.modules.get(".".join(parts))
        if module is not None and hasattr(module, "paramstyle"):
            return module
        parts.pop()
    return None


def translate_placeholders(sql: str, paramstyle: str) -> str:
    """
    Rewrite ``?`` placeholders for *paramstyle*.

    Question marks inside quoted literals and identifiers are left alone. For
    the ``format`` / ``pyformat`` styles literal ``%`` characters are doubled.
    """
    if paramstyle == "qmark":
        return sql
    if paramstyle not in ("format", "pyformat", "numeric"):
        raise ConfigurationError(f"Unsupported DB-API paramstyle: {paramstyle}")

    percent_style = paramstyle != "numeric"
    out: list[str] = []
    quote: str | None = None
    position = 0
    for ch in sql:
        if ch == "%" and percent_style:
            out.append("%%")
            continue
        if quote is not None:
            if ch == quote:
                quote = None
            out.append(ch)
            continue
        if ch in ("'", '"', "`"):
            quote = ch
            out.append(ch)
        elif ch == "?":
            position += 1
            out.append("%s" if percent_style else f":{position}")
        else:
            out.append(ch)
    return "".join(out)


class Session:
    """
    One live connection plus the knowledge of how to talk to its driver.

    Example::

        with connect(CONFIG.source, user="root", password="secret") as session:
            rows = session.query("SELECT id, name FROM users WHERE id = ?", (1,))
            print(rows[0]["name"])
    """

    def __init__(
        self,
        connection: Any,
        paramstyle: str | None = None,
        error_class: type[BaseException] | None = None,
        name: str | None = None,
    ) -> None:
        module = _driver_module(connection)
        self._conn = connection
        self._driver = module.__name__.split(".")[0] if module is not None else "dbapi"
        self.paramstyle = paramstyle or getattr(module, "paramstyle", "qmark")
        self._error_class = error_class or getattr(module, "Error", Exception)
        self.name = name or self._driver
        self._closed = False

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            log.warning("Unhandled exception in session %s: %s", self.name, exc_val)
        self.close()
        return False  # Never suppress exceptions

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def connection(self) -> Any:
        return self._conn

    @property
    def driver(self) -> str:
        return self._driver

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the underlying connection, logging any cleanup errors."""
        if self._closed:
            return
        self._closed = True
        try:
            self._conn.close()
            log.info("Session %s closed.", self.name)
        except self._error_class as exc:
            log.warning("Error while closing session %s: %s", self.name, exc)

    def commit(self) -> None:
        self._ensure_open()
        with self._driver_errors("COMMIT"):
            self._conn.commit()

    def rollback(self) -> None:
        self._ensure_open()
        with self._driver_errors("ROLLBACK"):
            self._conn.rollback()

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConnectionLostError(f"Session {self.name} is closed.")

    @contextmanager
    def _driver_errors(self, sql: str) -> Iterator[None]:
        try:
            yield
        except self._error_class as exc:
            log.error("SQL execution error: %s | SQL: %.500s", exc, sql)
            raise DatabaseError(str(exc)) from exc

    def _close_cursor(self, cursor: Any) -> None:
        try:
            cursor.close()
        except self._error_class as exc:
            log.warning("Could not close cursor: %s", exc)

    def _prepare(self, sql: str, params: Params | None) -> tuple:
        if params is None:
            return (sql,)
        return translate_placeholders(sql, self.paramstyle), tuple(params)

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def execute_update(self, sql: str, params: Params | None = None) -> int:
        """
        Execute a DDL or DML statement.

        Returns:
            The driver's rowcount (-1 when it does not report one).

        Raises:
            ConnectionLostError: If the session is closed.
            DatabaseError: On driver errors.
        """
        self._ensure_open()
        log.debug("Executing on %s: %s", self.name, sql)
        cursor = self._conn.cursor()
        try:
            with self._driver_errors(sql):
                cursor.execute(*self._prepare(sql, params))
            return cursor.rowcount
        finally:
            self._close_cursor(cursor)

    def query(self, sql: str, params: Params | None = None) -> list[Row]:
        """Execute a query and return every row, keyed by column label."""
        self._ensure_open()
        log.debug("Querying %s: %s", self.name, sql)
        cursor = self._conn.cursor()
        try:
            with self._driver_errors(sql):
                cursor.execute(*self._prepare(sql, params))
                rows = cursor.fetchall()
            names = _column_names(cursor)
            return [Row(zip(names, values)) for values in rows]
        finally:
            self._close_cursor(cursor)

    def stream(
        self,
        sql: str,
        params: Params | None = None,
        fetch_size: int = CONFIG.migration.batch_size,
    ) -> Iterator[Row]:
        """
        Lazily yield the rows of a query in retrieval order.

        Rows are fetched from the server *fetch_size* at a time through a
        forward-only cursor. The cursor is closed when the generator is
        exhausted or closed.
        """
        self._ensure_open()
        log.debug("Streaming from %s (fetch size %d): %s", self.name, fetch_size, sql)
        cursor = self._stream_cursor(fetch_size)
        try:
            with self._driver_errors(sql):
                cursor.execute(*self._prepare(sql, params))
            names: list[str] | None = None
            while True:
                with self._driver_errors(sql):
                    batch = cursor.fetchmany(fetch_size)
                if not batch:
                    break
                if names is None:
                    # named cursors only describe their result after a fetch
                    names = _column_names(cursor)
                for values in batch:
                    yield Row(zip(names, values))
        finally:
            self._close_cursor(cursor)

    def _stream_cursor(self, fetch_size: int) -> Any:
        with self._driver_errors("<open cursor>"):
            if self._driver == "psycopg2":
                cursor = self._conn.cursor(
                    name=f"schema_migrator_stream_{next(_stream_ids)}",
                    withhold=bool(self._conn.autocommit),
                )
                cursor.itersize = fetch_size
            elif self._driver == "mysql":
                cursor = self._conn.cursor(buffered=False)
            else:
                cursor = self._conn.cursor()
            cursor.arraysize = fetch_size
        return cursor

    def execute_batch(self, sql: str, rows: Sequence[Params]) -> int:
        """
        Execute one parameterised statement for every row of *rows*.

        Returns:
            The number of parameter rows sent.
        """
        self._ensure_open()
        if not rows:
            return 0
        statement = translate_placeholders(sql, self.paramstyle)
        params = [tuple(row) for row in rows]
        log.debug("Flushing %d row(s) on %s: %s", len(params), self.name, sql)
        cursor = self._conn.cursor()
        try:
            with self._driver_errors(sql):
                if self._driver == "psycopg2":
                    _pg_execute_batch(cursor, statement, params, page_size=len(params))
                else:
                    cursor.executemany(statement, params)
            return len(params)
        finally:
            self._close_cursor(cursor)


def _column_names(cursor: Any) -> list[str]:
    return [d[0] for d in cursor.description or ()]


# ---------------------------------------------------------------------------
# Connection factory
# ---------------------------------------------------------------------------

def _open_mysql(cfg: DatabaseConfig, user: str, password: str) -> Any:
    try:
        return mysql.connector.connect(
            host=cfg.host,
            port=cfg.port,
            user=user,
            password=password,
            database=cfg.database or None,
            charset="utf8mb4",
            connect_timeout=cfg.connect_timeout,
        )
    except mysql.connector.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _open_postgresql(cfg: DatabaseConfig, user: str, password: str) -> Any:
    try:
        return psycopg2.connect(
            host=cfg.host,
            port=cfg.port,
            user=user,
            password=password,
            dbname=cfg.database,
            connect_timeout=cfg.connect_timeout,
        )
    except psycopg2.Error as exc:
        raise DatabaseError(str(exc)) from exc


def _open_db2(cfg: DatabaseConfig, user: str, password: str) -> Any:
    # ibm_db is an optional extra; only Db2 users need it installed
    import ibm_db_dbi

    dsn = (
        f"DATABASE={cfg.database};HOSTNAME={cfg.host};PORT={cfg.port};"
        f"PROTOCOL=TCPIP;UID={user};PWD={password};CONNECTTIMEOUT={cfg.connect_timeout};"
    )
    try:
        return ibm_db_dbi.connect(dsn, "", "")
    except ibm_db_dbi.Error as exc:
        raise DatabaseError(str(exc)) from exc


_OPENERS = {
    "mysql": _open_mysql,
    "postgresql": _open_postgresql,
    "db2": _open_db2,
}


def connect(
    db_config: DatabaseConfig,
    user: str,
    password: str,
    max_retries: int = 3,
    retry_delay: float = 1.0,
    autocommit: bool = False,
) -> Session:
    """
    Open a :class:`Session` for *db_config* with linear back-off retries.

    Raises:
        ConfigurationError: If the dialect has no driver.
        DatabaseError: If connection fails after all retries.
    """
    opener = _OPENERS.get(db_config.dialect)
    if opener is None:
        raise ConfigurationError(f"No driver for dialect {db_config.dialect!r}")

    target = f"{db_config.dialect}://{db_config.host}:{db_config.port}/{db_config.database}"
    for attempt in range(1, max_retries + 1):
        try:
            log.info("Connecting to %s (attempt %d/%d)", target, attempt, max_retries)
            conn = opener(db_config, user, password)
            if hasattr(conn, "set_autocommit"):
                conn.set_autocommit(autocommit)  # ibm_db_dbi
            else:
                conn.autocommit = autocommit
            log.info("Connected to %s successfully.", target)
            return Session(conn, name=target)
        except DatabaseError as exc:
            log.warning("Connection attempt %d failed: %s", attempt, exc)
            if attempt < max_retries:
                time.sleep(retry_delay * attempt)
    raise DatabaseError(f"Could not connect to {target} after {max_retries} attempts.")
