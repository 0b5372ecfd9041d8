"""
core/migrator.py
----------------
Migration engine: reconciles table structure and copies table data between
two live databases.

Design Decisions:
    * The engine is a plain class with no per-migration state; everything a
      migration needs travels in a frozen :class:`MigrationContext`, so one
      engine can serve several source/target pairs.
    * Progress is reported via a callback (``progress_cb``) so callers can
      display updates without coupling this module to any UI.
    * Structure reconciliation is additive only: missing tables, columns and
      indexes are created; nothing is altered or dropped.
    * Data is streamed through one forward-only cursor and written with
      batched parameterised INSERTs; there is no retry, and the engine never
      commits or rolls back (transaction control stays with the caller).
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from config import CONFIG, TRACE
from core.database import Session
from core.reader import MetaReader
from core.writer import MetaWriter
from errors import CatalogError, ConfigurationError, MigrationToolError
from logger import get_logger
from models.schema import Schema, Table

log = get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]  # message, current, total


class DataMigrationOption(str, Enum):
    """What to do with a freshly created target table before copying rows."""
    NONE = "none"
    TRUNCATE_FIRST = "truncate_first"
    DELETE_ALL_FIRST = "delete_all_first"


@dataclass(frozen=True)
class MigrationContext:
    """
    Everything one migration needs.

    Raises:
        ConfigurationError: If ``batch_size`` is below 1.
    """
    source_reader: MetaReader
    source_session: Session
    target_reader: MetaReader
    target_writer: MetaWriter
    target_session: Session
    batch_size: int = field(default_factory=lambda: CONFIG.migration.batch_size)

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(
                f"batch_size must be at least 1, got {self.batch_size}"
            )


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class StructureResult:
    """Outcome of reconciling one table's structure."""
    table_name: str
    created: bool
    statements: list[str] = field(default_factory=list)
    source_table: Table | None = None


@dataclass
class TransferResult:
    """Outcome of copying one table's rows."""
    table_name: str
    rows_copied: int = 0
    batches: list[int] = field(default_factory=list)  # rows per flush
    elapsed_seconds: float = 0.0


@dataclass
class MigrationResult:
    """Outcome of migrating one table (structure, then data)."""
    table_name: str
    success: bool = True
    created: bool = False
    rows_copied: int = 0
    statements: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    def __str__(self) -> str:
        status = "OK" if self.success else "FAILED"
        action = "created" if self.created else "reconciled"
        parts = [
            f"[{status}] {self.table_name}: {action}, "
            f"{len(self.statements)} statement(s), {self.rows_copied} rows"
        ]
        if self.errors:
            parts.append(f"  Errors: {'; '.join(self.errors)}")
        return "\n".join(parts)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class MigrationEngine:
    """
    Orchestrates structure reconciliation and data copy.

    Args:
        progress_cb: Optional callback ``(message, current, total)`` for
                     progress reporting.

    Example::

        ctx = MigrationContext(
            source_reader=get_reader("mysql"), source_session=src,
            target_reader=get_reader("postgresql"),
            target_writer=get_writer("postgresql"), target_session=dst,
        )
        engine = MigrationEngine()
        for result in engine.migrate_schema(ctx, Schema("shop")):
            print(result)
    """

    def __init__(self, progress_cb: ProgressCallback | None = None) -> None:
        self._progress_cb = progress_cb or self._default_progress

    @staticmethod
    def _default_progress(msg: str, current: int, total: int) -> None:
        log.info("%s (%d/%s)", msg, current, total if total else "?")

    def _progress(self, msg: str, current: int = 0, total: int = 0) -> None:
        self._progress_cb(msg, current, total)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def migrate_table_structure(self, ctx: MigrationContext, table: Table) -> StructureResult:
        """
        Create *table* on the target, or add whatever columns and indexes it
        is missing there.

        Column and index names are matched case-insensitively. A missing
        primary key on an existing table is logged, not added.

        Raises:
            CatalogError: If the table has no columns in the source.
            DatabaseError: On driver errors.
        """
        source_table = self._read_source_table(ctx, table)
        target_table = Table(table.name, schema=_copy_schema(table))
        target_name = ctx.target_writer.table_name(target_table)
        result = StructureResult(table_name=target_name, created=False, source_table=source_table)

        target_columns = ctx.target_reader.read_columns(ctx.target_session, target_table)
        if not target_columns:
            log.info("Table %s does not exist in the target database", target_name)
            result.statements.extend(ctx.target_writer.create_table(ctx.target_session, source_table))
            result.created = True
            return result

        log.info("Table %s already exists in the target database", target_name)
        target_table.columns = target_columns
        existing_columns = {name.lower() for name in target_columns}
        for column in source_table.columns.values():
            if column.name.lower() not in existing_columns:
                result.statements.append(ctx.target_writer.create_column(ctx.target_session, column))

        existing_indexes = {
            name.lower()
            for name in ctx.target_reader.read_indexes(ctx.target_session, target_table)
        }
        for index in source_table.indexes.values():
            if index.name.lower() not in existing_indexes:
                sql = ctx.target_writer.create_index(ctx.target_session, index)
                if sql is not None:
                    result.statements.append(sql)

        log.info("Reconciled %s with %d statement(s)", target_name, len(result.statements))
        return result

    def _read_source_table(self, ctx: MigrationContext, table: Table) -> Table:
        """Re-read *table* from the source: columns first, then indexes."""
        source_table = Table(table.name, schema=_copy_schema(table), comment=table.comment)
        columns = ctx.source_reader.read_columns(ctx.source_session, source_table)
        if not columns:
            raise CatalogError(
                f"Table {ctx.source_reader.table_name(source_table)} has no columns in the source database"
            )
        source_table.columns = columns
        source_table.indexes = ctx.source_reader.read_indexes(ctx.source_session, source_table)
        return source_table

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def migrate_table_data(self, ctx: MigrationContext, table: Table) -> TransferResult:
        """
        Copy every row of *table* from source to target in batches of
        ``ctx.batch_size``.

        Values are bound in column-map order through each column's DataType.
        Any read or flush failure propagates; rows already flushed stay
        flushed.
        """
        if not table.columns:
            table = self._read_source_table(ctx, table)

        select_sql = ctx.source_reader.select_all_sql_for(table)
        insert_sql = ctx.target_writer.insert_sql_for(table)
        target_name = ctx.target_writer.table_name(table)
        columns = list(table.columns.values())
        result = TransferResult(table_name=target_name)
        start = time.monotonic()

        log.info("Copying data from %s into %s", ctx.source_reader.table_name(table), target_name)
        self._progress(f"Copying data → {target_name}", 0, 0)

        pending: list[list] = []
        for row in ctx.source_session.stream(select_sql, fetch_size=ctx.batch_size):
            pending.append([column.data_type.bind(column.extract(row)) for column in columns])
            result.rows_copied += 1
            log.log(TRACE, "%d row(s) queued for %s", result.rows_copied, target_name)
            if len(pending) == ctx.batch_size:
                self._flush(ctx, insert_sql, pending, result)
                pending = []
        if pending:
            self._flush(ctx, insert_sql, pending, result)

        result.elapsed_seconds = time.monotonic() - start
        log.info(
            "Copied %d row(s) into %s in %d batch(es), %.2fs",
            result.rows_copied, target_name, len(result.batches), result.elapsed_seconds,
        )
        return result

    def _flush(self, ctx: MigrationContext, insert_sql: str, pending: list[list], result: TransferResult) -> None:
        ctx.target_session.execute_batch(insert_sql, pending)
        result.batches.append(len(pending))
        log.debug("Batch %d executed: %d row(s) into %s", len(result.batches), len(pending), result.table_name)
        self._progress(
            f"Copying → {result.table_name}: {result.rows_copied} rows",
            result.rows_copied,
            0,
        )

    # ------------------------------------------------------------------
    # Composite
    # ------------------------------------------------------------------

    def migrate_table_structure_with_data(
        self,
        ctx: MigrationContext,
        table: Table,
        option: DataMigrationOption = DataMigrationOption.NONE,
    ) -> MigrationResult:
        """
        Reconcile structure; copy data only when the table was just created.

        Errors propagate; see :meth:`migrate_schema` for a variant that
        records them and continues.
        """
        start = time.monotonic()
        structure = self.migrate_table_structure(ctx, table)
        result = MigrationResult(
            table_name=structure.table_name,
            created=structure.created,
            statements=list(structure.statements),
        )

        if structure.created:
            source_table = structure.source_table
            if option == DataMigrationOption.TRUNCATE_FIRST:
                sql = ctx.target_writer.truncate_table_sql_for(source_table)
                log.debug("Truncating %s before copying data", result.table_name)
                ctx.target_session.execute_update(sql)
                result.statements.append(sql)
            elif option == DataMigrationOption.DELETE_ALL_FIRST:
                sql = ctx.target_writer.delete_all_sql_for(source_table)
                log.debug("Deleting all rows from %s before copying data", result.table_name)
                ctx.target_session.execute_update(sql)
                result.statements.append(sql)
            transfer = self.migrate_table_data(ctx, source_table)
            result.rows_copied = transfer.rows_copied
        else:
            log.info("Table %s already existed; data not copied", result.table_name)

        result.elapsed_seconds = time.monotonic() - start
        return result

    def migrate_schema(
        self,
        ctx: MigrationContext,
        schema: Schema,
        option: DataMigrationOption | str | None = None,
    ) -> list[MigrationResult]:
        """
        Migrate every base table of *schema*, as read from the source.

        A table that fails is recorded with its error and the next table is
        attempted.

        Args:
            option: Defaults to ``MIGRATION_DATA_OPTION`` from the config.
        """
        option = _data_option(option if option is not None else CONFIG.migration.data_option)
        # names only; each table is read in full inside its own try below
        tables = ctx.source_reader.list_tables(ctx.source_session, schema)
        total = len(tables)
        results: list[MigrationResult] = []

        for position, table in enumerate(tables, start=1):
            self._progress(f"Migrating table {table.name}", position - 1, total)
            try:
                results.append(self.migrate_table_structure_with_data(ctx, table, option))
            except MigrationToolError as exc:
                log.error("Migration of table %s failed: %s", table.name, exc)
                results.append(
                    MigrationResult(
                        table_name=ctx.target_writer.table_name(table),
                        success=False,
                        errors=[str(exc)],
                    )
                )

        failed = sum(1 for r in results if not r.success)
        self._progress(f"Schema {schema.name} migrated ({failed} failed)", total, total)
        return results


def _copy_schema(table: Table) -> Schema | None:
    return Schema(table.schema.name) if table.schema is not None else None


def _data_option(value: DataMigrationOption | str) -> DataMigrationOption:
    try:
        return DataMigrationOption(value)
    except ValueError:
        raise ConfigurationError(
            f"Unknown data migration option {value!r}; "
            f"expected one of {[o.value for o in DataMigrationOption]}"
        ) from None
