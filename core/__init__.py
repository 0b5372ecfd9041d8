"""core/__init__.py"""
from core.database import Row, Session, connect
from core.dialect import DB2, GENERIC, MYSQL, POSTGRESQL, Dialect, get_dialect
from core.reader import MetaReader, get_reader
from core.writer import MetaWriter, get_writer
from core.migrator import (
    DataMigrationOption,
    MigrationContext,
    MigrationEngine,
    MigrationResult,
    StructureResult,
    TransferResult,
)
from core.script_generator import generate_ddl_script

__all__ = [
    "Row",
    "Session",
    "connect",
    "DB2",
    "GENERIC",
    "MYSQL",
    "POSTGRESQL",
    "Dialect",
    "get_dialect",
    "MetaReader",
    "get_reader",
    "MetaWriter",
    "get_writer",
    "DataMigrationOption",
    "MigrationContext",
    "MigrationEngine",
    "MigrationResult",
    "StructureResult",
    "TransferResult",
    "generate_ddl_script",
]
