"""
core/reader.py
--------------
Introspects a live database into the schema model.

``MetaReader`` is composed of a :class:`~core.dialect.Dialect` (quoting) and a
catalog from :mod:`core.catalogs` (system views and row decoding); pick one by
name with :func:`get_reader`.

Design Decisions:
    * A table's columns are always read before its indexes, since index
      columns resolve to the already-read Column objects.
    * The SELECT builders are pure string functions; they never touch a
      session. Column lists are unquoted, primary-key predicates are quoted.
"""
from __future__ import annotations

from core.catalogs import Catalog
from core.catalogs.db2 import Db2Catalog
from core.catalogs.mysql import MySqlCatalog
from core.catalogs.postgresql import PostgreSqlCatalog
from core.database import Session
from core.dialect import Dialect, get_dialect
from errors import ConfigurationError
from logger import get_logger
from models.schema import Column, Index, Schema, Table

log = get_logger(__name__)


class MetaReader:
    """
    Reads schemas, tables, columns and indexes through one catalog.

    Example::

        reader = get_reader("postgresql")
        for schema in reader.read(session):
            for table in schema.tables:
                print(reader.table_name(table), list(table.columns))
    """

    def __init__(self, dialect: Dialect, catalog: Catalog) -> None:
        self.dialect = dialect
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Identifier helpers
    # ------------------------------------------------------------------

    def quote(self, identifier: str) -> str:
        return self.dialect.quote(identifier)

    def table_name(self, table: Table) -> str:
        return self.dialect.table_name(table)

    def where_sql_for_primary_key(self, table: Table) -> str:
        return self.dialect.where_sql_for_primary_key(table)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def read(self, session: Session) -> list[Schema]:
        """Read every non-system schema, ordered by name, with its tables."""
        schemas = self.catalog.read_schemas(session)
        for schema in schemas:
            schema.tables = self.read_tables(session, schema)
        log.info("Read %d schema(s) from %s", len(schemas), self.dialect.name)
        return schemas

    def read_tables(self, session: Session, schema: Schema) -> list[Table]:
        """Read the base tables of *schema*, ordered by name, with columns and indexes."""
        tables = self.list_tables(session, schema)
        for table in tables:
            table.columns = self.read_columns(session, table)
        for table in tables:
            table.indexes = self.read_indexes(session, table)
        log.info("Read %d table(s) from schema %s", len(tables), schema.name)
        return tables

    def list_tables(self, session: Session, schema: Schema) -> list[Table]:
        """Base tables of *schema*, ordered by name, with no columns or indexes read."""
        return self.catalog.read_tables(session, schema)

    def read_columns(self, session: Session, table: Table) -> dict[str, Column]:
        """
        Read the columns of *table* in ordinal order.

        Returns an empty dict when the table does not exist.
        """
        return self.catalog.read_columns(session, table)

    def read_indexes(self, session: Session, table: Table) -> dict[str, Index]:
        """Read the indexes of *table*; its columns must already be read."""
        return self.catalog.read_indexes(session, table)

    # ------------------------------------------------------------------
    # Statement builders
    # ------------------------------------------------------------------

    def select_all_sql_for(self, table: Table) -> str:
        return f"SELECT {', '.join(table.columns)} FROM {self.table_name(table)}"

    def select_by_primary_key_sql_for(self, table: Table) -> str:
        return f"{self.select_all_sql_for(table)} {self.where_sql_for_primary_key(table)}"


_CATALOGS = {
    "mysql": MySqlCatalog,
    "postgresql": PostgreSqlCatalog,
    "db2": Db2Catalog,
}


def get_reader(name: str) -> MetaReader:
    """
    Build the reader for a dialect name (``mysql``, ``postgresql``, ``db2``).

    Raises:
        ConfigurationError: If no catalog exists for the dialect.
    """
    dialect = get_dialect(name)
    catalog_class = _CATALOGS.get(dialect.name)
    if catalog_class is None:
        raise ConfigurationError(f"No catalog reader for dialect {dialect.name!r}")
    return MetaReader(dialect, catalog_class())
