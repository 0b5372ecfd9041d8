"""
errors.py
---------
Exception taxonomy shared by the schema model and the migration core.

Only an unrecognised catalog type name is recovered from locally (it becomes
the UNKNOWN data type). Every error below aborts the current table-level
operation; callers decide whether to continue with the remaining tables.
"""
from __future__ import annotations


class MigrationToolError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(MigrationToolError, ValueError):
    """
    Raised for invalid caller-supplied settings or model state: batch size
    below 1, identifiers violating ``[A-Za-z_]\\w*``, map keys that differ
    from the entity names, more than one primary key per table, negative
    type parameters, unknown dialect names.
    """


class CatalogError(MigrationToolError):
    """Raised when a catalog row does not have the shape a reader expects."""


class UnsupportedTypeError(MigrationToolError):
    """Raised when a data type has no DDL rendering in the active dialect."""


class TypeMismatchError(MigrationToolError, TypeError):
    """Raised when a value cannot be coerced to a data type's wire form."""


class DatabaseError(MigrationToolError):
    """Raised for database-level failures reported by the driver."""


class ConnectionLostError(DatabaseError):
    """Raised when a session is used after its connection was closed."""
