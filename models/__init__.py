"""models/__init__.py"""
from models.datatypes import DataType, DataTypeKind
from models.schema import (
    IDENTIFIER_PATTERN,
    Column,
    Index,
    IndexType,
    Schema,
    Table,
    validate_identifier,
)

__all__ = [
    "DataType",
    "DataTypeKind",
    "IDENTIFIER_PATTERN",
    "Column",
    "Index",
    "IndexType",
    "Schema",
    "Table",
    "validate_identifier",
]
