"""
models/datatypes.py
-------------------
The closed set of semantic column types shared by every dialect.

A :class:`DataType` is a frozen value carrying a :class:`DataTypeKind` tag and
the payload that kind needs (precision / scale / length / name). Dialects map
kinds to DDL names in ``core/dialect.py``; this module owns the dialect
independent behaviour:

    * ``str(data_type)``      – canonical display form for diagnostics.
    * ``extract(row, name)``  – read a named result column into a Python value.
    * ``bind(value)``         – coerce a caller value into the wire value placed
                                in a parameter slot of a prepared statement.

Design Decision:
    Per-kind behaviour is encoded as data (dispatch tables keyed by kind)
    rather than a class per variant, so the set of kinds stays closed and a
    new dialect never has to subclass anything.
"""
from __future__ import annotations

import json
import numbers
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Mapping

from errors import ConfigurationError, TypeMismatchError


class DataTypeKind(str, Enum):
    INTEGER = "integer"
    BIGINT = "bigint"
    SMALLINT = "smallint"
    DOUBLE = "double"
    FLOAT = "float"
    DECIMAL = "decimal"
    CHAR = "char"
    VARCHAR = "varchar"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    CLOB = "clob"
    BLOB = "blob"
    UNKNOWN = "unknown"


# Kinds whose DDL takes a single "(n)" parameter, and which field holds it
PRECISION_KINDS = frozenset({DataTypeKind.TIME, DataTypeKind.TIMESTAMP})
LENGTH_KINDS = frozenset({DataTypeKind.CHAR, DataTypeKind.VARCHAR})

_DISPLAY_NAMES = {
    DataTypeKind.INTEGER: "Int",
    DataTypeKind.BIGINT: "BigInt",
    DataTypeKind.SMALLINT: "SmallInt",
    DataTypeKind.DOUBLE: "Double",
    DataTypeKind.FLOAT: "Float",
    DataTypeKind.DECIMAL: "Decimal",
    DataTypeKind.CHAR: "Char",
    DataTypeKind.VARCHAR: "VarChar",
    DataTypeKind.DATE: "Date",
    DataTypeKind.TIME: "Time",
    DataTypeKind.TIMESTAMP: "Timestamp",
    DataTypeKind.CLOB: "Clob",
    DataTypeKind.BLOB: "Blob",
}


@dataclass(frozen=True)
class DataType:
    """
    One semantic column type.

    Use the factory class methods rather than the constructor::

        DataType.integer()
        DataType.decimal(10, 2)
        DataType.varchar(50)
        DataType.timestamp(6)
        DataType.unknown("jsonb")

    Raises:
        ConfigurationError: If precision, scale or length is negative.
    """
    kind: DataTypeKind
    precision: int = 0
    scale: int = 0
    length: int = 0
    name: str | None = None

    def __post_init__(self) -> None:
        for attr in ("precision", "scale", "length"):
            value = getattr(self, attr)
            if value < 0:
                raise ConfigurationError(
                    f"{attr.capitalize()} is not expected to be negative, but is {value}"
                )

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def integer(cls) -> "DataType":
        return cls(DataTypeKind.INTEGER)

    @classmethod
    def bigint(cls) -> "DataType":
        return cls(DataTypeKind.BIGINT)

    @classmethod
    def smallint(cls) -> "DataType":
        return cls(DataTypeKind.SMALLINT)

    @classmethod
    def double(cls) -> "DataType":
        return cls(DataTypeKind.DOUBLE)

    @classmethod
    def float(cls) -> "DataType":
        return cls(DataTypeKind.FLOAT)

    @classmethod
    def decimal(cls, precision: int = 0, scale: int = 0) -> "DataType":
        return cls(DataTypeKind.DECIMAL, precision=precision, scale=scale)

    @classmethod
    def char(cls, length: int = 0) -> "DataType":
        return cls(DataTypeKind.CHAR, length=length)

    @classmethod
    def varchar(cls, length: int = 0) -> "DataType":
        return cls(DataTypeKind.VARCHAR, length=length)

    @classmethod
    def date(cls) -> "DataType":
        return cls(DataTypeKind.DATE)

    @classmethod
    def time(cls, precision: int = 0) -> "DataType":
        return cls(DataTypeKind.TIME, precision=precision)

    @classmethod
    def timestamp(cls, precision: int = 0) -> "DataType":
        return cls(DataTypeKind.TIMESTAMP, precision=precision)

    @classmethod
    def clob(cls) -> "DataType":
        return cls(DataTypeKind.CLOB)

    @classmethod
    def blob(cls) -> "DataType":
        return cls(DataTypeKind.BLOB)

    @classmethod
    def unknown(cls, name: str) -> "DataType":
        return cls(DataTypeKind.UNKNOWN, name=name)

    # ------------------------------------------------------------------
    # Behaviour
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        if self.kind == DataTypeKind.UNKNOWN:
            return f"DataType[{self.name}]"
        label = _DISPLAY_NAMES[self.kind]
        if self.kind == DataTypeKind.DECIMAL:
            return f"DataType[{label}({self.precision}, {self.scale})]"
        if self.kind in PRECISION_KINDS:
            return f"DataType[{label}({self.precision})]"
        if self.kind in LENGTH_KINDS:
            return f"DataType[{label}({self.length})]"
        return f"DataType[{label}]"

    def extract(self, row: Mapping[str, Any], column_name: str) -> Any:
        """
        Read *column_name* from a fetched *row* as this type's Python value.

        Returns ``None`` for SQL NULL.
        """
        value = row[column_name]
        if value is None:
            return None
        return _EXTRACTORS[self.kind](value)

    def bind(self, value: Any) -> Any:
        """
        Coerce *value* into the wire value for a statement parameter slot.

        Raises:
            TypeMismatchError: If the value's shape cannot be coerced.
        """
        if value is None:
            return None
        try:
            return _BINDERS[self.kind](value)
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise TypeMismatchError(
                f"Cannot bind {type(value).__name__} value {value!r} as {self}"
            ) from exc


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _extract_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def _extract_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    return str(value)


def _extract_unknown(value: Any) -> str:
    # psycopg2 decodes json / jsonb into dicts and lists
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return _extract_text(value)


def _extract_blob(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


def _extract_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return date.fromisoformat(value)
    return value


def _time_from_timedelta(value: timedelta) -> time:
    # mysql-connector returns TIME columns as timedelta
    total = value - timedelta(days=value.days)
    seconds = total.seconds
    return time(seconds // 3600, seconds % 3600 // 60, seconds % 60, total.microseconds)


def _extract_time(value: Any) -> time:
    if isinstance(value, timedelta):
        return _time_from_timedelta(value)
    if isinstance(value, datetime):
        return value.time()
    if isinstance(value, str):
        return time.fromisoformat(value)
    return value


def _extract_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


_EXTRACTORS: dict[DataTypeKind, Callable[[Any], Any]] = {
    DataTypeKind.INTEGER: int,
    DataTypeKind.BIGINT: int,
    DataTypeKind.SMALLINT: int,
    DataTypeKind.DOUBLE: float,
    DataTypeKind.FLOAT: float,
    DataTypeKind.DECIMAL: _extract_decimal,
    DataTypeKind.CHAR: _extract_text,
    DataTypeKind.VARCHAR: _extract_text,
    DataTypeKind.CLOB: _extract_text,
    DataTypeKind.UNKNOWN: _extract_unknown,
    DataTypeKind.BLOB: _extract_blob,
    DataTypeKind.DATE: _extract_date,
    DataTypeKind.TIME: _extract_time,
    DataTypeKind.TIMESTAMP: _extract_timestamp,
}


# ---------------------------------------------------------------------------
# Binding
# ---------------------------------------------------------------------------

def _require_number(value: Any) -> Any:
    if isinstance(value, (numbers.Real, Decimal)):
        return value
    raise TypeError(f"expected a number, got {type(value).__name__}")


def _bind_integer(value: Any) -> int:
    return int(_require_number(value))


def _bind_float(value: Any) -> float:
    return float(_require_number(value))


def _bind_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation as exc:
            raise ValueError(f"not a decimal literal: {value!r}") from exc
    if isinstance(value, numbers.Real):
        return Decimal(str(value))
    raise TypeError(f"expected a number, got {type(value).__name__}")


def _bind_text(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    return str(value)


def _bind_blob(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"expected bytes, got {type(value).__name__}")


def _utc_naive(value: datetime) -> datetime:
    if value.tzinfo is not None and value.utcoffset() is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _bind_timestamp(value: Any) -> datetime:
    """
    Normalise every accepted date/time shape to a naive UTC ``datetime``.

    Accepted: naive / offset-aware / zone-aware ``datetime``, ``date``,
    epoch seconds (``int`` / ``float`` / ``Decimal``) and ISO-8601 strings.
    """
    if isinstance(value, datetime):
        return _utc_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, bool):
        raise TypeError("bool is not a point in time")
    if isinstance(value, (numbers.Real, Decimal)):
        return datetime.fromtimestamp(float(value), tz=timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        return _utc_naive(datetime.fromisoformat(value))
    raise TypeError(f"expected a date/time value, got {type(value).__name__}")


def _bind_date(value: Any) -> date:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if isinstance(value, str) and len(value) == 10:
        return date.fromisoformat(value)
    return _bind_timestamp(value).date()


def _utc_naive_time(value: time) -> time:
    # a zone-aware time has no offset without a date; keep its wall clock
    if value.utcoffset() is None:
        return value.replace(tzinfo=None)
    return _utc_naive(datetime.combine(date(2000, 1, 1), value)).time()


def _bind_time(value: Any) -> time:
    if isinstance(value, time):
        return _utc_naive_time(value)
    if isinstance(value, timedelta):
        return _time_from_timedelta(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        raise TypeError("a calendar date carries no time of day")
    if isinstance(value, str) and "T" not in value:
        try:
            return _utc_naive_time(time.fromisoformat(value))
        except ValueError:
            pass  # has a date part
    return _bind_timestamp(value).time()


_BINDERS: dict[DataTypeKind, Callable[[Any], Any]] = {
    DataTypeKind.INTEGER: _bind_integer,
    DataTypeKind.BIGINT: _bind_integer,
    DataTypeKind.SMALLINT: _bind_integer,
    DataTypeKind.DOUBLE: _bind_float,
    DataTypeKind.FLOAT: _bind_float,
    DataTypeKind.DECIMAL: _bind_decimal,
    DataTypeKind.CHAR: _bind_text,
    DataTypeKind.VARCHAR: _bind_text,
    DataTypeKind.CLOB: _bind_text,
    DataTypeKind.UNKNOWN: _extract_unknown,
    DataTypeKind.BLOB: _bind_blob,
    DataTypeKind.DATE: _bind_date,
    DataTypeKind.TIME: _bind_time,
    DataTypeKind.TIMESTAMP: _bind_timestamp,
}
