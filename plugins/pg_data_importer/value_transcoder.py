"""
Value Transcoder

Converts single PostgreSQL cell values, as returned by psycopg2, into SQL
literal text for multi-row INSERT statements.

Only the common scalar types are supported. Any other declared type is
written as NULL and reported in the error log, so one unsupported column
does not stop the rest of the table from being copied.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
import logging
import math

logger = logging.getLogger(__name__)

NULL_LITERAL = 'NULL'


class ColumnKind(Enum):
    """Scalar kinds the transcoder knows how to write."""

    BOOLEAN = 'boolean'
    INT16 = 'smallint'
    INT32 = 'integer'
    INT64 = 'bigint'
    FLOAT = 'double precision'
    DECIMAL = 'numeric'
    TEXT = 'text'
    TIMESTAMPTZ = 'timestamp with time zone'


# PostgreSQL type OIDs (pg_type.oid) as reported in cursor.description
PG_TYPE_OIDS = {
    16: ColumnKind.BOOLEAN,
    21: ColumnKind.INT16,
    23: ColumnKind.INT32,
    20: ColumnKind.INT64,
    700: ColumnKind.FLOAT,      # real
    701: ColumnKind.FLOAT,      # double precision
    1700: ColumnKind.DECIMAL,
    25: ColumnKind.TEXT,
    1043: ColumnKind.TEXT,      # varchar
    1042: ColumnKind.TEXT,      # bpchar
    1184: ColumnKind.TIMESTAMPTZ,
}

_INTEGER_KINDS = (ColumnKind.INT16, ColumnKind.INT32, ColumnKind.INT64)


def column_kind(declared_type: Union[int, ColumnKind, None]) -> Optional[ColumnKind]:
    """Map a type OID (or a ColumnKind) to the ColumnKind to write, or None if unsupported."""
    if isinstance(declared_type, ColumnKind):
        return declared_type
    return PG_TYPE_OIDS.get(declared_type)


def quote_text(value: str) -> str:
    """
    Single-quote a string, doubling embedded quotes.

    Examples:
        >>> quote_text("O'Brien")
        "'O''Brien'"
    """
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def _float_literal(value: float) -> str:
    if math.isnan(value):
        return "'NaN'"
    if math.isinf(value):
        return "'Infinity'" if value > 0 else "'-Infinity'"
    return repr(value)


def _decimal_literal(value: Decimal) -> str:
    if value.is_nan():
        return "'NaN'"
    if value.is_infinite():
        return "'Infinity'" if value > 0 else "'-Infinity'"
    return format(value, 'f')


def _timestamptz_literal(value: datetime) -> str:
    # psycopg2 reads 'infinity' and '-infinity' as datetime.max and datetime.min
    if value.replace(tzinfo=None) == datetime.max:
        return "'infinity'"
    if value.replace(tzinfo=None) == datetime.min:
        return "'-infinity'"

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    # strftime does not zero-pad years below 1000
    text = (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}"
    )
    if value.microsecond:
        text += f".{value.microsecond:06d}"
    return f"'{text}'"


def _convert(value: Any, kind: ColumnKind) -> str:
    if kind is ColumnKind.BOOLEAN:
        if not isinstance(value, bool):
            raise TypeError(f"expected bool, got {type(value).__name__}")
        return 'true' if value else 'false'

    if kind in _INTEGER_KINDS:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"expected int, got {type(value).__name__}")
        return str(value)

    if kind is ColumnKind.FLOAT:
        if isinstance(value, bool) or not isinstance(value, (float, int)):
            raise TypeError(f"expected float, got {type(value).__name__}")
        return _float_literal(float(value))

    if kind is ColumnKind.DECIMAL:
        if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
            raise TypeError(f"expected Decimal, got {type(value).__name__}")
        return _decimal_literal(Decimal(value))

    if kind is ColumnKind.TEXT:
        if not isinstance(value, str):
            raise TypeError(f"expected str, got {type(value).__name__}")
        return quote_text(value)

    if kind is ColumnKind.TIMESTAMPTZ:
        if not isinstance(value, datetime):
            raise TypeError(f"expected datetime, got {type(value).__name__}")
        return _timestamptz_literal(value)

    raise TypeError(f"no conversion for {kind}")


def to_literal(value: Any, declared_type: Union[int, ColumnKind, None]) -> str:
    """
    Render ``value`` as SQL literal text for a column of ``declared_type``.

    Args:
        value: Cell value as returned by psycopg2
        declared_type: PostgreSQL type OID or ColumnKind

    Returns:
        SQL literal text; 'NULL' for NULL values, unsupported types and
        values that do not match the declared type

    Examples:
        >>> to_literal("O'Brien", 25)
        "'O''Brien'"
        >>> to_literal(Decimal('12.3400'), 1700)
        '12.3400'
        >>> to_literal(None, 23)
        'NULL'
    """
    kind = column_kind(declared_type)
    if kind is None:
        logger.error(f"Error. Postgres type not supported yet by the importer: {declared_type}")
        return NULL_LITERAL

    if value is None:
        return NULL_LITERAL

    try:
        return _convert(value, kind)
    except (TypeError, ValueError, ArithmeticError) as e:
        logger.debug(f"Couldn't convert value for {kind.value} column, writing NULL: {e}")
        return NULL_LITERAL
