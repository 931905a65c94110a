"""Domain service coercing Python values into a column's declared type.

Exact-decimal columns always hold ``decimal.Decimal``; floats handed to
them are converted through their shortest repr so no binary rounding
noise leaks into stored values.
"""

import math
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

from relstore.domain.entities.column import Column
from relstore.domain.enums import ColumnType
from relstore.domain.exceptions import TypeMismatchError

_INTEGER_RANGES = {
    ColumnType.SMALLINT: (-(2 ** 15), 2 ** 15 - 1),
    ColumnType.INTEGER: (-(2 ** 31), 2 ** 31 - 1),
    ColumnType.BIGINT: (-(2 ** 63), 2 ** 63 - 1),
}

_TEXT_TYPES = frozenset(
    {ColumnType.VARCHAR, ColumnType.CHAR, ColumnType.TEXT}
)

_TRUE_LITERALS = frozenset({"t", "true", "y", "yes", "on", "1"})
_FALSE_LITERALS = frozenset({"f", "false", "n", "no", "off", "0"})


class TypeChecker:
    """Domain service converting values to column types.

    Stateless; one instance is shared by the enforcer and the row store.
    """

    def coerce(self, table: str, column: Column, value: Any) -> Any:
        """Convert ``value`` into the representation stored for ``column``.

        Args:
            table: Owning table name, used in error reports.
            column: Target column definition.
            value: Candidate value. None passes through unchanged.

        Returns:
            The stored representation of ``value``.

        Raises:
            TypeMismatchError: If the value cannot be represented.
        """
        if value is None:
            return None
        handler = self._HANDLERS[column.column_type]
        try:
            return handler(self, column, value)
        except _Mismatch as exc:
            raise TypeMismatchError(
                table, column.name, value, column.type_sql, str(exc)
            ) from None

    def cast(self, table: str, column: Column, value: Any) -> Any:
        """Convert like an explicit CAST, as ALTER COLUMN ... TYPE does.

        Same as ``coerce`` except that non-text values headed for a
        text column are rendered as text first.
        """
        if (
            column.column_type in _TEXT_TYPES
            and value is not None
            and not isinstance(value, str)
        ):
            if isinstance(value, bool):
                value = "true" if value else "false"
            elif isinstance(value, (date, datetime)):
                value = value.isoformat()
            else:
                value = str(value)
        return self.coerce(table, column, value)

    def _coerce_integer(self, column: Column, value: Any) -> int:
        if isinstance(value, bool):
            raise _Mismatch("boolean is not an integer")
        if isinstance(value, int):
            result = value
        elif isinstance(value, (float, Decimal)):
            if not math.isfinite(value):
                raise _Mismatch("not a finite number")
            if value != int(value):
                raise _Mismatch("not an integral value")
            result = int(value)
        elif isinstance(value, str):
            try:
                result = int(value.strip())
            except ValueError:
                raise _Mismatch("not an integer literal") from None
        else:
            raise _Mismatch(f"unsupported type {type(value).__name__}")

        low, high = _INTEGER_RANGES[column.column_type]
        if not low <= result <= high:
            raise _Mismatch("out of range")
        return result

    def _coerce_numeric(self, column: Column, value: Any) -> Decimal:
        if isinstance(value, bool):
            raise _Mismatch("boolean is not numeric")
        if isinstance(value, Decimal):
            result = value
        elif isinstance(value, int):
            result = Decimal(value)
        elif isinstance(value, float):
            result = Decimal(repr(value))
        elif isinstance(value, str):
            try:
                result = Decimal(value.strip())
            except InvalidOperation:
                raise _Mismatch("not a numeric literal") from None
        else:
            raise _Mismatch(f"unsupported type {type(value).__name__}")

        if not result.is_finite():
            raise _Mismatch("not a finite number")
        integer_digits = None
        if column.precision is not None:
            integer_digits = column.precision - (column.scale or 0)
            # Coarse bound first so huge values never reach quantize.
            if result and result.adjusted() >= integer_digits:
                raise _overflow(integer_digits)
        if column.scale is not None:
            with localcontext() as ctx:
                ctx.prec = max(
                    ctx.prec, max(result.adjusted(), 0) + column.scale + 2
                )
                try:
                    result = result.quantize(
                        Decimal(1).scaleb(-column.scale),
                        rounding=ROUND_HALF_UP,
                    )
                except InvalidOperation:
                    raise _Mismatch("cannot round to column scale") from None
        # Rounding may carry into one more integer digit.
        if integer_digits is not None:
            if abs(result) >= Decimal(10) ** integer_digits:
                raise _overflow(integer_digits)
        return result

    def _coerce_float(self, column: Column, value: Any) -> float:
        if isinstance(value, bool):
            raise _Mismatch("boolean is not a float")
        if isinstance(value, (int, float, Decimal)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise _Mismatch("not a floating point literal") from None
        raise _Mismatch(f"unsupported type {type(value).__name__}")

    def _coerce_text(self, column: Column, value: Any) -> str:
        if not isinstance(value, str):
            raise _Mismatch(f"expected text, got {type(value).__name__}")
        if column.length is None:
            return value
        if column.column_type == ColumnType.CHAR:
            stripped = value.rstrip(" ")
            if len(stripped) > column.length:
                raise _Mismatch(f"value too long for {column.type_sql}")
            return stripped.ljust(column.length)
        if column.column_type == ColumnType.VARCHAR:
            if len(value) > column.length:
                raise _Mismatch(f"value too long for {column.type_sql}")
        return value

    def _coerce_date(self, column: Column, value: Any) -> date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                return date.fromisoformat(value.strip())
            except ValueError:
                raise _Mismatch("not an ISO date") from None
        raise _Mismatch(f"unsupported type {type(value).__name__}")

    def _coerce_timestamp(self, column: Column, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.strip())
            except ValueError:
                raise _Mismatch("not an ISO timestamp") from None
        raise _Mismatch(f"unsupported type {type(value).__name__}")

    def _coerce_boolean(self, column: Column, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            literal = value.strip().lower()
            if literal in _TRUE_LITERALS:
                return True
            if literal in _FALSE_LITERALS:
                return False
            raise _Mismatch("not a boolean literal")
        raise _Mismatch(f"unsupported type {type(value).__name__}")

    _HANDLERS = {
        ColumnType.SMALLINT: _coerce_integer,
        ColumnType.INTEGER: _coerce_integer,
        ColumnType.BIGINT: _coerce_integer,
        ColumnType.NUMERIC: _coerce_numeric,
        ColumnType.REAL: _coerce_float,
        ColumnType.DOUBLE_PRECISION: _coerce_float,
        ColumnType.VARCHAR: _coerce_text,
        ColumnType.CHAR: _coerce_text,
        ColumnType.TEXT: _coerce_text,
        ColumnType.DATE: _coerce_date,
        ColumnType.TIMESTAMP: _coerce_timestamp,
        ColumnType.BOOLEAN: _coerce_boolean,
    }


class _Mismatch(Exception):
    """Internal signal carrying the reason a coercion failed."""


def _overflow(integer_digits: int) -> _Mismatch:
    return _Mismatch(
        f"numeric field overflow, at most {integer_digits} "
        f"digit(s) before the decimal point"
    )
