"""Tagged JSON encoding for stored values.

JSON has no decimal, date or timestamp type, so those are wrapped in a
single-key object naming the type. Exact decimals keep every digit.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from relstore.domain.exceptions import SnapshotError

_DECIMAL = "$decimal"
_DATE = "$date"
_TIMESTAMP = "$timestamp"
_TUPLE = "$tuple"


def encode_value(value: Any) -> Any:
    """Convert a stored value to a JSON-compatible structure.

    Raises:
        SnapshotError: If the value has no encoding.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, Decimal):
        return {_DECIMAL: str(value)}
    # datetime is a date subclass, test it first.
    if isinstance(value, datetime):
        return {_TIMESTAMP: value.isoformat()}
    if isinstance(value, date):
        return {_DATE: value.isoformat()}
    if isinstance(value, (tuple, list, frozenset, set)):
        return {_TUPLE: [encode_value(v) for v in value]}
    raise SnapshotError(f"Cannot encode value of type {type(value).__name__}")


def decode_value(data: Any) -> Any:
    """Invert ``encode_value``.

    Raises:
        SnapshotError: If ``data`` is a tagged object with unknown tag
            or a malformed decimal.
    """
    if not isinstance(data, dict):
        return data
    if len(data) != 1:
        raise SnapshotError(f"Malformed encoded value: {data!r}")
    tag, raw = next(iter(data.items()))
    if tag == _DECIMAL:
        try:
            return Decimal(raw)
        except InvalidOperation:
            raise SnapshotError(f"Malformed decimal: {raw!r}") from None
    if tag == _TIMESTAMP:
        return datetime.fromisoformat(raw)
    if tag == _DATE:
        return date.fromisoformat(raw)
    if tag == _TUPLE:
        return tuple(decode_value(v) for v in raw)
    raise SnapshotError(f"Unknown value tag: {tag}")


def encode_row(row: dict[str, Any]) -> dict[str, Any]:
    return {name: encode_value(value) for name, value in row.items()}


def decode_row(data: dict[str, Any]) -> dict[str, Any]:
    return {name: decode_value(value) for name, value in data.items()}
