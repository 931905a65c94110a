from dataclasses import dataclass, replace
from typing import Optional

from relstore.domain.enums import ColumnType
from relstore.domain.value_objects import Default, SequenceDefault


@dataclass(frozen=True)
class Column:
    """Declared shape of one column.

    Attributes:
        name: Column name, unique within its table.
        column_type: Declared storage type.
        length: Maximum (VARCHAR) or fixed (CHAR) length in characters.
        precision: Total significant digits for NUMERIC.
        scale: Digits after the decimal point for NUMERIC.
        nullable: False for NOT NULL columns.
        default: Value source used when the column is omitted.
    """

    name: str
    column_type: ColumnType = ColumnType.TEXT
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    nullable: bool = True
    default: Optional[Default] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Column name must not be empty")
        if self.length is not None and self.length < 1:
            raise ValueError(f"Length must be >= 1, got {self.length}")
        if self.precision is not None and self.precision < 1:
            raise ValueError(
                f"Precision must be >= 1, got {self.precision}"
            )
        if self.scale is not None:
            if self.scale < 0:
                raise ValueError(f"Scale must be >= 0, got {self.scale}")
            if self.precision is not None and self.scale > self.precision:
                raise ValueError(
                    f"Scale {self.scale} exceeds precision {self.precision}"
                )

    @property
    def is_generated(self) -> bool:
        """True when values come from a sequence."""
        return isinstance(self.default, SequenceDefault)

    @property
    def type_sql(self) -> str:
        """Render the declared type as SQL (e.g. ``NUMERIC(10,2)``)."""
        name = self.column_type.value
        if self.column_type in (ColumnType.VARCHAR, ColumnType.CHAR):
            if self.length is not None:
                return f"{name}({self.length})"
        elif self.column_type == ColumnType.NUMERIC:
            if self.precision is not None:
                return f"{name}({self.precision},{self.scale or 0})"
        return name

    def renamed(self, name: str) -> "Column":
        return replace(self, name=name)

    def __str__(self) -> str:
        parts = [self.name, self.type_sql]
        if not self.nullable:
            parts.append("NOT NULL")
        if self.default is not None:
            parts.append(f"DEFAULT {self.default}")
        return " ".join(parts)
