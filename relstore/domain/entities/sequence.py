from dataclasses import dataclass
from typing import Optional


@dataclass
class Sequence:
    """Monotonic integer generator owned by one column.

    Only the RowStore advances a sequence, and only while holding its
    writer lock.

    Attributes:
        name: Sequence name (``<table>_<column>_seq``).
        table: Owning table name.
        column: Owning column name.
        start: First value handed out.
        increment: Step between consecutive values (> 0).
        last_value: Most recent value handed out, or None if unused.
    """

    name: str
    table: str
    column: str
    start: int = 1
    increment: int = 1
    last_value: Optional[int] = None

    def __post_init__(self) -> None:
        if self.increment < 1:
            raise ValueError(
                f"Sequence increment must be >= 1, got {self.increment}"
            )

    def next_value(self) -> int:
        """Advance the sequence and return the new value."""
        if self.last_value is None:
            self.last_value = self.start
        else:
            self.last_value += self.increment
        return self.last_value

    def owned_by(self, table: str, column: str) -> bool:
        return self.table == table and self.column == column
