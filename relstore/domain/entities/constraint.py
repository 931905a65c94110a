"""Named integrity rules attached to a table.

NOT NULL is not modelled here; it is a flag on the Column, as in
PostgreSQL where it carries no constraint name.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Collection, Mapping, Optional

from relstore.domain.enums import CheckOperator, ConstraintKind


@dataclass(frozen=True)
class Constraint(ABC):
    """Abstract base for table constraints.

    Attributes:
        name: Constraint name, unique within its table.
        columns: Constrained column names, in declaration order.
    """

    name: str
    columns: tuple

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Constraint name must not be empty")
        if not self.columns:
            raise ValueError(f"Constraint {self.name} names no columns")
        object.__setattr__(self, "columns", tuple(self.columns))

    @property
    @abstractmethod
    def kind(self) -> ConstraintKind:
        """Return the kind of rule this constraint enforces."""

    def involves(self, column: str) -> bool:
        return column in self.columns

    def with_column_renamed(self, old: str, new: str) -> "Constraint":
        """Return a copy with ``old`` replaced by ``new`` in ``columns``."""
        return replace(
            self,
            columns=tuple(new if c == old else c for c in self.columns),
        )

    def key_of(self, row: Mapping[str, Any]) -> tuple:
        """Extract this constraint's column values from a row."""
        return tuple(row.get(c) for c in self.columns)


@dataclass(frozen=True)
class PrimaryKeyConstraint(Constraint):
    """Row identity: unique and never NULL."""

    @property
    def kind(self) -> ConstraintKind:
        return ConstraintKind.PRIMARY_KEY

    def __str__(self) -> str:
        cols = ", ".join(self.columns)
        return f"CONSTRAINT {self.name} PRIMARY KEY ({cols})"


@dataclass(frozen=True)
class UniqueConstraint(Constraint):
    """No two rows share the same non-NULL value tuple."""

    @property
    def kind(self) -> ConstraintKind:
        return ConstraintKind.UNIQUE

    def __str__(self) -> str:
        return f"CONSTRAINT {self.name} UNIQUE ({', '.join(self.columns)})"


@dataclass(frozen=True)
class ForeignKeyConstraint(Constraint):
    """Reference from this table's columns to a parent table's key.

    Attributes:
        ref_table: Parent table name.
        ref_columns: Parent columns, positionally matched to ``columns``.
    """

    ref_table: str = ""
    ref_columns: tuple = ()

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.ref_table:
            raise ValueError(f"Foreign key {self.name} has no parent table")
        object.__setattr__(self, "ref_columns", tuple(self.ref_columns))
        if len(self.ref_columns) != len(self.columns):
            raise ValueError(
                f"Foreign key {self.name} maps {len(self.columns)} "
                f"columns to {len(self.ref_columns)}"
            )

    @property
    def kind(self) -> ConstraintKind:
        return ConstraintKind.FOREIGN_KEY

    def references(self, table: str, column: Optional[str] = None) -> bool:
        """True when this key points at ``table`` (and ``column``)."""
        if self.ref_table != table:
            return False
        return column is None or column in self.ref_columns

    def with_parent_column_renamed(
        self, table: str, old: str, new: str
    ) -> "ForeignKeyConstraint":
        if self.ref_table != table:
            return self
        return replace(
            self,
            ref_columns=tuple(
                new if c == old else c for c in self.ref_columns
            ),
        )

    def with_parent_renamed(
        self, old: str, new: str
    ) -> "ForeignKeyConstraint":
        if self.ref_table != old:
            return self
        return replace(self, ref_table=new)

    def __str__(self) -> str:
        return (
            f"CONSTRAINT {self.name} FOREIGN KEY ({', '.join(self.columns)}) "
            f"REFERENCES {self.ref_table} ({', '.join(self.ref_columns)})"
        )


@dataclass(frozen=True)
class CheckConstraint(Constraint):
    """Boolean condition over one column, optionally against another.

    The condition is ``<column> <operator> <operand>``, or
    ``<column> <operator> <other_column>`` when ``other_column`` is set.
    A condition involving NULL is unknown, and unknown passes.

    Attributes:
        operator: Comparison to apply.
        operand: Literal right-hand side. A two-item sequence for
                 BETWEEN, a collection for IN, an int for LENGTH checks.
        other_column: Column of the same row used as right-hand side.
    """

    operator: CheckOperator = CheckOperator.GT
    operand: Any = None
    other_column: Optional[str] = None

    def __post_init__(self) -> None:
        if self.other_column is not None:
            object.__setattr__(
                self, "columns", (tuple(self.columns)[0], self.other_column)
            )
        super().__post_init__()
        if isinstance(self.operand, list):
            object.__setattr__(self, "operand", tuple(self.operand))
        between = self.operator == CheckOperator.BETWEEN
        if between and self.other_column is None:
            if not isinstance(self.operand, tuple) or len(self.operand) != 2:
                raise ValueError(
                    f"BETWEEN check {self.name} needs a (low, high) operand"
                )

    @property
    def kind(self) -> ConstraintKind:
        return ConstraintKind.CHECK

    @property
    def column(self) -> str:
        return self.columns[0]

    def with_column_renamed(self, old: str, new: str) -> "CheckConstraint":
        other = self.other_column
        if other == old:
            other = new
        column = new if self.column == old else self.column
        return replace(self, columns=(column,), other_column=other)

    def evaluate(
        self, row: Mapping[str, Any], padded: Collection[str] = ()
    ) -> bool:
        """Evaluate the condition against a row.

        Args:
            row: Column name to value mapping (already type-coerced).
            padded: Blank-padded (CHAR) columns; LENGTH ignores their
                    trailing blanks, as PostgreSQL does.

        Returns:
            False only when the condition is definitely false.
        """
        left = row.get(self.column)
        if self.other_column is not None:
            right = row.get(self.other_column)
        else:
            right = self.operand
        if left is None or right is None:
            return True

        op = self.operator
        if op == CheckOperator.GT:
            return left > right
        if op == CheckOperator.GE:
            return left >= right
        if op == CheckOperator.LT:
            return left < right
        if op == CheckOperator.LE:
            return left <= right
        if op == CheckOperator.EQ:
            return left == right
        if op == CheckOperator.NE:
            return left != right
        if op == CheckOperator.IN:
            return left in right
        if op == CheckOperator.BETWEEN:
            low, high = right
            return low <= left <= high
        if op in (CheckOperator.LENGTH_EQ, CheckOperator.LENGTH_LE):
            text = str(left)
            if self.column in padded:
                text = text.rstrip(" ")
            if op == CheckOperator.LENGTH_EQ:
                return len(text) == right
            return len(text) <= right
        raise ValueError(f"Unsupported check operator: {op}")

    def __str__(self) -> str:
        if self.other_column is not None:
            rhs = self.other_column
        elif self.operator == CheckOperator.BETWEEN:
            low, high = self.operand
            rhs = f"{_literal(low)} AND {_literal(high)}"
        else:
            rhs = _literal(self.operand)
        if self.operator in (CheckOperator.LENGTH_EQ, CheckOperator.LENGTH_LE):
            op = self.operator.value.split(" ", 1)[1]
            expr = f"LENGTH({self.column}) {op} {rhs}"
        else:
            expr = f"{self.column} {self.operator.value} {rhs}"
        return f"CONSTRAINT {self.name} CHECK ({expr})"


def _literal(value: Any) -> str:
    """Render a CHECK operand as an SQL literal."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (tuple, list, set, frozenset)):
        return "(" + ", ".join(_literal(v) for v in value) + ")"
    if isinstance(value, date):
        value = value.isoformat()
    text = str(value).replace("'", "''")
    return f"'{text}'"
