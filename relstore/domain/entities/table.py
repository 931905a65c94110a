from dataclasses import dataclass, field
from typing import Optional

from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import (
    CheckConstraint,
    Constraint,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
)
from relstore.domain.enums import ColumnType
from relstore.domain.exceptions import UnknownColumnError


@dataclass
class Table:
    """Declared shape of a relation: ordered columns plus named constraints.

    Instances handed out by the SchemaRegistry are copies; changing
    them has no effect on the registry.

    Attributes:
        name: Table name, unique within the registry.
        columns: Column definitions in declaration order.
        constraints: PRIMARY KEY, UNIQUE, FOREIGN KEY and CHECK rules.
    """

    name: str
    columns: list[Column] = field(default_factory=list)
    constraints: list[Constraint] = field(default_factory=list)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def padded_columns(self) -> frozenset:
        """Names of blank-padded CHAR columns."""
        return frozenset(
            c.name for c in self.columns
            if c.column_type == ColumnType.CHAR
        )

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def get_column(self, name: str) -> Column:
        """Look up a column by name.

        Args:
            name: Column name.

        Returns:
            The Column definition.

        Raises:
            UnknownColumnError: If the table has no such column.
        """
        for column in self.columns:
            if column.name == name:
                return column
        raise UnknownColumnError(self.name, name)

    def get_constraint(self, name: str) -> Optional[Constraint]:
        for constraint in self.constraints:
            if constraint.name == name:
                return constraint
        return None

    @property
    def primary_key(self) -> Optional[PrimaryKeyConstraint]:
        for constraint in self.constraints:
            if isinstance(constraint, PrimaryKeyConstraint):
                return constraint
        return None

    @property
    def unique_constraints(self) -> list[UniqueConstraint]:
        return [
            c for c in self.constraints if isinstance(c, UniqueConstraint)
        ]

    @property
    def foreign_keys(self) -> list[ForeignKeyConstraint]:
        return [
            c for c in self.constraints
            if isinstance(c, ForeignKeyConstraint)
        ]

    @property
    def checks(self) -> list[CheckConstraint]:
        return [
            c for c in self.constraints if isinstance(c, CheckConstraint)
        ]

    def unique_keys(self) -> list[tuple]:
        """Column tuples guaranteed unique (primary key and UNIQUE)."""
        keys = [c.columns for c in self.unique_constraints]
        if self.primary_key is not None:
            keys.insert(0, self.primary_key.columns)
        return keys

    def copy(self) -> "Table":
        return Table(
            name=self.name,
            columns=list(self.columns),
            constraints=list(self.constraints),
        )

    def to_sql(self) -> str:
        """Render an equivalent CREATE TABLE statement."""
        lines = [f"    {column}" for column in self.columns]
        lines.extend(f"    {constraint}" for constraint in self.constraints)
        body = ",\n".join(lines)
        return f"CREATE TABLE {self.name} (\n{body}\n);"
