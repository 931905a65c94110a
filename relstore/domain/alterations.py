"""ALTER TABLE actions as immutable value objects.

Each class is one discrete action; the SchemaRegistry applies them and
the RowStore migrates existing rows to match.
"""

from dataclasses import dataclass
from typing import Optional, Union

from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import Constraint
from relstore.domain.enums import ColumnType
from relstore.domain.value_objects import Default


@dataclass(frozen=True)
class AddColumn:
    """ADD COLUMN. Existing rows receive the column default (or NULL)."""

    column: Column


@dataclass(frozen=True)
class DropColumn:
    """DROP COLUMN, together with the table's constraints that use it."""

    name: str


@dataclass(frozen=True)
class RenameColumn:
    """RENAME COLUMN old TO new."""

    old: str
    new: str


@dataclass(frozen=True)
class AlterColumnType:
    """ALTER COLUMN ... TYPE. Existing values are converted."""

    name: str
    column_type: ColumnType
    length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None


@dataclass(frozen=True)
class SetDefault:
    """ALTER COLUMN ... SET DEFAULT. Existing rows are untouched."""

    column: str
    default: Default


@dataclass(frozen=True)
class DropDefault:
    """ALTER COLUMN ... DROP DEFAULT."""

    column: str


@dataclass(frozen=True)
class SetNotNull:
    """ALTER COLUMN ... SET NOT NULL. Fails if a row holds NULL."""

    column: str


@dataclass(frozen=True)
class DropNotNull:
    """ALTER COLUMN ... DROP NOT NULL."""

    column: str


@dataclass(frozen=True)
class AddConstraint:
    """ADD CONSTRAINT. Existing rows must already satisfy it."""

    constraint: Constraint


@dataclass(frozen=True)
class DropConstraint:
    """DROP CONSTRAINT name."""

    name: str


@dataclass(frozen=True)
class RenameTable:
    """RENAME TO new_name."""

    new_name: str


Alteration = Union[
    AddColumn,
    DropColumn,
    RenameColumn,
    AlterColumnType,
    SetDefault,
    DropDefault,
    SetNotNull,
    DropNotNull,
    AddConstraint,
    DropConstraint,
    RenameTable,
]
