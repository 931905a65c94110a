"""Domain service validating candidate rows against their table.

Checks always run in the same order so the first violation reported
for a given row is deterministic:

1. NOT NULL on non-key columns
2. type and format (coercion to the declared column type)
3. CHECK constraints
4. UNIQUE constraints
5. PRIMARY KEY (NULL, then duplicate)
6. FOREIGN KEY resolution
"""

from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Optional

from relstore.domain.entities.table import Table
from relstore.domain.exceptions import (
    CheckConstraintViolationError,
    ForeignKeyViolationError,
    NullConstraintViolationError,
    UniqueConstraintViolationError,
)
from relstore.domain.services.type_checker import TypeChecker
from relstore.log import logger

if TYPE_CHECKING:
    from relstore.domain.entities.constraint import Constraint
    from relstore.domain.services.schema_registry import SchemaRegistry

logger = logger.getChild(__name__)

Row = dict[str, Any]
RowLookup = Callable[[str], Iterable[Row]]


class ConstraintEnforcer:
    """Domain service enforcing NOT NULL, type, CHECK, UNIQUE, PRIMARY KEY
    and FOREIGN KEY rules.

    Attributes:
        _registry: Source of foreign keys that reference a table.
        _type_checker: Converts values to column types (step 2).
    """

    def __init__(
        self,
        registry: "SchemaRegistry",
        type_checker: Optional[TypeChecker] = None,
    ) -> None:
        """Initialize with a SchemaRegistry.

        Args:
            registry: Registry used for reverse foreign key lookups.
            type_checker: Shared TypeChecker; a new one if omitted.
        """
        self._registry = registry
        self._type_checker = type_checker or TypeChecker()

    def validate(
        self,
        table: Table,
        row: Mapping[str, Any],
        siblings: Mapping[int, Row],
        lookup: RowLookup,
        rowid: Optional[int] = None,
    ) -> Row:
        """Validate one candidate row.

        Args:
            table: Definition the row must satisfy.
            row: Candidate values for every column of ``table``.
            siblings: Current rows of ``table`` by row id, including the
                      row's own previous version on update.
            lookup: Returns the rows of another table, for foreign keys.
            rowid: Id of the row being replaced (None on insert).

        Returns:
            The row with every value coerced to its column type.

        Raises:
            NullConstraintViolationError: Step 1 or 5.
            TypeMismatchError: Step 2.
            CheckConstraintViolationError: Step 3.
            UniqueConstraintViolationError: Step 4 or 5.
            ForeignKeyViolationError: Step 6.
        """
        pk = table.primary_key
        key_columns = set(pk.columns) if pk is not None else set()

        for column in table.columns:
            if column.name in key_columns or column.nullable:
                continue
            if row.get(column.name) is None:
                raise NullConstraintViolationError(table.name, (column.name,))

        coerced = {
            column.name: self._type_checker.coerce(
                table.name, column, row.get(column.name)
            )
            for column in table.columns
        }

        padded = table.padded_columns
        for check in table.checks:
            if not check.evaluate(coerced, padded):
                raise CheckConstraintViolationError(
                    table.name,
                    check.columns,
                    coerced.get(check.column),
                    constraint=check.name,
                )

        for unique in table.unique_constraints:
            self._check_unique(table, unique, coerced, siblings, rowid)

        if pk is not None:
            for column in pk.columns:
                if coerced.get(column) is None:
                    raise NullConstraintViolationError(table.name, (column,))
            self._check_unique(table, pk, coerced, siblings, rowid)

        for fk in table.foreign_keys:
            key = fk.key_of(coerced)
            if None in key:
                continue
            if fk.ref_table == table.name:
                parents = [
                    r for rid, r in siblings.items() if rid != rowid
                ]
                parents.append(coerced)
            else:
                parents = lookup(fk.ref_table)
            if not any(
                tuple(p.get(c) for c in fk.ref_columns) == key
                for p in parents
            ):
                raise ForeignKeyViolationError(
                    table.name,
                    fk.columns,
                    _scalar(key),
                    constraint=fk.name,
                    message=(
                        f'insert or update on table "{table.name}" violates '
                        f'foreign key constraint "{fk.name}": key '
                        f"({', '.join(fk.columns)})=({_scalar(key)!r}) "
                        f'is not present in table "{fk.ref_table}"'
                    ),
                )
        return coerced

    def check_references(
        self,
        table: Table,
        old: Row,
        new: Optional[Row],
        siblings: Mapping[int, Row],
        lookup: RowLookup,
    ) -> None:
        """Reject removing a key value that child rows still reference.

        Called after a delete (``new`` is None) or an update of a
        parent row. Referenced rows behave as ON DELETE/UPDATE RESTRICT.

        Args:
            table: Parent table definition.
            old: The parent row before the mutation.
            new: The parent row after the mutation, or None if deleted.
            siblings: Rows of ``table`` after the mutation.
            lookup: Returns the rows of another table.

        Raises:
            ForeignKeyViolationError: If a child row references ``old``.
        """
        for child_name, fk in self._registry.referencing_keys(table.name):
            old_key = tuple(old.get(c) for c in fk.ref_columns)
            if None in old_key:
                continue
            if new is not None and old_key == tuple(
                new.get(c) for c in fk.ref_columns
            ):
                continue
            if child_name == table.name:
                children = siblings.values()
            else:
                children = lookup(child_name)
            if any(fk.key_of(child) == old_key for child in children):
                logger.info(
                    "restricted change of %s%s: still referenced by %s",
                    table.name, old_key, child_name,
                )
                raise ForeignKeyViolationError(
                    table.name,
                    fk.ref_columns,
                    _scalar(old_key),
                    constraint=fk.name,
                    message=(
                        f'update or delete on table "{table.name}" violates '
                        f'foreign key constraint "{fk.name}" on table '
                        f'"{child_name}": key ({", ".join(fk.ref_columns)})='
                        f"({_scalar(old_key)!r}) is still referenced"
                    ),
                )

    def _check_unique(
        self,
        table: Table,
        constraint: "Constraint",
        row: Row,
        siblings: Mapping[int, Row],
        rowid: Optional[int],
    ) -> None:
        key = constraint.key_of(row)
        if None in key:
            return
        for other_id, other in siblings.items():
            if other_id != rowid and constraint.key_of(other) == key:
                raise UniqueConstraintViolationError(
                    table.name,
                    constraint.columns,
                    _scalar(key),
                    constraint=constraint.name,
                )


def _scalar(key: tuple) -> Any:
    return key[0] if len(key) == 1 else key
