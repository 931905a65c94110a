"""Domain service storing rows and applying mutations atomically.

Every mutation works on a staged copy of the target table's rows and
swaps it in only after all checks pass, so a failed insert, update,
delete or alteration leaves the store exactly as it was. Sequence
counters advanced by a failed mutation are rolled back too.
"""

import itertools
from contextlib import contextmanager
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Iterable,
    Iterator,
    Mapping,
    Optional,
)

from relstore.domain.alterations import (
    AddColumn,
    Alteration,
    AlterColumnType,
    DropColumn,
    RenameColumn,
)
from relstore.domain.entities.column import Column
from relstore.domain.entities.table import Table
from relstore.domain.exceptions import (
    NoPrimaryKeyError,
    RowNotFoundError,
    TypeMismatchError,
    UnknownColumnError,
)
from relstore.domain.services.constraint_enforcer import ConstraintEnforcer
from relstore.domain.services.type_checker import TypeChecker
from relstore.domain.value_objects import (
    DEFAULT,
    ExpressionDefault,
    LiteralDefault,
    SequenceDefault,
)
from relstore.log import logger

if TYPE_CHECKING:
    from relstore.domain.entities.sequence import Sequence
    from relstore.domain.services.schema_registry import (
        AlterationPlan,
        SchemaRegistry,
    )

logger = logger.getChild(__name__)

Row = dict[str, Any]
Predicate = Callable[[Row], bool]


class TableScan:
    """Lazy, restartable iteration over one table's rows.

    Each pass copies the rows under the writer lock when it starts and
    then yields them without holding the lock, so a pass never observes
    a half-applied mutation and later passes see later commits.
    """

    def __init__(self, store: "RowStore", table: str) -> None:
        self._store = store
        self.table = table

    def __iter__(self) -> Iterator[Row]:
        return iter(self._store.rows(self.table))

    def __repr__(self) -> str:
        return f"TableScan({self.table!r})"


class RowStore:
    """Per-table ordered row storage with constraint enforcement.

    Rows are kept by an internal row id in insertion order and are
    addressed externally by primary key value (a scalar, or a tuple for
    composite keys). Returned rows are copies.

    Attributes:
        _registry: SchemaRegistry whose lock serializes all writers.
        _enforcer: ConstraintEnforcer validating every candidate row.
        _rows: Row id to row mapping per table name.
        _rowids: Process-wide row id counter.
    """

    def __init__(
        self,
        registry: "SchemaRegistry",
        enforcer: Optional[ConstraintEnforcer] = None,
        type_checker: Optional[TypeChecker] = None,
    ) -> None:
        """Initialize with a SchemaRegistry.

        Args:
            registry: Registry holding table definitions and sequences.
            enforcer: Constraint enforcer; built from the registry if
                      omitted.
            type_checker: Shared TypeChecker for key lookups.
        """
        self._registry = registry
        self._type_checker = type_checker or TypeChecker()
        self._enforcer = enforcer or ConstraintEnforcer(
            registry, self._type_checker
        )
        self._rows: dict[str, dict[int, Row]] = {}
        self._rowids = itertools.count(1)

    @property
    def lock(self):
        return self._registry.lock

    # ── Insert ────────────────────────────────────────────────

    def insert(self, table: str, values: Mapping[str, Any]) -> Row:
        """Insert one row (INSERT INTO ... VALUES).

        Omitted columns, and columns given as ``DEFAULT``, take the
        column default: the next sequence value, the literal, the
        evaluated expression, or NULL when the column has none.

        Args:
            table: Target table name.
            values: Column name to value for the supplied columns.

        Returns:
            The stored row, including generated and defaulted values.

        Raises:
            UnknownTableError: If the table does not exist.
            UnknownColumnError: If ``values`` names a missing column.
            ConstraintViolationError: If any constraint fails.
            TypeMismatchError: If a value does not fit its column.
        """
        return self.insert_many(table, [values])[0]

    def insert_many(
        self, table: str, rows: Iterable[Mapping[str, Any]]
    ) -> list[Row]:
        """Insert several rows as one all-or-nothing mutation.

        Args:
            table: Target table name.
            rows: One mapping per row, as for ``insert``.

        Returns:
            The stored rows in order.
        """
        with self._mutation():
            definition = self._registry.get_table(table)
            staged = dict(self._rows.get(table, {}))
            inserted = []
            for values in rows:
                self._check_columns(definition, values)
                candidate = {}
                for column in definition.columns:
                    value = values.get(column.name, DEFAULT)
                    if value is DEFAULT:
                        value = self._resolve_default(column)
                    candidate[column.name] = value
                row = self._enforcer.validate(
                    definition, candidate, staged, self._lookup
                )
                staged[next(self._rowids)] = row
                inserted.append(row)
            self._rows[table] = staged
            logger.debug("inserted %d row(s) into %s", len(inserted), table)
            return [dict(r) for r in inserted]

    # ── Read ──────────────────────────────────────────────────

    def get(self, table: str, key: Any) -> Row:
        """Fetch one row by primary key.

        Args:
            table: Table name.
            key: Primary key value, or a tuple for composite keys.

        Returns:
            Copy of the row.

        Raises:
            UnknownTableError: If the table does not exist.
            NoPrimaryKeyError: If the table has no primary key.
            RowNotFoundError: If no row has that key.
        """
        with self.lock:
            definition = self._registry.get_table(table)
            rows = self._rows.get(table, {})
            return dict(rows[self._find(definition, rows, key)])

    def rows(self, table: str) -> list[Row]:
        """Snapshot of all rows of a table, in insertion order."""
        with self.lock:
            self._registry.get_table(table)
            return [dict(r) for r in self._rows.get(table, {}).values()]

    def scan(self, table: str) -> TableScan:
        """Return a lazy, restartable iterable over a table's rows.

        Raises:
            UnknownTableError: If the table does not exist.
        """
        self._registry.get_table(table)
        return TableScan(self, table)

    def count(self, table: str) -> int:
        with self.lock:
            self._registry.get_table(table)
            return len(self._rows.get(table, {}))

    # ── Update ────────────────────────────────────────────────

    def update(
        self, table: str, key: Any, changes: Mapping[str, Any]
    ) -> Row:
        """Change columns of the row with the given primary key.

        A change value may be ``DEFAULT`` (use the column default) or a
        callable receiving the current row and returning the new value.

        Args:
            table: Table name.
            key: Primary key value, or a tuple for composite keys.
            changes: Column name to new value.

        Returns:
            The row after the update.

        Raises:
            RowNotFoundError: If no row has that key.
            ConstraintViolationError: If any constraint fails, including
                                      changing a key still referenced
                                      by child rows.
        """
        with self._mutation():
            definition = self._registry.get_table(table)
            staged = dict(self._rows.get(table, {}))
            rowid = self._find(definition, staged, key)
            old, new = self._stage_update(definition, staged, rowid, changes)
            self._enforcer.check_references(
                definition, old, new, staged, self._lookup
            )
            self._rows[table] = staged
            logger.debug("updated %s row %r", table, key)
            return dict(new)

    def update_where(
        self,
        table: str,
        predicate: Optional[Predicate],
        changes: Mapping[str, Any],
    ) -> int:
        """Apply ``changes`` to every row matching ``predicate``.

        Args:
            table: Table name.
            predicate: Receives a row copy; None matches every row.
            changes: As for ``update``.

        Returns:
            Number of rows updated.
        """
        with self._mutation():
            definition = self._registry.get_table(table)
            staged = dict(self._rows.get(table, {}))
            matched = self._match(staged, predicate)
            pairs = [
                self._stage_update(definition, staged, rowid, changes)
                for rowid in matched
            ]
            for old, new in pairs:
                self._enforcer.check_references(
                    definition, old, new, staged, self._lookup
                )
            self._rows[table] = staged
            logger.debug("updated %d row(s) in %s", len(pairs), table)
            return len(pairs)

    # ── Delete ────────────────────────────────────────────────

    def delete(self, table: str, key: Any) -> Row:
        """Remove the row with the given primary key.

        Returns:
            The removed row.

        Raises:
            RowNotFoundError: If no row has that key.
            ForeignKeyViolationError: If child rows reference it.
        """
        with self._mutation():
            definition = self._registry.get_table(table)
            staged = dict(self._rows.get(table, {}))
            removed = staged.pop(self._find(definition, staged, key))
            self._enforcer.check_references(
                definition, removed, None, staged, self._lookup
            )
            self._rows[table] = staged
            logger.debug("deleted %s row %r", table, key)
            return removed

    def delete_where(
        self, table: str, predicate: Optional[Predicate] = None
    ) -> int:
        """Remove every row matching ``predicate`` (all rows if None).

        Returns:
            Number of rows removed.

        Raises:
            ForeignKeyViolationError: If child rows reference any of
                                      them; nothing is removed then.
        """
        with self._mutation():
            definition = self._registry.get_table(table)
            staged = dict(self._rows.get(table, {}))
            removed = [
                staged.pop(rowid) for rowid in self._match(staged, predicate)
            ]
            for row in removed:
                self._enforcer.check_references(
                    definition, row, None, staged, self._lookup
                )
            self._rows[table] = staged
            logger.debug("deleted %d row(s) from %s", len(removed), table)
            return len(removed)

    # ── Schema changes ────────────────────────────────────────

    def alter_table(self, table: str, change: Alteration) -> Table:
        """Alter a table and migrate its rows in one step.

        New columns are filled from their default, dropped columns are
        removed, renamed columns rekeyed and retyped columns converted.
        Every migrated row is then re-validated against the new
        definition, so SET NOT NULL and ADD CONSTRAINT fail when
        existing data does not comply.

        Args:
            table: Table name.
            change: Alteration value object.

        Returns:
            Copy of the new definition.

        Raises:
            Anything SchemaRegistry.plan_alteration raises, plus
            ConstraintViolationError / TypeMismatchError for rows that
            do not fit the new definition.
        """
        with self._mutation():
            plan = self._registry.plan_alteration(table, change)
            old_rows = self._rows.get(table, {})
            migrated = {
                rowid: self._migrate_row(plan, change, row)
                for rowid, row in old_rows.items()
            }
            validated: dict[int, Row] = {}
            for rowid, row in migrated.items():
                validated[rowid] = self._enforcer.validate(
                    plan.table, row, migrated, self._lookup, rowid=rowid
                )
            self._registry.commit(plan)
            self._rows.pop(table, None)
            self._rows[plan.table.name] = validated
            return plan.table.copy()

    def drop_table(self, table: str) -> None:
        """Drop a table with all of its rows (DROP TABLE)."""
        with self._mutation():
            self._registry.drop_table(table)
            self._rows.pop(table, None)

    # ── Snapshot support ──────────────────────────────────────

    def export_rows(self) -> dict[str, list[Row]]:
        """Copy every table's rows, keyed by table name."""
        with self.lock:
            return {
                name: [dict(r) for r in self._rows.get(name, {}).values()]
                for name in self._registry.table_names()
            }

    def restore_rows(self, rows: Mapping[str, Iterable[Row]]) -> None:
        """Replace all stored rows with previously exported ones."""
        with self.lock:
            self._rows = {
                name: {next(self._rowids): dict(r) for r in table_rows}
                for name, table_rows in rows.items()
            }

    # ── Helpers ───────────────────────────────────────────────

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        with self.lock:
            state = self._registry.sequence_state()
            try:
                yield
            except BaseException:
                self._registry.restore_sequence_state(state)
                raise

    def _lookup(self, table: str) -> Iterable[Row]:
        return self._rows.get(table, {}).values()

    def _resolve_default(
        self,
        column: Column,
        pending: Optional[Mapping[str, Optional["Sequence"]]] = None,
    ) -> Any:
        default = column.default
        if isinstance(default, SequenceDefault):
            seq = (pending or {}).get(default.sequence)
            if seq is not None:
                return seq.next_value()
            return self._registry.next_value(default.sequence)
        if isinstance(default, LiteralDefault):
            return default.value
        if isinstance(default, ExpressionDefault):
            return default.evaluate()
        return None

    def _stage_update(
        self,
        definition: Table,
        staged: dict[int, Row],
        rowid: int,
        changes: Mapping[str, Any],
    ) -> tuple[Row, Row]:
        self._check_columns(definition, changes)
        old = staged[rowid]
        candidate = dict(old)
        for name, value in changes.items():
            if value is DEFAULT:
                value = self._resolve_default(definition.get_column(name))
            elif callable(value):
                value = value(dict(old))
            candidate[name] = value
        new = self._enforcer.validate(
            definition, candidate, staged, self._lookup, rowid=rowid
        )
        staged[rowid] = new
        return old, new

    def _migrate_row(
        self, plan: "AlterationPlan", change: Alteration, row: Row
    ) -> Row:
        if isinstance(change, AddColumn):
            column = plan.table.get_column(change.column.name)
            value = self._resolve_default(column, plan.sequences)
            return {
                name: (value if name == column.name else row[name])
                for name in plan.table.column_names
            }
        if isinstance(change, DropColumn):
            return {k: v for k, v in row.items() if k != change.name}
        if isinstance(change, RenameColumn):
            return {
                (change.new if k == change.old else k): v
                for k, v in row.items()
            }
        if isinstance(change, AlterColumnType):
            column = plan.table.get_column(change.name)
            migrated = dict(row)
            migrated[column.name] = self._type_checker.cast(
                plan.table.name, column, row[column.name]
            )
            return migrated
        return dict(row)

    def _find(
        self, definition: Table, rows: Mapping[int, Row], key: Any
    ) -> int:
        pk = definition.primary_key
        if pk is None:
            raise NoPrimaryKeyError(definition.name)
        values = key if isinstance(key, tuple) else (key,)
        if len(values) != len(pk.columns):
            raise RowNotFoundError(definition.name, key)
        try:
            wanted = tuple(
                self._type_checker.coerce(
                    definition.name, definition.get_column(c), v
                )
                for c, v in zip(pk.columns, values)
            )
        except TypeMismatchError:
            raise RowNotFoundError(definition.name, key) from None
        for rowid, row in rows.items():
            if pk.key_of(row) == wanted:
                return rowid
        raise RowNotFoundError(definition.name, key)

    @staticmethod
    def _match(
        rows: Mapping[int, Row], predicate: Optional[Predicate]
    ) -> list[int]:
        if predicate is None:
            return list(rows)
        return [rowid for rowid, row in rows.items() if predicate(dict(row))]

    @staticmethod
    def _check_columns(definition: Table, values: Mapping[str, Any]) -> None:
        for name in values:
            if not definition.has_column(name):
                raise UnknownColumnError(definition.name, name)
