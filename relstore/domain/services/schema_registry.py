"""Domain service holding table definitions and their sequences.

Alterations are two-phase: ``plan_alteration`` computes the new
definitions without touching the registry, and ``commit`` installs
them. The RowStore migrates rows between the two phases so a schema
change and its row rewrite land together or not at all.
"""

import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional

from relstore.domain.alterations import (
    AddColumn,
    AddConstraint,
    Alteration,
    AlterColumnType,
    DropColumn,
    DropConstraint,
    DropDefault,
    DropNotNull,
    RenameColumn,
    RenameTable,
    SetDefault,
    SetNotNull,
)
from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import (
    CheckConstraint,
    Constraint,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
)
from relstore.domain.entities.sequence import Sequence
from relstore.domain.entities.table import Table
from relstore.domain.enums import CheckOperator, ColumnType
from relstore.domain.exceptions import (
    ConstraintDefinitionError,
    DependentObjectsError,
    DuplicateColumnError,
    DuplicateTableError,
    UnknownConstraintError,
    UnknownTableError,
)
from relstore.domain.services.type_checker import TypeChecker
from relstore.domain.value_objects import LiteralDefault, SequenceDefault
from relstore.log import logger

logger = logger.getChild(__name__)


@dataclass
class AlterationPlan:
    """Pending result of one ALTER TABLE action.

    Attributes:
        table_name: Name of the table before the change.
        change: The alteration being applied.
        table: New definition of the altered table.
        dependents: Other tables whose foreign keys are rewritten.
        sequences: Sequence changes by name; None marks a drop.
    """

    table_name: str
    change: Alteration
    table: Table
    dependents: dict[str, Table] = field(default_factory=dict)
    sequences: dict[str, Optional[Sequence]] = field(default_factory=dict)


class SchemaRegistry:
    """Registry of table definitions and the sequences they own.

    All methods are thread-safe. ``lock`` is re-entrant and is shared
    with the RowStore, which holds it for the whole of each mutation.

    Attributes:
        lock: Writer lock serializing schema and row mutations.
        _tables: Live table definitions by name, in creation order.
        _sequences: Live sequences by name.
        _type_checker: Used to validate literal defaults.
    """

    def __init__(self, type_checker: Optional[TypeChecker] = None) -> None:
        self.lock = threading.RLock()
        self._tables: dict[str, Table] = {}
        self._sequences: dict[str, Sequence] = {}
        self._type_checker = type_checker or TypeChecker()

    # ── Definition ────────────────────────────────────────────

    def define_table(
        self,
        name: str,
        columns: Iterable[Column],
        constraints: Iterable[Constraint] = (),
    ) -> Table:
        """Register a new table (CREATE TABLE).

        Args:
            name: Table name.
            columns: Column definitions in order.
            constraints: Named PRIMARY KEY, UNIQUE, FOREIGN KEY and
                         CHECK constraints.

        Returns:
            A copy of the registered definition, with sequence names
            filled in for generated columns.

        Raises:
            DuplicateTableError: If the name is taken.
            DuplicateColumnError: If a column name repeats.
            UnknownColumnError: If a constraint names a missing column.
            UnknownTableError: If a foreign key targets a missing table.
            ConstraintDefinitionError: If a constraint is malformed.
            TypeMismatchError: If a literal default does not fit its column.
        """
        with self.lock:
            if name in self._tables:
                raise DuplicateTableError(name)

            plan = AlterationPlan(
                table_name=name, change=None, table=Table(name=name)
            )
            for column in columns:
                self._add_column(plan, column)

            pending = list(constraints)
            # Keys first so foreign keys may point at this same table.
            for constraint in pending:
                if not isinstance(constraint, ForeignKeyConstraint):
                    self._add_constraint(plan.table, constraint)
            for constraint in pending:
                if isinstance(constraint, ForeignKeyConstraint):
                    self._add_constraint(plan.table, constraint)
            order = {c.name: i for i, c in enumerate(pending)}
            plan.table.constraints.sort(key=lambda c: order[c.name])

            self._tables[name] = plan.table
            self._apply_sequences(plan.sequences)
            logger.debug("defined table %s", name)
            return plan.table.copy()

    def drop_table(self, name: str) -> None:
        """Remove a table and the sequences it owns (DROP TABLE).

        Args:
            name: Table name.

        Raises:
            UnknownTableError: If the table does not exist.
            DependentObjectsError: If another table's foreign key
                                   references it.
        """
        with self.lock:
            self._get(name)
            dependents = [
                f"{child}.{fk.name}"
                for child, fk in self.referencing_keys(name)
                if child != name
            ]
            if dependents:
                raise DependentObjectsError(f"table {name}", dependents)
            del self._tables[name]
            for seq_name in [
                s.name for s in self._sequences.values() if s.table == name
            ]:
                del self._sequences[seq_name]
            logger.debug("dropped table %s", name)

    def restore(
        self, tables: Iterable[Table], sequences: Iterable[Sequence]
    ) -> None:
        """Replace the whole catalog with previously saved definitions."""
        with self.lock:
            self._tables = {t.name: t.copy() for t in tables}
            self._sequences = {s.name: replace(s) for s in sequences}

    # ── Retrieval ─────────────────────────────────────────────

    def get_table(self, name: str) -> Table:
        """Return a copy of a table definition.

        Raises:
            UnknownTableError: If the table does not exist.
        """
        with self.lock:
            return self._get(name).copy()

    def has_table(self, name: str) -> bool:
        with self.lock:
            return name in self._tables

    def list_tables(self) -> list[Table]:
        """Return copies of all table definitions in creation order."""
        with self.lock:
            return [t.copy() for t in self._tables.values()]

    def table_names(self) -> list[str]:
        with self.lock:
            return list(self._tables)

    def get_sequence(self, name: str) -> Optional[Sequence]:
        with self.lock:
            seq = self._sequences.get(name)
            return replace(seq) if seq is not None else None

    def list_sequences(self) -> list[Sequence]:
        with self.lock:
            return [replace(s) for s in self._sequences.values()]

    def referencing_keys(
        self, table: str
    ) -> list[tuple[str, ForeignKeyConstraint]]:
        """Find foreign keys in any table that point at ``table``.

        Returns:
            (child table name, foreign key) pairs.
        """
        with self.lock:
            return [
                (child.name, fk)
                for child in self._tables.values()
                for fk in child.foreign_keys
                if fk.references(table)
            ]

    # ── Sequences ─────────────────────────────────────────────

    def next_value(self, sequence: str) -> int:
        """Advance a sequence and return its new value."""
        with self.lock:
            return self._sequences[sequence].next_value()

    def sequence_state(self) -> dict[str, Optional[int]]:
        """Capture every sequence counter, for rollback."""
        with self.lock:
            return {n: s.last_value for n, s in self._sequences.items()}

    def restore_sequence_state(self, state: dict[str, Optional[int]]) -> None:
        with self.lock:
            for name, last_value in state.items():
                if name in self._sequences:
                    self._sequences[name].last_value = last_value

    # ── Alteration ────────────────────────────────────────────

    def alter_table(self, name: str, change: Alteration) -> Table:
        """Apply one ALTER TABLE action to the definition only.

        Existing rows are not migrated; use RowStore.alter_table for
        tables that hold data.

        Args:
            name: Table name.
            change: Alteration value object.

        Returns:
            Copy of the altered definition.

        Raises:
            UnknownTableError: If the table does not exist.
            UnknownColumnError: If the change names a missing column.
            UnknownConstraintError: If dropping a missing constraint.
        """
        with self.lock:
            plan = self.plan_alteration(name, change)
            self.commit(plan)
            return plan.table.copy()

    def plan_alteration(self, name: str, change: Alteration) -> AlterationPlan:
        """Compute the effect of an alteration without applying it.

        Raises:
            Same as ``alter_table``, plus DuplicateColumnError,
            DuplicateTableError, DependentObjectsError and
            ConstraintDefinitionError where the action calls for them.
        """
        with self.lock:
            plan = AlterationPlan(
                table_name=name, change=change, table=self._get(name).copy()
            )
            handler = self._ALTER_HANDLERS.get(type(change))
            if handler is None:
                raise TypeError(
                    f"Unsupported alteration: {type(change).__name__}"
                )
            handler(self, plan, change)
            return plan

    def commit(self, plan: AlterationPlan) -> None:
        """Install a plan produced by ``plan_alteration``."""
        with self.lock:
            new_name = plan.table.name
            if new_name != plan.table_name:
                self._tables = {
                    (new_name if n == plan.table_name else n): t
                    for n, t in self._tables.items()
                }
            self._tables[new_name] = plan.table
            for child_name, child in plan.dependents.items():
                self._tables[child_name] = child
            self._apply_sequences(plan.sequences)
            logger.debug(
                "altered table %s: %s", plan.table_name,
                type(plan.change).__name__,
            )

    def _plan_add_column(
        self, plan: AlterationPlan, change: AddColumn
    ) -> None:
        self._add_column(plan, change.column)

    def _plan_drop_column(
        self, plan: AlterationPlan, change: DropColumn
    ) -> None:
        table = plan.table
        column = table.get_column(change.name)
        dependents = [
            f"{child}.{fk.name}"
            for child, fk in self.referencing_keys(table.name)
            if child != table.name and fk.references(table.name, column.name)
        ]
        if dependents:
            raise DependentObjectsError(
                f"column {table.name}.{column.name}", dependents
            )
        table.columns = [c for c in table.columns if c.name != column.name]
        table.constraints = [
            c for c in table.constraints
            if not c.involves(column.name)
            and not (
                isinstance(c, ForeignKeyConstraint)
                and c.references(table.name, column.name)
            )
        ]
        for seq in self._sequences.values():
            if seq.owned_by(table.name, column.name):
                plan.sequences[seq.name] = None

    def _plan_rename_column(
        self, plan: AlterationPlan, change: RenameColumn
    ) -> None:
        table = plan.table
        table.get_column(change.old)
        if table.has_column(change.new):
            raise DuplicateColumnError(table.name, change.new)
        table.columns = [
            c.renamed(change.new) if c.name == change.old else c
            for c in table.columns
        ]
        renamed = []
        for constraint in table.constraints:
            if constraint.involves(change.old):
                constraint = constraint.with_column_renamed(
                    change.old, change.new
                )
            if isinstance(constraint, ForeignKeyConstraint):
                constraint = constraint.with_parent_column_renamed(
                    table.name, change.old, change.new
                )
            renamed.append(constraint)
        table.constraints = renamed

        for child_name, fk in self.referencing_keys(table.name):
            if child_name == table.name or not fk.references(
                table.name, change.old
            ):
                continue
            child = plan.dependents.get(child_name) or self._get(
                child_name
            ).copy()
            child.constraints = [
                c.with_parent_column_renamed(
                    table.name, change.old, change.new
                )
                if c is fk else c
                for c in child.constraints
            ]
            plan.dependents[child_name] = child

        for seq in self._sequences.values():
            if seq.owned_by(table.name, change.old):
                plan.sequences[seq.name] = replace(seq, column=change.new)

    def _plan_alter_column_type(
        self, plan: AlterationPlan, change: AlterColumnType
    ) -> None:
        column = plan.table.get_column(change.name)
        if column.is_generated and not change.column_type.is_integer:
            raise ConstraintDefinitionError(
                f"column {plan.table.name}.{column.name} is generated by a "
                f"sequence and must keep an integer type"
            )
        updated = replace(
            column,
            column_type=change.column_type,
            length=change.length,
            precision=change.precision,
            scale=change.scale,
        )
        if isinstance(updated.default, LiteralDefault):
            value = self._type_checker.cast(
                plan.table.name, updated, updated.default.value
            )
            updated = replace(updated, default=LiteralDefault(value))
        self._replace_column(plan.table, updated)
        self._check_key_types(plan, change.name)
        plan.table.constraints = [
            self._bind_check(plan.table, c)
            if isinstance(c, CheckConstraint) and c.column == change.name
            else c
            for c in plan.table.constraints
        ]

    def _plan_set_default(
        self, plan: AlterationPlan, change: SetDefault
    ) -> None:
        column = plan.table.get_column(change.column)
        updated = replace(column, default=change.default)
        updated = self._bind_default(plan, updated)
        self._replace_column(plan.table, updated)

    def _plan_drop_default(
        self, plan: AlterationPlan, change: DropDefault
    ) -> None:
        column = plan.table.get_column(change.column)
        self._replace_column(plan.table, replace(column, default=None))

    def _plan_set_not_null(
        self, plan: AlterationPlan, change: SetNotNull
    ) -> None:
        column = plan.table.get_column(change.column)
        self._replace_column(plan.table, replace(column, nullable=False))

    def _plan_drop_not_null(
        self, plan: AlterationPlan, change: DropNotNull
    ) -> None:
        column = plan.table.get_column(change.column)
        self._replace_column(plan.table, replace(column, nullable=True))

    def _plan_add_constraint(
        self, plan: AlterationPlan, change: AddConstraint
    ) -> None:
        self._add_constraint(plan.table, change.constraint)

    def _plan_drop_constraint(
        self, plan: AlterationPlan, change: DropConstraint
    ) -> None:
        table = plan.table
        constraint = table.get_constraint(change.name)
        if constraint is None:
            raise UnknownConstraintError(table.name, constraint=change.name)
        if isinstance(constraint, (PrimaryKeyConstraint, UniqueConstraint)):
            dependents = [
                f"{child}.{fk.name}"
                for child, fk in self.referencing_keys(table.name)
                if fk is not constraint
                and set(fk.ref_columns) == set(constraint.columns)
            ]
            if dependents:
                raise DependentObjectsError(
                    f"constraint {constraint.name}", dependents
                )
        table.constraints = [
            c for c in table.constraints if c.name != change.name
        ]

    def _plan_rename_table(
        self, plan: AlterationPlan, change: RenameTable
    ) -> None:
        old = plan.table_name
        if change.new_name == old:
            return
        if change.new_name in self._tables:
            raise DuplicateTableError(change.new_name)
        table = plan.table
        table.name = change.new_name
        table.constraints = [
            c.with_parent_renamed(old, change.new_name)
            if isinstance(c, ForeignKeyConstraint) else c
            for c in table.constraints
        ]
        for child_name, fk in self.referencing_keys(old):
            if child_name == old:
                continue
            child = plan.dependents.get(child_name) or self._get(
                child_name
            ).copy()
            child.constraints = [
                c.with_parent_renamed(old, change.new_name)
                if c is fk else c
                for c in child.constraints
            ]
            plan.dependents[child_name] = child
        for seq in self._sequences.values():
            if seq.table == old:
                plan.sequences[seq.name] = replace(
                    seq, table=change.new_name
                )

    _ALTER_HANDLERS: dict[type, Callable] = {
        AddColumn: _plan_add_column,
        DropColumn: _plan_drop_column,
        RenameColumn: _plan_rename_column,
        AlterColumnType: _plan_alter_column_type,
        SetDefault: _plan_set_default,
        DropDefault: _plan_drop_default,
        SetNotNull: _plan_set_not_null,
        DropNotNull: _plan_drop_not_null,
        AddConstraint: _plan_add_constraint,
        DropConstraint: _plan_drop_constraint,
        RenameTable: _plan_rename_table,
    }

    # ── Helpers ───────────────────────────────────────────────

    def _get(self, name: str) -> Table:
        table = self._tables.get(name)
        if table is None:
            raise UnknownTableError(name)
        return table

    def _add_column(self, plan: AlterationPlan, column: Column) -> None:
        if plan.table.has_column(column.name):
            raise DuplicateColumnError(plan.table.name, column.name)
        column = self._bind_default(plan, column)
        plan.table.columns.append(column)

    def _bind_default(self, plan: AlterationPlan, column: Column) -> Column:
        """Validate a column's default, creating its sequence if needed."""
        table_name = plan.table.name
        default = column.default
        if isinstance(default, LiteralDefault):
            self._type_checker.coerce(table_name, column, default.value)
        elif isinstance(default, SequenceDefault):
            if not column.column_type.is_integer:
                raise ConstraintDefinitionError(
                    f"sequence default on non-integer column "
                    f"{table_name}.{column.name}"
                )
            seq_name = default.sequence or f"{table_name}_{column.name}_seq"
            existing = plan.sequences.get(seq_name) or self._sequences.get(
                seq_name
            )
            if existing is not None:
                if not existing.owned_by(table_name, column.name):
                    raise ConstraintDefinitionError(
                        f"sequence {seq_name} is owned by "
                        f"{existing.table}.{existing.column}"
                    )
            else:
                plan.sequences[seq_name] = Sequence(
                    name=seq_name, table=table_name, column=column.name
                )
            column = replace(column, default=SequenceDefault(seq_name))
        return column

    def _add_constraint(self, table: Table, constraint: Constraint) -> None:
        if table.get_constraint(constraint.name) is not None:
            raise ConstraintDefinitionError(
                f'constraint "{constraint.name}" for relation '
                f'"{table.name}" already exists'
            )
        for column in constraint.columns:
            table.get_column(column)

        if isinstance(constraint, PrimaryKeyConstraint):
            if table.primary_key is not None:
                raise ConstraintDefinitionError(
                    f'multiple primary keys for table "{table.name}" '
                    f"are not allowed"
                )
        elif isinstance(constraint, ForeignKeyConstraint):
            self._check_foreign_key_target(table, constraint)
        elif isinstance(constraint, CheckConstraint):
            constraint = self._bind_check(table, constraint)
        table.constraints.append(constraint)

    def _bind_check(
        self, table: Table, check: CheckConstraint
    ) -> CheckConstraint:
        """Coerce a CHECK operand to the type of the column it tests.

        Raises:
            ConstraintDefinitionError: If the operand has the wrong shape.
            TypeMismatchError: If an operand value does not fit the column.
        """
        operand = check.operand
        if check.other_column is not None or operand is None:
            return check
        length_ops = (CheckOperator.LENGTH_EQ, CheckOperator.LENGTH_LE)
        if check.operator in length_ops:
            if isinstance(operand, bool) or not isinstance(operand, int):
                raise ConstraintDefinitionError(
                    f"check {check.name} compares a length with "
                    f"{operand!r}, expected an integer"
                )
            return check

        column = self._literal_column(table.get_column(check.column))

        def coerce(value):
            return self._type_checker.coerce(table.name, column, value)

        if check.operator in (CheckOperator.IN, CheckOperator.BETWEEN):
            if not isinstance(operand, (tuple, set, frozenset)):
                raise ConstraintDefinitionError(
                    f"check {check.name} needs a list of values for "
                    f"{check.operator.value}, got {operand!r}"
                )
            return replace(check, operand=tuple(coerce(v) for v in operand))
        return replace(check, operand=coerce(operand))

    @staticmethod
    def _literal_column(column: Column) -> Column:
        """Type used for CHECK literals: the column's family, unbounded.

        CHAR keeps its length so literals are padded like stored values.
        """
        if column.column_type.is_integer:
            return replace(column, column_type=ColumnType.BIGINT)
        if column.column_type in (ColumnType.NUMERIC, ColumnType.VARCHAR):
            return replace(column, length=None, precision=None, scale=None)
        return column

    def _check_foreign_key_target(
        self, table: Table, fk: ForeignKeyConstraint
    ) -> None:
        if fk.ref_table == table.name:
            parent = table
        else:
            parent = self._get(fk.ref_table)
        for column in fk.ref_columns:
            parent.get_column(column)
        if not any(set(key) == set(fk.ref_columns)
                   for key in parent.unique_keys()):
            raise ConstraintDefinitionError(
                f'there is no unique constraint matching given keys for '
                f'referenced table "{parent.name}"'
            )

    def _check_key_types(self, plan: AlterationPlan, column: str) -> None:
        """Reject a retyped column that no longer matches its key partner.

        Checks both directions: foreign keys of the altered table that use
        ``column`` and foreign keys elsewhere that reference it.

        Raises:
            ConstraintDefinitionError: If a child and parent column end up
                                       in different type families.
        """
        name = plan.table_name

        def lookup(table_name: str) -> Table:
            return plan.table if table_name == name else self._get(table_name)

        pairs = [
            (fk, plan.table, child_col, lookup(fk.ref_table), parent_col)
            for fk in plan.table.foreign_keys
            for child_col, parent_col in zip(fk.columns, fk.ref_columns)
            if child_col == column
        ]
        pairs.extend(
            (fk, lookup(child_name), child_col, plan.table, parent_col)
            for child_name, fk in self.referencing_keys(name)
            for child_col, parent_col in zip(fk.columns, fk.ref_columns)
            if parent_col == column
        )
        for fk, child, child_col, parent, parent_col in pairs:
            child_def = child.get_column(child_col)
            parent_def = parent.get_column(parent_col)
            if child_def.column_type.family != parent_def.column_type.family:
                raise ConstraintDefinitionError(
                    f'foreign key constraint "{fk.name}" cannot be '
                    f'implemented: key columns "{child_col}" and '
                    f'"{parent_col}" are of incompatible types: '
                    f"{child_def.type_sql} and {parent_def.type_sql}"
                )

    @staticmethod
    def _replace_column(table: Table, column: Column) -> None:
        table.columns = [
            column if c.name == column.name else c for c in table.columns
        ]

    def _apply_sequences(
        self, changes: dict[str, Optional[Sequence]]
    ) -> None:
        for name, seq in changes.items():
            if seq is None:
                self._sequences.pop(name, None)
            else:
                self._sequences[name] = seq
