"""Factory assembling Table entities from column definitions.

Column-level shorthands become table constraints named the way
PostgreSQL names them: ``<table>_pkey``, ``<table>_<column>_key``,
``<table>_<column>_fkey`` and ``<table>_<column>_check``.
"""

from typing import TYPE_CHECKING, Any, Iterable, Optional, Sequence

from relstore.app.factory.column_factory import ColumnDefinition
from relstore.domain.entities.constraint import (
    CheckConstraint,
    Constraint,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
)
from relstore.domain.entities.table import Table
from relstore.domain.enums import CheckOperator
from relstore.domain.exceptions import ConstraintDefinitionError

if TYPE_CHECKING:
    from relstore.domain.services.schema_registry import SchemaRegistry


class TableFactory:
    """Factory for Table entities with resolved, named constraints.

    Attributes:
        _registry: SchemaRegistry used to resolve a bare
                   ``REFERENCES parent`` to the parent's primary key.
    """

    def __init__(self, registry: "SchemaRegistry") -> None:
        """Initialize with a SchemaRegistry.

        Args:
            registry: Registry holding already defined parent tables.
        """
        self._registry = registry

    def create(
        self,
        name: str,
        definitions: Iterable[ColumnDefinition],
        constraints: Iterable[Constraint] = (),
    ) -> Table:
        """Create an unregistered Table.

        Args:
            name: Table name.
            definitions: Column definitions from ColumnFactory.
            constraints: Extra table-level constraints.

        Returns:
            New Table entity; pass it to SchemaRegistry.define_table().

        Raises:
            ConstraintDefinitionError: If more than one column declares
                                       PRIMARY KEY.
            UnknownTableError: If a bare REFERENCES names a missing table.
        """
        definitions = list(definitions)
        table = Table(name=name, columns=[d.column for d in definitions])

        key_columns = [d.name for d in definitions if d.primary_key]
        if len(key_columns) > 1:
            raise ConstraintDefinitionError(
                f'multiple primary keys for table "{name}" are not allowed'
            )
        if key_columns:
            table.constraints.append(self.primary_key(name, *key_columns))

        for definition in definitions:
            if definition.unique:
                table.constraints.append(
                    self.unique(name, definition.name)
                )
        for definition in definitions:
            if definition.check is not None:
                operator, operand = definition.check
                table.constraints.append(
                    self.check(name, definition.name, operator, operand)
                )
        for definition in definitions:
            if definition.references is not None:
                parent, parent_column = definition.references
                table.constraints.append(
                    self.foreign_key(
                        name,
                        [definition.name],
                        parent,
                        [parent_column] if parent_column else None,
                        key_columns=key_columns,
                    )
                )
        table.constraints.extend(constraints)
        return table

    def primary_key(self, table: str, *columns: str) -> PrimaryKeyConstraint:
        return PrimaryKeyConstraint(name=f"{table}_pkey", columns=columns)

    def unique(
        self, table: str, *columns: str, name: Optional[str] = None
    ) -> UniqueConstraint:
        return UniqueConstraint(
            name=name or f"{table}_{'_'.join(columns)}_key",
            columns=columns,
        )

    def foreign_key(
        self,
        table: str,
        columns: Sequence[str],
        ref_table: str,
        ref_columns: Optional[Sequence[str]] = None,
        name: Optional[str] = None,
        key_columns: Sequence[str] = (),
    ) -> ForeignKeyConstraint:
        """Build a FOREIGN KEY constraint.

        Args:
            table: Child table name.
            columns: Child columns.
            ref_table: Parent table name.
            ref_columns: Parent columns; defaults to the parent's
                         primary key.
            name: Constraint name; defaults to ``<table>_<cols>_fkey``.
            key_columns: Primary key of ``table`` itself, used when a
                         self reference omits ``ref_columns`` while the
                         table is still being built.

        Raises:
            ConstraintDefinitionError: If ``ref_columns`` is omitted and
                                       the parent has no primary key.
        """
        if ref_columns is None:
            ref_columns = self._parent_key(table, ref_table, key_columns)
        return ForeignKeyConstraint(
            name=name or f"{table}_{'_'.join(columns)}_fkey",
            columns=tuple(columns),
            ref_table=ref_table,
            ref_columns=tuple(ref_columns),
        )

    def check(
        self,
        table: str,
        column: str,
        operator: Any,
        operand: Any = None,
        other_column: Optional[str] = None,
        name: Optional[str] = None,
    ) -> CheckConstraint:
        return CheckConstraint(
            name=name or f"{table}_{column}_check",
            columns=(column,),
            operator=CheckOperator(operator),
            operand=operand,
            other_column=other_column,
        )

    def _parent_key(
        self, table: str, ref_table: str, key_columns: Sequence[str]
    ) -> tuple:
        if ref_table == table and key_columns:
            return tuple(key_columns)
        pk = self._registry.get_table(ref_table).primary_key
        if pk is None:
            raise ConstraintDefinitionError(
                f'there is no primary key for referenced table "{ref_table}"'
            )
        return pk.columns
