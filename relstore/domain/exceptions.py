from typing import Any, Optional, Sequence

from relstore.domain.enums import ConstraintKind


class RelstoreError(Exception):
    """Base exception for all relstore errors."""


class DuplicateTableError(RelstoreError):
    """Raised when a table name is already defined.

    Attributes:
        table: The conflicting table name.
    """

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f'relation "{table}" already exists')


class UnknownTableError(RelstoreError):
    """Raised when a table name does not exist.

    Attributes:
        table: The missing table name.
    """

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f'relation "{table}" does not exist')


class UnknownColumnError(RelstoreError):
    """Raised when a column name does not exist in a table.

    Attributes:
        table: Table that was searched.
        column: The missing column name.
    """

    def __init__(self, table: str, column: str) -> None:
        self.table = table
        self.column = column
        super().__init__(
            f'column "{column}" of relation "{table}" does not exist'
        )


class DuplicateColumnError(RelstoreError):
    """Raised when a column name is repeated within a table.

    Attributes:
        table: Table being defined or altered.
        column: The conflicting column name.
    """

    def __init__(self, table: str, column: str) -> None:
        self.table = table
        self.column = column
        super().__init__(
            f'column "{column}" of relation "{table}" already exists'
        )


class ConstraintDefinitionError(RelstoreError):
    """Raised when a constraint declaration itself is invalid."""


class DependentObjectsError(RelstoreError):
    """Raised when a schema object is still referenced by another.

    Attributes:
        target: Name of the object that was to be dropped.
        dependents: Names of the referencing constraints.
    """

    def __init__(self, target: str, dependents: Sequence[str]) -> None:
        self.target = target
        self.dependents = list(dependents)
        super().__init__(
            f"cannot drop {target} because other objects depend on it: "
            + ", ".join(self.dependents)
        )


class RowNotFoundError(RelstoreError):
    """Raised when no row has the requested primary key.

    Attributes:
        table: Table that was searched.
        key: Primary key value used in the lookup.
    """

    def __init__(self, table: str, key: Any) -> None:
        self.table = table
        self.key = key
        super().__init__(f'no row in "{table}" with key {key!r}')


class NoPrimaryKeyError(RelstoreError):
    """Raised when a keyed lookup targets a table without a primary key."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f'relation "{table}" has no primary key')


class TypeMismatchError(RelstoreError):
    """Raised when a value cannot be stored in a column's declared type.

    Attributes:
        table: Table name (may be empty when checking a bare column).
        column: Column name.
        value: The offending value.
        column_type: Declared type rendered as SQL.
    """

    def __init__(
        self, table: str, column: str, value: Any, column_type: str,
        reason: str = "",
    ) -> None:
        self.table = table
        self.column = column
        self.value = value
        self.column_type = column_type
        message = (
            f'invalid value {value!r} for column "{column}" '
            f"of type {column_type}"
        )
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class SnapshotError(RelstoreError):
    """Raised when a persisted snapshot cannot be read or written."""


class ConstraintViolationError(RelstoreError):
    """Base for violations of a declared integrity rule.

    Attributes:
        table: Table the mutation targeted.
        columns: Column names covered by the violated rule.
        value: The offending value (a tuple for multi-column rules).
        constraint: Name of the violated constraint, if it has one.
    """

    kind: Optional[ConstraintKind] = None

    def __init__(
        self,
        table: str,
        columns: Sequence[str] = (),
        value: Any = None,
        constraint: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.table = table
        self.columns = tuple(columns)
        self.value = value
        self.constraint = constraint
        super().__init__(message or self._default_message())

    @property
    def column(self) -> Optional[str]:
        """First column covered by the rule, if any."""
        return self.columns[0] if self.columns else None

    def _default_message(self) -> str:
        return f'constraint violated on "{self.table}"'


class NullConstraintViolationError(ConstraintViolationError):
    """Raised when a NOT NULL or primary key column resolves to NULL."""

    kind = ConstraintKind.NOT_NULL

    def _default_message(self) -> str:
        return (
            f'null value in column "{self.column}" of relation '
            f'"{self.table}" violates not-null constraint'
        )


class UniqueConstraintViolationError(ConstraintViolationError):
    """Raised when a UNIQUE or PRIMARY KEY value already exists."""

    kind = ConstraintKind.UNIQUE

    def _default_message(self) -> str:
        return (
            f'duplicate key value violates unique constraint '
            f'"{self.constraint}": ({", ".join(self.columns)})='
            f"({self.value!r}) already exists"
        )


class CheckConstraintViolationError(ConstraintViolationError):
    """Raised when a row fails a CHECK expression."""

    kind = ConstraintKind.CHECK

    def _default_message(self) -> str:
        return (
            f'new row for relation "{self.table}" violates check '
            f'constraint "{self.constraint}"'
        )


class ForeignKeyViolationError(ConstraintViolationError):
    """Raised when a foreign key does not resolve, or a parent is in use."""

    kind = ConstraintKind.FOREIGN_KEY

    def _default_message(self) -> str:
        return (
            f'insert or update on table "{self.table}" violates foreign '
            f'key constraint "{self.constraint}"'
        )


class UnknownConstraintError(ConstraintViolationError):
    """Raised when dropping a constraint name that does not exist."""

    def _default_message(self) -> str:
        return (
            f'constraint "{self.constraint}" of relation "{self.table}" '
            f"does not exist"
        )
