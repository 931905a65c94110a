"""Factory turning SQL-style column declarations into Column entities.

Accepts type names the way they appear in CREATE TABLE statements
(``VARCHAR(100)``, ``NUMERIC(10,2)``, ``SERIAL``) and the column-level
constraint shorthands (PRIMARY KEY, UNIQUE, REFERENCES, CHECK), which
the TableFactory later turns into named table constraints.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from relstore.domain.entities.column import Column
from relstore.domain.enums import CheckOperator, ColumnType, DefaultExpression
from relstore.domain.value_objects import (
    ExpressionDefault,
    LiteralDefault,
    SequenceDefault,
)

_TYPE_PATTERN = re.compile(
    r"^\s*(?P<name>[A-Za-z][A-Za-z0-9 ]*?)\s*"
    r"(?:\(\s*(?P<p1>\d+)\s*(?:,\s*(?P<p2>\d+)\s*)?\))?\s*$"
)

_TYPE_ALIASES = {
    "SMALLINT": ColumnType.SMALLINT,
    "INT2": ColumnType.SMALLINT,
    "INT": ColumnType.INTEGER,
    "INTEGER": ColumnType.INTEGER,
    "INT4": ColumnType.INTEGER,
    "BIGINT": ColumnType.BIGINT,
    "INT8": ColumnType.BIGINT,
    "NUMERIC": ColumnType.NUMERIC,
    "DECIMAL": ColumnType.NUMERIC,
    "REAL": ColumnType.REAL,
    "FLOAT4": ColumnType.REAL,
    "DOUBLE PRECISION": ColumnType.DOUBLE_PRECISION,
    "FLOAT": ColumnType.DOUBLE_PRECISION,
    "FLOAT8": ColumnType.DOUBLE_PRECISION,
    "VARCHAR": ColumnType.VARCHAR,
    "CHARACTER VARYING": ColumnType.VARCHAR,
    "CHAR": ColumnType.CHAR,
    "CHARACTER": ColumnType.CHAR,
    "TEXT": ColumnType.TEXT,
    "DATE": ColumnType.DATE,
    "TIMESTAMP": ColumnType.TIMESTAMP,
    "BOOLEAN": ColumnType.BOOLEAN,
    "BOOL": ColumnType.BOOLEAN,
}

_SERIAL_ALIASES = {
    "SMALLSERIAL": ColumnType.SMALLINT,
    "SERIAL2": ColumnType.SMALLINT,
    "SERIAL": ColumnType.INTEGER,
    "SERIAL4": ColumnType.INTEGER,
    "BIGSERIAL": ColumnType.BIGINT,
    "SERIAL8": ColumnType.BIGINT,
}


@dataclass(frozen=True)
class ColumnDefinition:
    """A Column plus its column-level constraint shorthands.

    Attributes:
        column: The column entity.
        primary_key: Declared ``PRIMARY KEY``.
        unique: Declared ``UNIQUE``.
        references: ``(table, column)`` of a ``REFERENCES`` clause;
                    column None means the parent's primary key.
        check: ``(operator, operand)`` of a single-column CHECK.
    """

    column: Column
    primary_key: bool = False
    unique: bool = False
    references: Optional[tuple] = None
    check: Optional[tuple] = None

    @property
    def name(self) -> str:
        return self.column.name


class ColumnFactory:
    """Factory for Column entities from SQL-style declarations."""

    def create(
        self,
        name: str,
        type_spec: str,
        not_null: bool = False,
        default: Any = None,
        primary_key: bool = False,
        unique: bool = False,
        references: Union[str, tuple, None] = None,
        check: Optional[tuple] = None,
    ) -> ColumnDefinition:
        """Build a column definition.

        Args:
            name: Column name.
            type_spec: SQL type such as ``INT``, ``VARCHAR(100)``,
                       ``NUMERIC(10,2)`` or ``SERIAL``.
            not_null: Declared ``NOT NULL``.
            default: Literal value, a DefaultExpression (or its name,
                     e.g. ``"CURRENT_DATE"``), or a Default value object.
            primary_key: Declared ``PRIMARY KEY``.
            unique: Declared ``UNIQUE``.
            references: Parent as ``"table"``, ``"table(column)"`` or a
                        ``(table, column)`` tuple.
            check: ``(operator, operand)``, e.g. ``(">", 0)``.

        Returns:
            ColumnDefinition ready for TableFactory.create().

        Raises:
            ValueError: If the type or a shorthand cannot be understood.
        """
        column_type, length, precision, scale, serial = self.parse_type(
            type_spec
        )
        if serial:
            resolved_default = SequenceDefault()
            not_null = True
        else:
            resolved_default = self._default(default)

        column = Column(
            name=name,
            column_type=column_type,
            length=length,
            precision=precision,
            scale=scale,
            nullable=not not_null,
            default=resolved_default,
        )
        return ColumnDefinition(
            column=column,
            primary_key=primary_key,
            unique=unique,
            references=self._references(references),
            check=self._check(check),
        )

    @staticmethod
    def parse_type(type_spec: str) -> tuple:
        """Parse an SQL type name.

        Args:
            type_spec: e.g. ``"varchar(100)"`` or ``"NUMERIC(10, 2)"``.

        Returns:
            ``(column_type, length, precision, scale, is_serial)``.

        Raises:
            ValueError: If the type is unknown or malformed.
        """
        match = _TYPE_PATTERN.match(type_spec or "")
        if match is None:
            raise ValueError(f"Malformed column type: {type_spec!r}")
        name = " ".join(match.group("name").upper().split())
        p1 = int(match.group("p1")) if match.group("p1") else None
        p2 = int(match.group("p2")) if match.group("p2") else None

        if name in _SERIAL_ALIASES:
            if p1 is not None:
                raise ValueError(f"{name} takes no modifiers")
            return _SERIAL_ALIASES[name], None, None, None, True

        column_type = _TYPE_ALIASES.get(name)
        if column_type is None:
            raise ValueError(f"Unknown column type: {type_spec!r}")
        if column_type == ColumnType.NUMERIC:
            if p1 is None:
                return column_type, None, None, None, False
            return column_type, None, p1, p2 or 0, False
        if p2 is not None:
            raise ValueError(f"{name} takes at most one modifier")
        if column_type == ColumnType.CHAR:
            return column_type, p1 or 1, None, None, False
        if column_type == ColumnType.VARCHAR:
            return column_type, p1, None, None, False
        if p1 is not None:
            raise ValueError(f"{name} takes no modifiers")
        return column_type, None, None, None, False

    @staticmethod
    def _default(default: Any):
        if default is None:
            return None
        if isinstance(default, (LiteralDefault, ExpressionDefault,
                                SequenceDefault)):
            return default
        if isinstance(default, DefaultExpression):
            return ExpressionDefault(default)
        if isinstance(default, str) and default.upper() in (
            e.value for e in DefaultExpression
        ):
            return ExpressionDefault(DefaultExpression(default.upper()))
        return LiteralDefault(default)

    @staticmethod
    def _references(references: Union[str, tuple, None]) -> Optional[tuple]:
        if references is None:
            return None
        if isinstance(references, tuple):
            if len(references) != 2:
                raise ValueError(
                    f"references must be (table, column), got {references!r}"
                )
            return references
        match = re.match(r"^\s*(\w+)\s*(?:\(\s*(\w+)\s*\))?\s*$", references)
        if match is None:
            raise ValueError(f"Malformed references clause: {references!r}")
        return match.group(1), match.group(2)

    @staticmethod
    def _check(check: Optional[tuple]) -> Optional[tuple]:
        if check is None:
            return None
        if len(check) != 2:
            raise ValueError(
                f"check must be (operator, operand), got {check!r}"
            )
        operator, operand = check
        return CheckOperator(operator), operand


column = ColumnFactory().create
