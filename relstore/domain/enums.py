from enum import Enum


class ColumnType(str, Enum):
    """Declared storage type of a column."""

    SMALLINT = "SMALLINT"
    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    NUMERIC = "NUMERIC"
    REAL = "REAL"
    DOUBLE_PRECISION = "DOUBLE PRECISION"
    VARCHAR = "VARCHAR"
    CHAR = "CHAR"
    TEXT = "TEXT"
    DATE = "DATE"
    TIMESTAMP = "TIMESTAMP"
    BOOLEAN = "BOOLEAN"

    @property
    def is_integer(self) -> bool:
        return self in (
            ColumnType.SMALLINT,
            ColumnType.INTEGER,
            ColumnType.BIGINT,
        )

    @property
    def family(self) -> str:
        """Group of types whose stored values compare equal to each other.

        CHAR is its own group because its values are blank padded.
        """
        if self.is_integer or self in (
            ColumnType.NUMERIC,
            ColumnType.REAL,
            ColumnType.DOUBLE_PRECISION,
        ):
            return "numeric"
        if self in (ColumnType.VARCHAR, ColumnType.TEXT):
            return "text"
        return self.value


class ConstraintKind(str, Enum):
    """Kinds of integrity rules a row must satisfy."""

    NOT_NULL = "NOT NULL"
    PRIMARY_KEY = "PRIMARY KEY"
    UNIQUE = "UNIQUE"
    FOREIGN_KEY = "FOREIGN KEY"
    CHECK = "CHECK"


class CheckOperator(str, Enum):
    """Comparison operators available to CHECK constraints."""

    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    EQ = "="
    NE = "<>"
    IN = "IN"
    BETWEEN = "BETWEEN"
    LENGTH_EQ = "LENGTH ="
    LENGTH_LE = "LENGTH <="


class DefaultExpression(str, Enum):
    """Zero-argument expressions evaluated when a row is inserted."""

    CURRENT_DATE = "CURRENT_DATE"
    CURRENT_TIMESTAMP = "CURRENT_TIMESTAMP"
