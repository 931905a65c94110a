from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Union

from relstore.domain.enums import DefaultExpression


class _DefaultMarker:
    """Singleton standing for the SQL ``DEFAULT`` keyword in a row payload."""

    _instance = None

    def __new__(cls) -> "_DefaultMarker":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "DEFAULT"

    def __reduce__(self) -> str:
        return "DEFAULT"


DEFAULT = _DefaultMarker()


@dataclass(frozen=True)
class LiteralDefault:
    """Immutable constant used when a column is omitted.

    Attributes:
        value: The literal, coerced to the column type on use.
    """

    value: Any

    def __str__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class ExpressionDefault:
    """Immutable default evaluated at insert time (e.g. CURRENT_DATE).

    Attributes:
        expression: The expression to evaluate.
    """

    expression: DefaultExpression

    def evaluate(self) -> Union[date, datetime]:
        """Compute the expression's value now.

        Returns:
            Today's date or the current local timestamp.
        """
        if self.expression == DefaultExpression.CURRENT_DATE:
            return date.today()
        return datetime.now()

    def __str__(self) -> str:
        return self.expression.value


@dataclass(frozen=True)
class SequenceDefault:
    """Immutable pointer to the sequence that generates a column's values.

    Attributes:
        sequence: Sequence name. Empty until the registry assigns the
                  conventional ``<table>_<column>_seq`` name.
    """

    sequence: str = ""

    def __str__(self) -> str:
        return f"nextval('{self.sequence}')"


Default = Union[LiteralDefault, ExpressionDefault, SequenceDefault]
