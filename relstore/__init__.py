"""In-memory relational store with PostgreSQL-style constraints."""

from relstore.app.factory.column_factory import column
from relstore.app.manager import Database
from relstore.domain.value_objects import DEFAULT

__version__ = "0.1.0"

__all__ = ["DEFAULT", "Database", "column", "__version__"]
