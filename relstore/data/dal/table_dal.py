"""Data Access Layer for saved table definitions.

Executes SQL against a SQLite connection. All methods operate on plain
dictionaries to keep the DAL decoupled from domain entity classes.
"""

import sqlite3
from typing import Any


class TableDAL:
    """Executes SQL for catalog_tables records.

    Attributes:
        _conn: Shared SQLite connection (managed by SnapshotRepoSQLite).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def save(self, data: dict[str, Any]) -> None:
        """Insert or replace a table definition via UPSERT.

        Args:
            data: Dictionary with keys name, position, definition.
        """
        self._conn.execute(
            """
            INSERT INTO catalog_tables (name, position, definition)
            VALUES (:name, :position, :definition)
            ON CONFLICT(name) DO UPDATE SET
                position = excluded.position,
                definition = excluded.definition
            """,
            data,
        )

    def list_all(self) -> list[dict[str, Any]]:
        """List saved definitions in creation order."""
        cur = self._conn.execute(
            "SELECT * FROM catalog_tables ORDER BY position"
        )
        return [dict(row) for row in cur.fetchall()]

    def delete_all(self) -> None:
        self._conn.execute("DELETE FROM catalog_tables")
