"""Data Access Layer for saved sequences."""

import sqlite3
from typing import Any


class SequenceDAL:
    """Executes SQL for catalog_sequences records.

    Attributes:
        _conn: Shared SQLite connection (managed by SnapshotRepoSQLite).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def save(self, data: dict[str, Any]) -> None:
        """Insert or update a sequence record via UPSERT.

        Args:
            data: Dictionary with keys matching the catalog_sequences
                  table columns.
        """
        self._conn.execute(
            """
            INSERT INTO catalog_sequences (
                name, table_name, column_name, start, increment, last_value
            ) VALUES (
                :name, :table_name, :column_name, :start, :increment,
                :last_value
            )
            ON CONFLICT(name) DO UPDATE SET
                table_name = excluded.table_name,
                column_name = excluded.column_name,
                last_value = excluded.last_value
            """,
            data,
        )

    def list_all(self) -> list[dict[str, Any]]:
        cur = self._conn.execute("SELECT * FROM catalog_sequences")
        return [dict(row) for row in cur.fetchall()]

    def delete_all(self) -> None:
        self._conn.execute("DELETE FROM catalog_sequences")
