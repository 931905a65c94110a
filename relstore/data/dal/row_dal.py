"""Data Access Layer for saved rows.

Rows are stored as JSON text, one record per row, ordered by position
within their table.
"""

import sqlite3
from typing import Any


class RowDAL:
    """Executes SQL for catalog_rows records.

    Attributes:
        _conn: Shared SQLite connection (managed by SnapshotRepoSQLite).
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def save_many(self, records: list[dict[str, Any]]) -> None:
        """Insert row records.

        Args:
            records: Dictionaries with keys table_name, position, data.
        """
        self._conn.executemany(
            "INSERT INTO catalog_rows (table_name, position, data) "
            "VALUES (:table_name, :position, :data)",
            records,
        )

    def list_for_table(self, table_name: str) -> list[dict[str, Any]]:
        """List a table's row records ordered by position.

        Args:
            table_name: Owning table name.

        Returns:
            List of row record dictionaries.
        """
        cur = self._conn.execute(
            "SELECT * FROM catalog_rows WHERE table_name = ? "
            "ORDER BY position",
            (table_name,),
        )
        return [dict(row) for row in cur.fetchall()]

    def delete_all(self) -> None:
        self._conn.execute("DELETE FROM catalog_rows")
