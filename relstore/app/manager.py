"""Facade for relstore operations.

Wires together all layers: creates the SchemaRegistry, RowStore,
SnapshotRepoSQLite and factories. Provides lazy-initialized properties
plus the handful of calls a teaching script needs.
"""

import os
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from relstore.domain.entities.snapshot_repo import CatalogSnapshot
from relstore.log import logger

if TYPE_CHECKING:
    from relstore.app.factory.column_factory import (
        ColumnDefinition,
        ColumnFactory,
    )
    from relstore.app.factory.table_factory import TableFactory
    from relstore.data.snapshot_sqlite import SnapshotRepoSQLite
    from relstore.domain.alterations import Alteration
    from relstore.domain.entities.constraint import Constraint
    from relstore.domain.entities.table import Table
    from relstore.domain.services.row_store import (
        Predicate,
        Row,
        RowStore,
        TableScan,
    )
    from relstore.domain.services.schema_registry import SchemaRegistry
    from relstore.domain.services.type_checker import TypeChecker

logger = logger.getChild(__name__)

DB_PATH_ENV = "RELSTORE_DB_PATH"


class Database:
    """Facade for relstore operations.

    Owns one catalog (tables, sequences, rows) held in memory. The
    SQLite snapshot file is only touched by ``save`` and ``load``.
    All properties are lazy-initialized.

    Attributes:
        _db_path: Explicit snapshot path, or None to resolve it from
                  the environment.
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        """Initialize with an optional snapshot path.

        Args:
            db_path: SQLite file for save/load. Falls back to the
                     RELSTORE_DB_PATH environment variable, then to
                     ':memory:'.
        """
        self._db_path = db_path
        self._type_checker: Optional["TypeChecker"] = None
        self._registry: Optional["SchemaRegistry"] = None
        self._row_store: Optional["RowStore"] = None
        self._snapshot_repo: Optional["SnapshotRepoSQLite"] = None
        self._column_factory: Optional["ColumnFactory"] = None
        self._table_factory: Optional["TableFactory"] = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _get_db_path(self) -> str:
        """Resolve the snapshot database path.

        Returns:
            Explicit path, else $RELSTORE_DB_PATH, else ':memory:'.
        """
        if self._db_path:
            return self._db_path
        return os.environ.get(DB_PATH_ENV) or ":memory:"

    @property
    def type_checker(self) -> "TypeChecker":
        if self._type_checker is None:
            from relstore.domain.services.type_checker import TypeChecker

            self._type_checker = TypeChecker()
        return self._type_checker

    @property
    def registry(self) -> "SchemaRegistry":
        """Lazy-initialize SchemaRegistry.

        Returns:
            SchemaRegistry sharing this database's TypeChecker.
        """
        if self._registry is None:
            from relstore.domain.services.schema_registry import (
                SchemaRegistry,
            )

            self._registry = SchemaRegistry(self.type_checker)
        return self._registry

    @property
    def row_store(self) -> "RowStore":
        """Lazy-initialize RowStore.

        Returns:
            RowStore bound to the registry and its writer lock.
        """
        if self._row_store is None:
            from relstore.domain.services.row_store import RowStore

            self._row_store = RowStore(
                self.registry, type_checker=self.type_checker
            )
        return self._row_store

    @property
    def snapshot_repo(self) -> "SnapshotRepoSQLite":
        """Lazy-initialize SnapshotRepoSQLite.

        Returns:
            SnapshotRepoSQLite connected to the snapshot database.
        """
        if self._snapshot_repo is None:
            from relstore.data.snapshot_sqlite import SnapshotRepoSQLite

            self._snapshot_repo = SnapshotRepoSQLite(self._get_db_path())
        return self._snapshot_repo

    @property
    def column_factory(self) -> "ColumnFactory":
        if self._column_factory is None:
            from relstore.app.factory.column_factory import ColumnFactory

            self._column_factory = ColumnFactory()
        return self._column_factory

    @property
    def table_factory(self) -> "TableFactory":
        """Lazy-initialize TableFactory.

        Returns:
            TableFactory with injected SchemaRegistry.
        """
        if self._table_factory is None:
            from relstore.app.factory.table_factory import TableFactory

            self._table_factory = TableFactory(self.registry)
        return self._table_factory

    # ── Schema ────────────────────────────────────────────────

    def create_table(
        self,
        name: str,
        definitions: Iterable["ColumnDefinition"],
        constraints: Iterable["Constraint"] = (),
    ) -> "Table":
        """Build and register a table (CREATE TABLE).

        Args:
            name: Table name.
            definitions: Column definitions, e.g. from ``column()``.
            constraints: Extra table-level constraints.

        Returns:
            Copy of the registered definition.
        """
        table = self.table_factory.create(name, definitions, constraints)
        return self.registry.define_table(
            table.name, table.columns, table.constraints
        )

    def alter_table(self, name: str, change: "Alteration") -> "Table":
        """Alter a table and migrate its rows (ALTER TABLE)."""
        return self.row_store.alter_table(name, change)

    def drop_table(self, name: str) -> None:
        self.row_store.drop_table(name)

    def get_table(self, name: str) -> "Table":
        return self.registry.get_table(name)

    def list_tables(self) -> list["Table"]:
        return self.registry.list_tables()

    # ── Rows ──────────────────────────────────────────────────

    def insert(self, table: str, values: Mapping[str, Any]) -> "Row":
        return self.row_store.insert(table, values)

    def insert_many(
        self, table: str, rows: Iterable[Mapping[str, Any]]
    ) -> list["Row"]:
        return self.row_store.insert_many(table, rows)

    def get(self, table: str, key: Any) -> "Row":
        return self.row_store.get(table, key)

    def update(
        self, table: str, key: Any, changes: Mapping[str, Any]
    ) -> "Row":
        return self.row_store.update(table, key, changes)

    def update_where(
        self,
        table: str,
        predicate: Optional["Predicate"],
        changes: Mapping[str, Any],
    ) -> int:
        return self.row_store.update_where(table, predicate, changes)

    def delete(self, table: str, key: Any) -> "Row":
        return self.row_store.delete(table, key)

    def delete_where(
        self, table: str, predicate: Optional["Predicate"] = None
    ) -> int:
        return self.row_store.delete_where(table, predicate)

    def scan(self, table: str) -> "TableScan":
        return self.row_store.scan(table)

    def count(self, table: str) -> int:
        return self.row_store.count(table)

    # ── Persistence ───────────────────────────────────────────

    def save(self) -> None:
        """Write the whole catalog to the snapshot database."""
        with self.registry.lock:
            snapshot = CatalogSnapshot(
                tables=self.registry.list_tables(),
                sequences=self.registry.list_sequences(),
                rows=self.row_store.export_rows(),
            )
        self.snapshot_repo.save_snapshot(snapshot)
        logger.info(
            "saved %d table(s) to %s",
            len(snapshot.tables), self.snapshot_repo.db_path,
        )

    def load(self) -> bool:
        """Replace the in-memory catalog with the saved snapshot.

        Returns:
            False when nothing was saved; the catalog is left untouched.

        Raises:
            SnapshotError: If the stored snapshot cannot be decoded.
        """
        snapshot = self.snapshot_repo.load_snapshot()
        if not snapshot:
            return False
        with self.registry.lock:
            self.registry.restore(snapshot.tables, snapshot.sequences)
            self.row_store.restore_rows(snapshot.rows)
        logger.info(
            "loaded %d table(s) from %s",
            len(snapshot.tables), self.snapshot_repo.db_path,
        )
        return True

    def close(self) -> None:
        """Release all held resources."""
        if self._snapshot_repo is not None:
            self._snapshot_repo.close()
            self._snapshot_repo = None
