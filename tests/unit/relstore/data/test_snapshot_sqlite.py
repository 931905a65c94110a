"""Tests for SnapshotRepoSQLite.

Saves catalogs to in-memory SQLite and reads them back.
"""

import sqlite3
from datetime import date
from decimal import Decimal

import pytest

from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import (
    CheckConstraint,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
)
from relstore.domain.entities.sequence import Sequence
from relstore.domain.entities.snapshot_repo import (
    CatalogSnapshot,
    SnapshotRepo,
)
from relstore.domain.entities.table import Table
from relstore.domain.enums import (
    CheckOperator,
    ColumnType,
    DefaultExpression,
)
from relstore.domain.exceptions import SnapshotError
from relstore.domain.value_objects import (
    ExpressionDefault,
    LiteralDefault,
    SequenceDefault,
)


@pytest.fixture
def snapshot():
    """Catalog with every column and constraint shape."""
    customers = Table(
        "customers",
        [
            Column("id", ColumnType.INTEGER, nullable=False,
                   default=SequenceDefault("customers_id_seq")),
            Column("name", ColumnType.VARCHAR, length=100, nullable=False),
            Column("city", ColumnType.VARCHAR, length=100,
                   default=LiteralDefault("Delhi")),
        ],
        [PrimaryKeyConstraint("customers_pkey", ("id",))],
    )
    orders = Table(
        "orders",
        [
            Column("id", ColumnType.INTEGER),
            Column("customer_id", ColumnType.INTEGER),
            Column("amount", ColumnType.NUMERIC, precision=10, scale=2,
                   default=LiteralDefault(Decimal("0.00"))),
            Column("placed", ColumnType.DATE,
                   default=ExpressionDefault(DefaultExpression.CURRENT_DATE)),
            Column("due", ColumnType.DATE),
            Column("code", ColumnType.CHAR, length=5),
        ],
        [
            PrimaryKeyConstraint("orders_pkey", ("id",)),
            UniqueConstraint("orders_code_key", ("code",)),
            ForeignKeyConstraint(
                "orders_customer_id_fkey", ("customer_id",),
                ref_table="customers", ref_columns=("id",),
            ),
            CheckConstraint("orders_amount_check", ("amount",),
                            CheckOperator.BETWEEN, (0, 1000)),
            CheckConstraint("orders_due_check", ("due",),
                            CheckOperator.GE, other_column="placed"),
        ],
    )
    return CatalogSnapshot(
        tables=[customers, orders],
        sequences=[
            Sequence("customers_id_seq", "customers", "id", last_value=2),
        ],
        rows={
            "customers": [
                {"id": 1, "name": "Raju", "city": "Delhi"},
                {"id": 2, "name": "Neha", "city": None},
            ],
            "orders": [
                {"id": 1, "customer_id": 1, "amount": Decimal("12.50"),
                 "placed": date(2025, 1, 15), "due": None,
                 "code": "PEN01"},
            ],
        },
    )


class TestSnapshotRepoContract:
    def test_is_snapshot_repo(self, sqlite_repo):
        assert isinstance(sqlite_repo, SnapshotRepo)

    def test_empty_database(self, sqlite_repo):
        loaded = sqlite_repo.load_snapshot()
        assert not loaded
        assert loaded.tables == []
        assert loaded.rows == {}


class TestRoundTrip:
    """Verify catalogs come back exactly as saved."""

    def test_tables(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        loaded = sqlite_repo.load_snapshot()
        assert loaded.tables == snapshot.tables

    def test_sequences(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        assert sqlite_repo.load_snapshot().sequences == snapshot.sequences

    def test_rows_keep_types(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        loaded = sqlite_repo.load_snapshot()
        assert loaded.rows == snapshot.rows
        assert str(loaded.rows["orders"][0]["amount"]) == "12.50"

    def test_save_replaces_previous(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        sqlite_repo.save_snapshot(CatalogSnapshot(
            tables=[snapshot.tables[0]],
            rows={"customers": []},
        ))
        loaded = sqlite_repo.load_snapshot()
        assert [t.name for t in loaded.tables] == ["customers"]
        assert loaded.sequences == []
        assert loaded.rows == {"customers": []}

    def test_clear(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        sqlite_repo.clear()
        assert not sqlite_repo.load_snapshot()

    def test_file_database(self, tmp_path, snapshot):
        from relstore.data.snapshot_sqlite import SnapshotRepoSQLite

        path = str(tmp_path / "catalog.db")
        first = SnapshotRepoSQLite(path)
        first.save_snapshot(snapshot)
        first.close()
        second = SnapshotRepoSQLite(path)
        try:
            assert second.load_snapshot().tables == snapshot.tables
        finally:
            second.close()


class TestFailures:
    def test_unencodable_value_rolls_back(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        bad = CatalogSnapshot(
            tables=[snapshot.tables[0]],
            rows={"customers": [{"id": object()}]},
        )
        with pytest.raises(SnapshotError):
            sqlite_repo.save_snapshot(bad)
        assert sqlite_repo.load_snapshot().tables == snapshot.tables

    def test_corrupt_definition(self, sqlite_repo):
        sqlite_repo.conn.execute(
            "INSERT INTO catalog_tables (name, position, definition) "
            "VALUES ('t', 0, '{\"name\": \"t\"}')"
        )
        with pytest.raises(SnapshotError, match="Corrupt"):
            sqlite_repo.load_snapshot()

    def test_corrupt_decimal(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        sqlite_repo.conn.execute(
            "UPDATE catalog_rows SET data = ? WHERE table_name = 'orders'",
            ('{"amount": {"$decimal": "x"}}',),
        )
        with pytest.raises(SnapshotError, match="Malformed decimal"):
            sqlite_repo.load_snapshot()

    def test_rows_need_saved_table(self, sqlite_repo):
        with pytest.raises(sqlite3.IntegrityError):
            sqlite_repo.save_snapshot(CatalogSnapshot(
                rows={"ghost": [{"a": 1}]},
            ))


class TestConnection:
    def test_close_and_reopen(self, sqlite_repo, snapshot):
        sqlite_repo.save_snapshot(snapshot)
        sqlite_repo.close()
        # A fresh in-memory database after reconnecting.
        assert not sqlite_repo.load_snapshot()

    def test_foreign_keys_enabled(self, sqlite_repo):
        row = sqlite_repo.conn.execute("PRAGMA foreign_keys").fetchone()
        assert row[0] == 1
