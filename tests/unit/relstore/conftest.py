"""Shared fixtures for relstore unit tests."""

from datetime import date, datetime

import pytest

from relstore.app.factory.column_factory import column
from relstore.app.manager import Database
from relstore.data.snapshot_sqlite import SnapshotRepoSQLite
from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import (
    CheckConstraint,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
)
from relstore.domain.enums import CheckOperator, ColumnType
from relstore.domain.services.row_store import RowStore
from relstore.domain.services.schema_registry import SchemaRegistry
from relstore.domain.value_objects import LiteralDefault, SequenceDefault

FIXED_DATE = date(2025, 1, 15)
FIXED_TIME = datetime(2025, 1, 15, 12, 0, 0)


# ── Service Fixtures ──────────────────────────────────────────


@pytest.fixture
def registry():
    """Empty SchemaRegistry."""
    return SchemaRegistry()


@pytest.fixture
def store(registry):
    """RowStore bound to the registry fixture."""
    return RowStore(registry)


@pytest.fixture
def db():
    """Database facade with an in-memory snapshot repo.

    Yields:
        Database; closed after the test.
    """
    d = Database(":memory:")
    yield d
    d.close()


@pytest.fixture
def sqlite_repo():
    """Fresh in-memory SnapshotRepoSQLite per test."""
    r = SnapshotRepoSQLite(":memory:")
    yield r
    r.close()


# ── Sample Schemas ────────────────────────────────────────────


@pytest.fixture
def person(registry):
    """``person(id SERIAL PK, name NOT NULL, city, age DEFAULT 18)``."""
    return registry.define_table(
        "person",
        [
            Column("id", ColumnType.INTEGER, nullable=False,
                   default=SequenceDefault()),
            Column("name", ColumnType.VARCHAR, length=100, nullable=False),
            Column("city", ColumnType.VARCHAR, length=100),
            Column("age", ColumnType.INTEGER, default=LiteralDefault(18)),
        ],
        [PrimaryKeyConstraint("person_pkey", ("id",))],
    )


@pytest.fixture
def employees(registry):
    """``employees`` with UNIQUE email and a positive salary check."""
    return registry.define_table(
        "employees",
        [
            Column("id", ColumnType.INTEGER, nullable=False,
                   default=SequenceDefault()),
            Column("name", ColumnType.VARCHAR, length=100, nullable=False),
            Column("email", ColumnType.VARCHAR, length=150),
            Column("salary", ColumnType.NUMERIC, precision=10, scale=2,
                   default=LiteralDefault(30000)),
        ],
        [
            PrimaryKeyConstraint("employees_pkey", ("id",)),
            UniqueConstraint("employees_email_key", ("email",)),
            CheckConstraint("employees_salary_check", ("salary",),
                            CheckOperator.GT, 0),
        ],
    )


@pytest.fixture
def shop(registry):
    """``customers`` and ``orders`` joined by a foreign key."""
    registry.define_table(
        "customers",
        [
            Column("id", ColumnType.INTEGER, nullable=False,
                   default=SequenceDefault()),
            Column("name", ColumnType.VARCHAR, length=100, nullable=False),
        ],
        [PrimaryKeyConstraint("customers_pkey", ("id",))],
    )
    registry.define_table(
        "orders",
        [
            Column("id", ColumnType.INTEGER, nullable=False,
                   default=SequenceDefault()),
            Column("customer_id", ColumnType.INTEGER),
            Column("quantity", ColumnType.INTEGER,
                   default=LiteralDefault(1)),
        ],
        [
            PrimaryKeyConstraint("orders_pkey", ("id",)),
            ForeignKeyConstraint(
                "orders_customer_id_fkey", ("customer_id",),
                ref_table="customers", ref_columns=("id",),
            ),
            CheckConstraint("orders_quantity_check", ("quantity",),
                            CheckOperator.GT, 0),
        ],
    )
    return registry


@pytest.fixture
def db_person(db):
    """Database holding the ``person`` table built through factories."""
    db.create_table("person", [
        column("id", "SERIAL", primary_key=True),
        column("name", "VARCHAR(100)", not_null=True),
        column("city", "VARCHAR(100)"),
        column("age", "INT", default=18),
    ])
    return db
