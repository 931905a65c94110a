"""Tests for the Table entity."""

import pytest

from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import (
    CheckConstraint,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
)
from relstore.domain.entities.table import Table
from relstore.domain.enums import CheckOperator, ColumnType
from relstore.domain.exceptions import UnknownColumnError


@pytest.fixture
def table():
    return Table(
        name="employees",
        columns=[
            Column("id", ColumnType.INTEGER, nullable=False),
            Column("email", ColumnType.VARCHAR, length=150),
            Column("boss_id", ColumnType.INTEGER),
        ],
        constraints=[
            UniqueConstraint("employees_email_key", ("email",)),
            PrimaryKeyConstraint("employees_pkey", ("id",)),
            ForeignKeyConstraint(
                "employees_boss_id_fkey", ("boss_id",),
                ref_table="employees", ref_columns=("id",),
            ),
            CheckConstraint(
                "employees_id_check", ("id",), CheckOperator.GT, 0
            ),
        ],
    )


class TestTableLookup:
    """Verify column and constraint lookups."""

    def test_column_names(self, table):
        assert table.column_names == ["id", "email", "boss_id"]

    def test_has_column(self, table):
        assert table.has_column("email")
        assert not table.has_column("salary")

    def test_get_column(self, table):
        assert table.get_column("email").length == 150

    def test_get_missing_column(self, table):
        with pytest.raises(UnknownColumnError) as exc_info:
            table.get_column("salary")
        assert exc_info.value.table == "employees"

    def test_get_constraint(self, table):
        assert table.get_constraint("employees_pkey").columns == ("id",)
        assert table.get_constraint("missing") is None


class TestTableConstraintViews:
    """Verify typed views over the constraint list."""

    def test_primary_key(self, table):
        assert table.primary_key.name == "employees_pkey"

    def test_no_primary_key(self):
        assert Table("log").primary_key is None

    def test_unique_keys_lead_with_primary_key(self, table):
        assert table.unique_keys() == [("id",), ("email",)]

    def test_foreign_keys(self, table):
        assert [fk.name for fk in table.foreign_keys] == [
            "employees_boss_id_fkey"
        ]

    def test_checks(self, table):
        assert [c.name for c in table.checks] == ["employees_id_check"]


class TestTableCopy:
    def test_copy_is_independent(self, table):
        clone = table.copy()
        clone.columns.append(Column("extra"))
        clone.constraints.clear()
        assert not table.has_column("extra")
        assert len(table.constraints) == 4

    def test_to_sql(self):
        t = Table(
            "person",
            [Column("id", ColumnType.INTEGER, nullable=False)],
            [PrimaryKeyConstraint("person_pkey", ("id",))],
        )
        assert t.to_sql() == (
            "CREATE TABLE person (\n"
            "    id INTEGER NOT NULL,\n"
            "    CONSTRAINT person_pkey PRIMARY KEY (id)\n"
            ");"
        )
