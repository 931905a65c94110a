"""Tests for SchemaRegistry definitions and alterations."""

from decimal import Decimal

import pytest

from relstore.domain.alterations import (
    AddColumn,
    AddConstraint,
    AlterColumnType,
    DropColumn,
    DropConstraint,
    DropDefault,
    DropNotNull,
    RenameColumn,
    RenameTable,
    SetDefault,
    SetNotNull,
)
from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import (
    CheckConstraint,
    ForeignKeyConstraint,
    PrimaryKeyConstraint,
    UniqueConstraint,
)
from relstore.domain.enums import CheckOperator, ColumnType
from relstore.domain.exceptions import (
    ConstraintDefinitionError,
    DependentObjectsError,
    DuplicateColumnError,
    DuplicateTableError,
    TypeMismatchError,
    UnknownColumnError,
    UnknownConstraintError,
    UnknownTableError,
)
from relstore.domain.value_objects import LiteralDefault, SequenceDefault


class TestDefineTable:
    """Verify CREATE TABLE semantics."""

    def test_define_and_get(self, registry, person):
        table = registry.get_table("person")
        assert table.column_names == ["id", "name", "city", "age"]
        assert table.primary_key.columns == ("id",)

    def test_sequence_is_created_and_bound(self, registry, person):
        assert person.get_column("id").default == SequenceDefault(
            "person_id_seq"
        )
        seq = registry.get_sequence("person_id_seq")
        assert seq.table == "person"
        assert seq.column == "id"
        assert seq.last_value is None

    def test_duplicate_table(self, registry, person):
        with pytest.raises(DuplicateTableError):
            registry.define_table("person", [Column("x")])

    def test_duplicate_column(self, registry):
        with pytest.raises(DuplicateColumnError) as exc_info:
            registry.define_table("t", [Column("a"), Column("a")])
        assert exc_info.value.column == "a"
        assert not registry.has_table("t")

    def test_constraint_on_missing_column(self, registry):
        with pytest.raises(UnknownColumnError):
            registry.define_table(
                "t", [Column("a")], [UniqueConstraint("t_b_key", ("b",))]
            )

    def test_foreign_key_to_missing_table(self, registry):
        with pytest.raises(UnknownTableError):
            registry.define_table(
                "t",
                [Column("a", ColumnType.INTEGER)],
                [ForeignKeyConstraint(
                    "t_a_fkey", ("a",), ref_table="ghost", ref_columns=("id",)
                )],
            )

    def test_foreign_key_to_non_unique_column(self, registry, person):
        with pytest.raises(ConstraintDefinitionError, match="no unique"):
            registry.define_table(
                "t",
                [Column("city", ColumnType.VARCHAR)],
                [ForeignKeyConstraint(
                    "t_city_fkey", ("city",),
                    ref_table="person", ref_columns=("city",),
                )],
            )

    def test_two_primary_keys(self, registry):
        with pytest.raises(ConstraintDefinitionError, match="multiple"):
            registry.define_table(
                "t",
                [Column("a"), Column("b")],
                [
                    PrimaryKeyConstraint("t_pkey", ("a",)),
                    PrimaryKeyConstraint("t_pkey2", ("b",)),
                ],
            )

    def test_duplicate_constraint_name(self, registry):
        with pytest.raises(ConstraintDefinitionError, match="already"):
            registry.define_table(
                "t",
                [Column("a"), Column("b")],
                [
                    UniqueConstraint("t_key", ("a",)),
                    UniqueConstraint("t_key", ("b",)),
                ],
            )

    def test_self_reference_declared_before_key(self, registry):
        """A self-referencing key may precede the primary key."""
        table = registry.define_table(
            "staff",
            [
                Column("id", ColumnType.INTEGER),
                Column("boss_id", ColumnType.INTEGER),
            ],
            [
                ForeignKeyConstraint(
                    "staff_boss_id_fkey", ("boss_id",),
                    ref_table="staff", ref_columns=("id",),
                ),
                PrimaryKeyConstraint("staff_pkey", ("id",)),
            ],
        )
        assert [c.name for c in table.constraints] == [
            "staff_boss_id_fkey", "staff_pkey",
        ]

    def test_bad_literal_default(self, registry):
        with pytest.raises(TypeMismatchError):
            registry.define_table(
                "t",
                [Column("n", ColumnType.INTEGER,
                        default=LiteralDefault("abc"))],
            )

    def test_sequence_on_text_column(self, registry):
        with pytest.raises(ConstraintDefinitionError, match="non-integer"):
            registry.define_table(
                "t", [Column("id", ColumnType.TEXT, default=SequenceDefault())]
            )

    def test_returned_table_is_a_copy(self, registry, person):
        person.columns.clear()
        assert registry.get_table("person").column_names


class TestCheckOperands:
    """Verify CHECK literals are typed like the column they test."""

    def _define(self, registry, column, operator, operand):
        return registry.define_table(
            "t",
            [column],
            [CheckConstraint("t_check", (column.name,),
                             CheckOperator(operator), operand)],
        ).get_constraint("t_check")

    def test_numeric_operand_becomes_decimal(self, registry):
        check = self._define(
            registry,
            Column("price", ColumnType.NUMERIC, precision=4, scale=2),
            "<", "1000000",
        )
        assert check.operand == Decimal("1000000")
        assert isinstance(check.operand, Decimal)

    def test_in_list_elements_coerced(self, registry):
        check = self._define(
            registry, Column("n", ColumnType.SMALLINT), "IN", ["1", 2]
        )
        assert check.operand == (1, 2)

    def test_char_operand_is_padded(self, registry):
        check = self._define(
            registry, Column("code", ColumnType.CHAR, length=3), "=", "AB"
        )
        assert check.operand == "AB "

    def test_incompatible_operand_rejected(self, registry):
        with pytest.raises(TypeMismatchError):
            self._define(
                registry, Column("code", ColumnType.VARCHAR, length=10),
                ">", 0,
            )
        assert not registry.has_table("t")

    def test_length_needs_integer(self, registry):
        with pytest.raises(ConstraintDefinitionError, match="length"):
            self._define(
                registry, Column("code", ColumnType.TEXT), "LENGTH =", "5"
            )

    def test_in_needs_collection(self, registry):
        with pytest.raises(ConstraintDefinitionError, match="list"):
            self._define(
                registry, Column("code", ColumnType.TEXT), "IN", "abc"
            )

    def test_add_constraint_binds_operand(self, registry, person):
        registry.alter_table("person", AddConstraint(
            CheckConstraint("person_age_check", ("age",),
                            CheckOperator.GE, "0")
        ))
        check = registry.get_table("person").get_constraint(
            "person_age_check"
        )
        assert check.operand == 0

    def test_retype_rebinds_operand(self, registry, employees):
        registry.alter_table(
            "employees", AlterColumnType("salary", ColumnType.INTEGER)
        )
        check = registry.get_table("employees").get_constraint(
            "employees_salary_check"
        )
        assert check.operand == 0
        assert isinstance(check.operand, int)

    def test_constraint_order_kept(self, registry, shop):
        assert [c.name for c in registry.get_table("orders").constraints] == [
            "orders_pkey",
            "orders_customer_id_fkey",
            "orders_quantity_check",
        ]


class TestCatalogQueries:
    """Verify side-effect free catalog reads."""

    def test_list_tables_in_creation_order(self, registry, shop):
        assert [t.name for t in registry.list_tables()] == [
            "customers", "orders",
        ]
        assert registry.table_names() == ["customers", "orders"]

    def test_unknown_table(self, registry):
        with pytest.raises(UnknownTableError):
            registry.get_table("ghost")

    def test_referencing_keys(self, registry, shop):
        refs = registry.referencing_keys("customers")
        assert [(child, fk.name) for child, fk in refs] == [
            ("orders", "orders_customer_id_fkey")
        ]

    def test_list_sequences(self, registry, shop):
        assert sorted(s.name for s in registry.list_sequences()) == [
            "customers_id_seq", "orders_id_seq",
        ]

    def test_next_value(self, registry, person):
        assert registry.next_value("person_id_seq") == 1
        assert registry.next_value("person_id_seq") == 2
        assert registry.get_sequence("person_id_seq").last_value == 2


class TestDropTable:
    def test_drop_removes_sequences(self, registry, person):
        registry.drop_table("person")
        assert not registry.has_table("person")
        assert registry.get_sequence("person_id_seq") is None

    def test_drop_unknown(self, registry):
        with pytest.raises(UnknownTableError):
            registry.drop_table("ghost")

    def test_referenced_table_cannot_be_dropped(self, registry, shop):
        with pytest.raises(DependentObjectsError) as exc_info:
            registry.drop_table("customers")
        assert exc_info.value.dependents == [
            "orders.orders_customer_id_fkey"
        ]

    def test_child_then_parent(self, registry, shop):
        registry.drop_table("orders")
        registry.drop_table("customers")
        assert registry.list_tables() == []


class TestAlterTable:
    """Verify ALTER TABLE actions on definitions."""

    def test_unknown_table(self, registry):
        with pytest.raises(UnknownTableError):
            registry.alter_table("ghost", DropColumn("x"))

    def test_add_column(self, registry, person):
        table = registry.alter_table(
            "person", AddColumn(Column("email", ColumnType.TEXT))
        )
        assert table.column_names[-1] == "email"

    def test_add_existing_column(self, registry, person):
        with pytest.raises(DuplicateColumnError):
            registry.alter_table("person", AddColumn(Column("name")))

    def test_drop_column_takes_constraints_and_sequence(self, registry,
                                                        person):
        table = registry.alter_table("person", DropColumn("id"))
        assert not table.has_column("id")
        assert table.primary_key is None
        assert registry.get_sequence("person_id_seq") is None

    def test_drop_missing_column(self, registry, person):
        with pytest.raises(UnknownColumnError):
            registry.alter_table("person", DropColumn("salary"))

    def test_drop_referenced_column(self, registry, shop):
        with pytest.raises(DependentObjectsError):
            registry.alter_table("customers", DropColumn("id"))

    def test_rename_column_rewrites_constraints(self, registry, shop):
        registry.alter_table("customers", RenameColumn("id", "cid"))
        customers = registry.get_table("customers")
        assert customers.primary_key.columns == ("cid",)
        orders = registry.get_table("orders")
        assert orders.foreign_keys[0].ref_columns == ("cid",)
        assert registry.get_sequence("customers_id_seq").column == "cid"

    def test_rename_to_existing_column(self, registry, person):
        with pytest.raises(DuplicateColumnError):
            registry.alter_table("person", RenameColumn("city", "name"))

    def test_alter_column_type(self, registry, person):
        table = registry.alter_table(
            "person", AlterColumnType("city", ColumnType.TEXT)
        )
        assert table.get_column("city").column_type == ColumnType.TEXT

    def test_alter_type_casts_literal_default(self, registry, person):
        table = registry.alter_table(
            "person", AlterColumnType("age", ColumnType.TEXT)
        )
        assert table.get_column("age").default == LiteralDefault("18")

    def test_generated_column_keeps_integer_type(self, registry, person):
        with pytest.raises(ConstraintDefinitionError):
            registry.alter_table(
                "person", AlterColumnType("id", ColumnType.TEXT)
            )

    def test_set_and_drop_default(self, registry, person):
        table = registry.alter_table(
            "person", SetDefault("city", LiteralDefault("Delhi"))
        )
        assert table.get_column("city").default == LiteralDefault("Delhi")
        table = registry.alter_table("person", DropDefault("city"))
        assert table.get_column("city").default is None

    def test_set_and_drop_not_null(self, registry, person):
        table = registry.alter_table("person", SetNotNull("city"))
        assert table.get_column("city").nullable is False
        table = registry.alter_table("person", DropNotNull("city"))
        assert table.get_column("city").nullable is True

    def test_add_and_drop_constraint(self, registry, person):
        registry.alter_table(
            "person", AddConstraint(UniqueConstraint("person_name_key",
                                                     ("name",)))
        )
        assert registry.get_table("person").get_constraint("person_name_key")
        registry.alter_table("person", DropConstraint("person_name_key"))
        assert registry.get_table("person").get_constraint(
            "person_name_key"
        ) is None

    def test_drop_unknown_constraint(self, registry, person):
        with pytest.raises(UnknownConstraintError) as exc_info:
            registry.alter_table("person", DropConstraint("nope"))
        assert exc_info.value.constraint == "nope"
        assert exc_info.value.table == "person"

    def test_drop_referenced_key(self, registry, shop):
        with pytest.raises(DependentObjectsError):
            registry.alter_table(
                "customers", DropConstraint("customers_pkey")
            )

    def test_rename_table(self, registry, shop):
        registry.alter_table("customers", RenameTable("clients"))
        assert registry.table_names() == ["clients", "orders"]
        orders = registry.get_table("orders")
        assert orders.foreign_keys[0].ref_table == "clients"
        assert registry.get_sequence("customers_id_seq").table == "clients"

    def test_rename_table_keeps_constraint_names(self, registry, shop):
        registry.alter_table("customers", RenameTable("clients"))
        assert registry.get_table("clients").primary_key.name == (
            "customers_pkey"
        )
        assert registry.get_table("orders").foreign_keys[0].name == (
            "orders_customer_id_fkey"
        )

    def test_rename_table_to_existing(self, registry, shop):
        with pytest.raises(DuplicateTableError):
            registry.alter_table("orders", RenameTable("customers"))

    def test_failed_plan_changes_nothing(self, registry, person):
        with pytest.raises(DuplicateColumnError):
            registry.alter_table("person", RenameColumn("city", "name"))
        assert registry.get_table("person").column_names == [
            "id", "name", "city", "age",
        ]

    def test_plan_does_not_commit(self, registry, person):
        plan = registry.plan_alteration("person", DropColumn("age"))
        assert not plan.table.has_column("age")
        assert registry.get_table("person").has_column("age")
        registry.commit(plan)
        assert not registry.get_table("person").has_column("age")

    def test_unsupported_alteration(self, registry, person):
        with pytest.raises(TypeError, match="Unsupported"):
            registry.alter_table("person", object())
