"""Tests for the relstore CLI subcommands."""

import pytest

from relstore.main import get_main_parser, main


@pytest.fixture
def db_file(tmp_path, monkeypatch):
    monkeypatch.delenv("RELSTORE_DB_PATH", raising=False)
    return str(tmp_path / "catalog.db")


def run(db_file, *argv):
    return main(["--db", db_file, *argv])


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            get_main_parser().parse_args([])

    def test_rows_limit(self):
        args = get_main_parser().parse_args(["rows", "person", "-n", "2"])
        assert args.table == "person"
        assert args.limit == 2

    def test_rows_limit_zero(self):
        args = get_main_parser().parse_args(["rows", "person", "-n", "0"])
        assert args.limit == 0

    def test_negative_rows_limit(self, capsys):
        with pytest.raises(SystemExit):
            get_main_parser().parse_args(["rows", "person", "-n", "-1"])
        assert "zero or more" in capsys.readouterr().err


class TestSeed:
    """Verify seeding persists to the snapshot file."""

    def test_seed_all(self, db_file, capsys):
        assert run(db_file, "seed") == 0
        out = capsys.readouterr().out
        assert "Seeded person" in out
        assert "Seeded shop" in out

    def test_seed_twice(self, db_file, capsys):
        run(db_file, "seed", "person")
        capsys.readouterr()
        assert run(db_file, "seed", "person") == 0
        assert "Nothing to seed." in capsys.readouterr().out

    def test_unknown_sample(self, db_file, capsys):
        assert run(db_file, "seed", "nope") == 1
        assert "Unknown sample(s): nope" in capsys.readouterr().err

    def test_walkthrough(self, db_file, capsys):
        run(db_file, "seed", "person", "--walkthrough")
        capsys.readouterr()
        run(db_file, "rows", "person")
        out = capsys.readouterr().out
        assert "101 | Raj Kumar | Gurgaon" in out
        assert "Sita" not in out
        assert "(3 rows)" in out


class TestInspect:
    def test_tables_empty(self, db_file, capsys):
        assert run(db_file, "tables") == 0
        assert "No tables found." in capsys.readouterr().out

    def test_tables(self, db_file, capsys):
        run(db_file, "seed", "person", "employees")
        capsys.readouterr()
        assert run(db_file, "tables") == 0
        out = capsys.readouterr().out
        assert "person  (4 rows)" in out
        assert "employees  (2 rows)" in out

    def test_show(self, db_file, capsys):
        run(db_file, "seed", "employees")
        capsys.readouterr()
        assert run(db_file, "show", "employees") == 0
        out = capsys.readouterr().out
        assert out.startswith("CREATE TABLE employees (")
        assert (
            "-- sequence employees_id_seq owned by employees.id, "
            "last value 2"
        ) in out

    def test_show_unknown_table(self, db_file, capsys):
        assert run(db_file, "show", "missing") == 1
        assert capsys.readouterr().err.startswith("ERROR: ")

    def test_rows_limit(self, db_file, capsys):
        run(db_file, "seed", "person")
        capsys.readouterr()
        assert run(db_file, "rows", "person", "--limit", "2") == 0
        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            "id | name | city",
            "101 | Raju | Delhi",
            "102 | Amit | Mumbai",
            "(2 rows)",
        ]


class TestDrop:
    def test_drop(self, db_file, capsys):
        run(db_file, "seed", "person")
        capsys.readouterr()
        assert run(db_file, "drop", "person") == 0
        assert "Dropped table 'person'" in capsys.readouterr().out
        run(db_file, "tables")
        assert "No tables found." in capsys.readouterr().out

    def test_drop_referenced_table(self, db_file, capsys):
        run(db_file, "seed", "shop")
        capsys.readouterr()
        assert run(db_file, "drop", "customers") == 1
        assert "ERROR: " in capsys.readouterr().err
        # The failed drop is not saved.
        run(db_file, "tables")
        assert "customers" in capsys.readouterr().out
