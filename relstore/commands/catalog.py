"""CLI commands for inspecting and seeding a relstore catalog.

Provides the ``seed``, ``tables``, ``show``, ``rows`` and ``drop``
subcommands.
"""

import argparse
from itertools import islice

from relstore.app.samples import SAMPLES, load_samples, person_walkthrough
from relstore.commands.base import CmdBase
from relstore.log import logger

logger = logger.getChild(__name__)


def _format_value(value) -> str:
    return "NULL" if value is None else str(value)


def _row_limit(value: str) -> int:
    limit = int(value)
    if limit < 0:
        raise argparse.ArgumentTypeError(
            f"must be zero or more, got {limit}"
        )
    return limit


class CmdSeed(CmdBase):
    """Create the teaching schemas with their sample rows."""

    SAVES = True

    def run(self):
        unknown = [s for s in self.args.samples if s not in SAMPLES]
        if unknown:
            self.error_write(f"Unknown sample(s): {', '.join(unknown)}")
            return 1

        created = load_samples(self.db, self.args.samples or None)
        if self.args.walkthrough and "person" in created:
            person_walkthrough(self.db)
        if not created:
            self.write("Nothing to seed.")
            return 0
        for name in created:
            self.write(f"Seeded {name}")
        return 0


class CmdTables(CmdBase):
    """List all tables with their row counts."""

    def run(self):
        tables = self.db.list_tables()
        if not tables:
            self.write("No tables found.")
            return 0

        for table in tables:
            count = self.db.count(table.name)
            self.write(
                f"  {table.name}  "
                f"({count} row{'s' if count != 1 else ''})"
            )
        return 0


class CmdShow(CmdBase):
    """Show a table definition as CREATE TABLE plus its sequences."""

    def run(self):
        table = self.db.get_table(self.args.table)
        self.write(table.to_sql())
        for seq in self.db.registry.list_sequences():
            if seq.table == table.name:
                self.write(
                    f"-- sequence {seq.name} owned by "
                    f"{seq.table}.{seq.column}, last value "
                    f"{_format_value(seq.last_value)}"
                )
        return 0


class CmdRows(CmdBase):
    """Print the rows of a table in insertion order."""

    def run(self):
        table = self.db.get_table(self.args.table)
        names = table.column_names
        self.write(" | ".join(names))
        rows = self.db.scan(table.name)
        if self.args.limit is not None:
            rows = islice(rows, self.args.limit)
        shown = 0
        for row in rows:
            self.write(" | ".join(_format_value(row[n]) for n in names))
            shown += 1
        self.write(f"({shown} row{'s' if shown != 1 else ''})")
        return 0


class CmdDrop(CmdBase):
    """Drop a table and its rows."""

    SAVES = True

    def run(self):
        self.db.drop_table(self.args.table)
        logger.debug("dropped %s from %s", self.args.table, self.args.db)
        self.write(f"Dropped table '{self.args.table}'")
        return 0


def add_parser(subparsers, parent_parser):
    """Register the catalog subcommands."""

    # -- seed --
    seed_parser = subparsers.add_parser(
        "seed",
        parents=[parent_parser],
        help="Create the teaching schemas and sample rows.",
    )
    seed_parser.add_argument(
        "samples",
        nargs="*",
        help=f"Samples to create: {', '.join(SAMPLES)} (default: all).",
    )
    seed_parser.add_argument(
        "--walkthrough",
        action="store_true",
        help="Also apply the person UPDATE/DELETE steps.",
    )
    seed_parser.set_defaults(func=CmdSeed)

    # -- tables --
    tables_parser = subparsers.add_parser(
        "tables",
        parents=[parent_parser],
        help="List tables.",
    )
    tables_parser.set_defaults(func=CmdTables)

    # -- show --
    show_parser = subparsers.add_parser(
        "show",
        parents=[parent_parser],
        help="Show a table definition.",
    )
    show_parser.add_argument("table", help="Table name.")
    show_parser.set_defaults(func=CmdShow)

    # -- rows --
    rows_parser = subparsers.add_parser(
        "rows",
        parents=[parent_parser],
        help="Print the rows of a table.",
    )
    rows_parser.add_argument("table", help="Table name.")
    rows_parser.add_argument(
        "-n", "--limit", type=_row_limit, help="Show at most N rows."
    )
    rows_parser.set_defaults(func=CmdRows)

    # -- drop --
    drop_parser = subparsers.add_parser(
        "drop",
        parents=[parent_parser],
        help="Drop a table.",
    )
    drop_parser.add_argument("table", help="Table name.")
    drop_parser.set_defaults(func=CmdDrop)
