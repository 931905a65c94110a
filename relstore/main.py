"""Entry point for the ``relstore`` command line."""

import argparse
import logging
import sys
from typing import Optional

from relstore import __version__, log
from relstore.commands import catalog
from relstore.domain.exceptions import RelstoreError
from relstore.log import logger

logger = logger.getChild(__name__)


def get_main_parser() -> argparse.ArgumentParser:
    parent_parser = argparse.ArgumentParser(add_help=False)

    parser = argparse.ArgumentParser(
        prog="relstore",
        description="Inspect and seed a relstore catalog snapshot.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db",
        metavar="PATH",
        help="SQLite snapshot file (default: $RELSTORE_DB_PATH).",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Be verbose."
    )
    parser.add_argument(
        "-V", "--version", action="version", version=__version__
    )

    subparsers = parser.add_subparsers(
        title="Available Commands",
        metavar="COMMAND",
        dest="cmd",
        help="Use `relstore COMMAND --help` for command-specific help.",
    )
    subparsers.required = True
    catalog.add_parser(subparsers, parent_parser)
    return parser


def main(argv: Optional[list] = None) -> int:
    """Run the CLI.

    Returns:
        0 on success, 1 when a relstore error was reported.
    """
    args = get_main_parser().parse_args(argv)
    log.setup(logging.DEBUG if args.verbose else logging.WARNING)

    cmd = args.func(args)
    try:
        return cmd.do_run()
    except RelstoreError as exc:
        logger.debug("command %s failed", args.cmd, exc_info=True)
        sys.stderr.write(f"ERROR: {exc}\n")
        return 1


if __name__ == "__main__":
    sys.exit(main())
