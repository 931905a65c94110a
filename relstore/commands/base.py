"""Base class for relstore CLI commands."""

import sys
from abc import ABC, abstractmethod

from relstore.app.manager import Database


class CmdBase(ABC):
    """A CLI command bound to one Database.

    The saved catalog is loaded before ``run`` and the connection is
    closed afterwards. Commands that change the catalog set
    ``SAVES = True`` so the result is written back.

    Attributes:
        args: Parsed argparse namespace.
        db: Database opened on ``args.db``.
    """

    SAVES = False

    def __init__(self, args) -> None:
        self.args = args
        self.db = Database(db_path=getattr(args, "db", None))

    def do_run(self) -> int:
        try:
            self.db.load()
            ret = self.run()
            if self.SAVES and ret == 0:
                self.db.save()
            return ret
        finally:
            self.db.close()

    @abstractmethod
    def run(self) -> int:
        """Execute the command and return an exit code."""

    @staticmethod
    def write(text: str = "") -> None:
        sys.stdout.write(f"{text}\n")

    @staticmethod
    def error_write(text: str) -> None:
        sys.stderr.write(f"{text}\n")
