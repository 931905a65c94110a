"""Concrete SnapshotRepo implementation backed by SQLite.

Implements the SnapshotRepo ABC from the Domain Layer by delegating
all I/O to DAL objects that execute SQL on a SQLite database. Handles
entity-to-dict and dict-to-entity conversions, including tagged JSON
for values and enum mapping for column types and constraint kinds.
"""

import json
import sqlite3
from typing import Any, Optional

from relstore.data.codec import (
    decode_row,
    decode_value,
    encode_row,
    encode_value,
)
from relstore.data.dal.row_dal import RowDAL
from relstore.data.dal.sequence_dal import SequenceDAL
from relstore.data.dal.table_dal import TableDAL
from relstore.data.schema import SCHEMA_DDL
from relstore.domain.entities.column import Column
from relstore.domain.entities.constraint import (
    CheckConstraint,
    Constraint,
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
    ConstraintKind,
    DefaultExpression,
)
from relstore.domain.exceptions import SnapshotError
from relstore.domain.value_objects import (
    Default,
    ExpressionDefault,
    LiteralDefault,
    SequenceDefault,
)
from relstore.log import logger

logger = logger.getChild(__name__)

_CONSTRAINT_CLS_MAP = {
    ConstraintKind.PRIMARY_KEY: PrimaryKeyConstraint,
    ConstraintKind.UNIQUE: UniqueConstraint,
    ConstraintKind.FOREIGN_KEY: ForeignKeyConstraint,
    ConstraintKind.CHECK: CheckConstraint,
}


class SnapshotRepoSQLite(SnapshotRepo):
    """Concrete SnapshotRepo backed by SQLite via DAL objects.

    Manages a single SQLite connection with foreign keys enabled.
    Creates tables on first access. Delegates all SQL execution to DAL
    classes (TableDAL, SequenceDAL, RowDAL).

    Attributes:
        _db_path: Path to SQLite database file (or ':memory:').
        _conn: Lazy-initialized SQLite connection.
        _table_dal: DAL for table definitions.
        _sequence_dal: DAL for sequences.
        _row_dal: DAL for rows.
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize with database path.

        Args:
            db_path: Path to SQLite database file.
                     Use ':memory:' for in-memory testing.
        """
        self._db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None
        self._table_dal: Optional[TableDAL] = None
        self._sequence_dal: Optional[SequenceDAL] = None
        self._row_dal: Optional[RowDAL] = None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def conn(self) -> sqlite3.Connection:
        """Lazy-initialize and return the database connection.

        Returns:
            Active SQLite connection with foreign keys enforced.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                self._db_path, check_same_thread=False
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._ensure_schema()
            self._table_dal = TableDAL(self._conn)
            self._sequence_dal = SequenceDAL(self._conn)
            self._row_dal = RowDAL(self._conn)
        return self._conn

    @property
    def table_dal(self) -> TableDAL:
        """Access the table DAL (triggers connection if needed)."""
        self.conn  # ensure initialized
        return self._table_dal

    @property
    def sequence_dal(self) -> SequenceDAL:
        """Access the sequence DAL (triggers connection if needed)."""
        self.conn  # ensure initialized
        return self._sequence_dal

    @property
    def row_dal(self) -> RowDAL:
        """Access the row DAL (triggers connection if needed)."""
        self.conn  # ensure initialized
        return self._row_dal

    def _ensure_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        self._conn.executescript(SCHEMA_DDL)

    # ── SnapshotRepo ──────────────────────────────────────────

    def save_snapshot(self, snapshot: CatalogSnapshot) -> None:
        try:
            self._delete_all()
            for position, table in enumerate(snapshot.tables):
                self.table_dal.save({
                    "name": table.name,
                    "position": position,
                    "definition": json.dumps(self._table_to_dict(table)),
                })
            for seq in snapshot.sequences:
                self.sequence_dal.save(self._sequence_to_dict(seq))
            for table_name, rows in snapshot.rows.items():
                self.row_dal.save_many([
                    {
                        "table_name": table_name,
                        "position": position,
                        "data": json.dumps(encode_row(row)),
                    }
                    for position, row in enumerate(rows)
                ])
        except (sqlite3.Error, SnapshotError):
            self.conn.rollback()
            raise
        self.conn.commit()
        logger.debug(
            "saved snapshot of %d table(s) to %s",
            len(snapshot.tables), self._db_path,
        )

    def load_snapshot(self) -> CatalogSnapshot:
        snapshot = CatalogSnapshot()
        try:
            for record in self.table_dal.list_all():
                table = self._table_from_dict(json.loads(record["definition"]))
                snapshot.tables.append(table)
                snapshot.rows[table.name] = [
                    decode_row(json.loads(r["data"]))
                    for r in self.row_dal.list_for_table(table.name)
                ]
            snapshot.sequences = [
                self._sequence_from_dict(r)
                for r in self.sequence_dal.list_all()
            ]
        except (KeyError, ValueError, TypeError) as exc:
            raise SnapshotError(
                f"Corrupt snapshot in {self._db_path}: {exc}"
            ) from exc
        logger.debug(
            "loaded snapshot of %d table(s) from %s",
            len(snapshot.tables), self._db_path,
        )
        return snapshot

    def clear(self) -> None:
        self._delete_all()
        self.conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._table_dal = None
            self._sequence_dal = None
            self._row_dal = None

    def _delete_all(self) -> None:
        self.row_dal.delete_all()
        self.sequence_dal.delete_all()
        self.table_dal.delete_all()

    # ── Serialization helpers ─────────────────────────────────

    def _table_to_dict(self, table: Table) -> dict:
        """Convert Table entity to persistence dictionary."""
        return {
            "name": table.name,
            "columns": [self._column_to_dict(c) for c in table.columns],
            "constraints": [
                self._constraint_to_dict(c) for c in table.constraints
            ],
        }

    def _table_from_dict(self, data: dict) -> Table:
        """Reconstruct Table entity from persistence dictionary."""
        return Table(
            name=data["name"],
            columns=[self._column_from_dict(c) for c in data["columns"]],
            constraints=[
                self._constraint_from_dict(c) for c in data["constraints"]
            ],
        )

    def _column_to_dict(self, column: Column) -> dict:
        return {
            "name": column.name,
            "type": column.column_type.value,
            "length": column.length,
            "precision": column.precision,
            "scale": column.scale,
            "nullable": column.nullable,
            "default": self._default_to_dict(column.default),
        }

    def _column_from_dict(self, data: dict) -> Column:
        return Column(
            name=data["name"],
            column_type=ColumnType(data["type"]),
            length=data["length"],
            precision=data["precision"],
            scale=data["scale"],
            nullable=data["nullable"],
            default=self._default_from_dict(data["default"]),
        )

    def _default_to_dict(self, default: Optional[Default]) -> Optional[dict]:
        if default is None:
            return None
        if isinstance(default, LiteralDefault):
            return {"kind": "literal", "value": encode_value(default.value)}
        if isinstance(default, ExpressionDefault):
            return {"kind": "expression", "value": default.expression.value}
        return {"kind": "sequence", "value": default.sequence}

    def _default_from_dict(self, data: Optional[dict]) -> Optional[Default]:
        if data is None:
            return None
        kind = data["kind"]
        if kind == "literal":
            return LiteralDefault(decode_value(data["value"]))
        if kind == "expression":
            return ExpressionDefault(DefaultExpression(data["value"]))
        if kind == "sequence":
            return SequenceDefault(data["value"])
        raise SnapshotError(f"Unknown default kind: {kind}")

    def _constraint_to_dict(self, constraint: Constraint) -> dict:
        data: dict[str, Any] = {
            "kind": constraint.kind.value,
            "name": constraint.name,
            "columns": list(constraint.columns),
        }
        if isinstance(constraint, ForeignKeyConstraint):
            data["ref_table"] = constraint.ref_table
            data["ref_columns"] = list(constraint.ref_columns)
        elif isinstance(constraint, CheckConstraint):
            data["columns"] = [constraint.column]
            data["operator"] = constraint.operator.value
            data["operand"] = encode_value(constraint.operand)
            data["other_column"] = constraint.other_column
        return data

    def _constraint_from_dict(self, data: dict) -> Constraint:
        kind = ConstraintKind(data["kind"])
        cls = _CONSTRAINT_CLS_MAP.get(kind)
        if cls is None:
            raise SnapshotError(f"Unknown constraint kind: {kind.value}")
        kwargs: dict[str, Any] = {
            "name": data["name"],
            "columns": tuple(data["columns"]),
        }
        if cls is ForeignKeyConstraint:
            kwargs["ref_table"] = data["ref_table"]
            kwargs["ref_columns"] = tuple(data["ref_columns"])
        elif cls is CheckConstraint:
            kwargs["operator"] = CheckOperator(data["operator"])
            kwargs["operand"] = decode_value(data["operand"])
            kwargs["other_column"] = data["other_column"]
        return cls(**kwargs)

    def _sequence_to_dict(self, seq: Sequence) -> dict:
        return {
            "name": seq.name,
            "table_name": seq.table,
            "column_name": seq.column,
            "start": seq.start,
            "increment": seq.increment,
            "last_value": seq.last_value,
        }

    def _sequence_from_dict(self, data: dict) -> Sequence:
        return Sequence(
            name=data["name"],
            table=data["table_name"],
            column=data["column_name"],
            start=data["start"],
            increment=data["increment"],
            last_value=data["last_value"],
        )
