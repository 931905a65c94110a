from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from relstore.domain.entities.sequence import Sequence
    from relstore.domain.entities.table import Table


@dataclass
class CatalogSnapshot:
    """Point-in-time copy of every table, sequence and row.

    Attributes:
        tables: Table definitions in creation order.
        sequences: Sequences with their current counters.
        rows: Rows per table name, in insertion order.
    """

    tables: list["Table"] = field(default_factory=list)
    sequences: list["Sequence"] = field(default_factory=list)
    rows: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.tables)


class SnapshotRepo(ABC):
    """Abstract repository persisting whole-catalog snapshots.

    The in-memory store is the source of truth while running; a
    SnapshotRepo only saves it and loads it back. Concrete
    implementations live in the Data Layer.
    """

    @abstractmethod
    def save_snapshot(self, snapshot: CatalogSnapshot) -> None:
        """Replace the stored snapshot with ``snapshot``.

        Args:
            snapshot: Catalog contents to persist.

        Raises:
            SnapshotError: If a value cannot be serialized.
        """

    @abstractmethod
    def load_snapshot(self) -> CatalogSnapshot:
        """Read back the stored snapshot.

        Returns:
            The persisted catalog; empty when nothing was saved.

        Raises:
            SnapshotError: If stored data cannot be decoded.
        """

    @abstractmethod
    def clear(self) -> None:
        """Remove any stored snapshot."""

    @abstractmethod
    def close(self) -> None:
        """Release any held resources (connections, file handles)."""
