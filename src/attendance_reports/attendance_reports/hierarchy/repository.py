from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from ..core.enums import HierarchyLevel
from .model import EmployeeIdentity, HierarchyNode, LevelIndexRow, RowOutcome, TransferRecord


class HierarchySource(Protocol):
    """Read-only view of the HR roster (employees, org nodes, subsection transfers).

    Note (DIP): the builder depends on this interface, not on the sync tables directly.
    """

    def fetch_active_roster(self) -> Sequence[EmployeeIdentity]:
        raise NotImplementedError

    def fetch_hierarchy_nodes(self) -> Sequence[HierarchyNode]:
        raise NotImplementedError

    def fetch_active_transfers(self) -> Sequence[TransferRecord]:
        raise NotImplementedError


class LevelIndexStore(Protocol):
    """Persistence for the three level tables. Only the index builder writes through it."""

    def replace_level(self, level: HierarchyLevel, rows: Sequence[LevelIndexRow]) -> int:
        """Atomically replace the whole table with ``rows`` (already in clustered order).

        Readers see either the old table or the new one, never a partial one.
        """

        raise NotImplementedError

    def insert_missing(self, level: HierarchyLevel, rows: Sequence[LevelIndexRow]) -> Sequence[RowOutcome]:
        """Insert rows whose unique key is absent; never updates or deletes."""

        raise NotImplementedError

    def select_rows(self, level: HierarchyLevel, predicates: Mapping[str, str]) -> Sequence[LevelIndexRow]:
        """Rows matching equality predicates on code columns, in storage order."""

        raise NotImplementedError

    def count(self, level: HierarchyLevel) -> int:
        raise NotImplementedError
