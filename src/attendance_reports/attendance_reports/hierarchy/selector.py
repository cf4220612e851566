from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from ..core.enums import HierarchyLevel
from .model import EmployeeRef, HierarchyFilter
from .repository import HierarchySource, LevelIndexStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LevelSelection:
    """Which table answers a filter, and the equality predicates to apply to it.

    ``level`` is None when no hierarchy code was given: the active roster is used as-is.
    """

    level: Optional[HierarchyLevel]
    predicates: tuple[tuple[str, str], ...] = ()

    @property
    def uses_roster(self) -> bool:
        return self.level is None

    @property
    def discriminator(self) -> str:
        if self.level is None:
            return "roster"
        return self.level.value + "|" + ",".join(f"{col}={val}" for col, val in self.predicates)


def select_level(flt: HierarchyFilter) -> LevelSelection:
    """Pick the most specific level table the filter satisfies.

    subsection code -> subsection table; section code -> section table; division code ->
    division table; nothing -> full active roster. Codes above the chosen level become
    extra predicates so the clustered prefix is used when available.
    """

    preds: list[tuple[str, str]] = []
    if flt.division_code:
        preds.append(("division_code", flt.division_code))

    if flt.subsection_code:
        if flt.section_code:
            preds.append(("section_code", flt.section_code))
        preds.append(("subsection_code", flt.subsection_code))
        return LevelSelection(HierarchyLevel.SUBSECTION, tuple(preds))

    if flt.section_code:
        preds.append(("section_code", flt.section_code))
        return LevelSelection(HierarchyLevel.SECTION, tuple(preds))

    if flt.division_code:
        return LevelSelection(HierarchyLevel.DIVISION, tuple(preds))

    return LevelSelection(None)


class LevelSelector:
    """Resolves a hierarchy filter to the narrowest matching employee set."""

    def __init__(self, store: LevelIndexStore, source: HierarchySource):
        self._store = store
        self._source = source

    def select(self, flt: HierarchyFilter) -> LevelSelection:
        return select_level(flt)

    def resolve(self, flt: HierarchyFilter) -> Sequence[EmployeeRef]:
        selection = select_level(flt)
        if selection.uses_roster:
            logger.debug("No hierarchy filter; using the active roster")
            return [EmployeeRef(e.employee_id, e.employee_name) for e in self._source.fetch_active_roster()]

        rows = self._store.select_rows(selection.level, dict(selection.predicates))
        logger.debug("Filter %s resolved to %d employees", selection.discriminator, len(rows))
        return [EmployeeRef(r.employee_id, r.employee_name) for r in rows]
