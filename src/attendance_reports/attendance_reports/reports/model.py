from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Mapping, Optional

from ..cache.keys import report_key
from ..common.datetime_utils import parse_iso_date
from ..common.validators import optional_code, require_date_range
from ..core.enums import CacheTier, ReportType
from ..core.exceptions import ValidationError
from ..hierarchy.model import HierarchyFilter


@dataclass(frozen=True)
class ReportFilter:
    """Typed report filter. Codes are validated tokens; blank codes mean every code at that level."""

    start: date
    end: date
    division_code: Optional[str] = None
    section_code: Optional[str] = None
    subsection_code: Optional[str] = None

    def __post_init__(self):
        require_date_range(self.start, self.end)
        object.__setattr__(self, "division_code", optional_code(self.division_code, "division_code"))
        object.__setattr__(self, "section_code", optional_code(self.section_code, "section_code"))
        object.__setattr__(self, "subsection_code", optional_code(self.subsection_code, "subsection_code"))

    @classmethod
    def from_args(cls, args: Mapping[str, Any]) -> "ReportFilter":
        start_raw = args.get("start_date") or args.get("start")
        end_raw = args.get("end_date") or args.get("end")
        if not start_raw or not end_raw:
            raise ValidationError("start_date and end_date are required")
        try:
            start = parse_iso_date(str(start_raw))
            end = parse_iso_date(str(end_raw))
        except ValueError as e:
            raise ValidationError("dates must be formatted YYYY-MM-DD") from e
        return cls(
            start=start,
            end=end,
            division_code=args.get("division_code") or args.get("division"),
            section_code=args.get("section_code") or args.get("section"),
            subsection_code=args.get("subsection_code") or args.get("subsection"),
        )

    @property
    def hierarchy(self) -> HierarchyFilter:
        return HierarchyFilter(self.division_code, self.section_code, self.subsection_code)

    def cache_key(self, report_type: ReportType | str) -> str:
        return report_key(
            ReportType(report_type).value,
            division_code=self.division_code,
            section_code=self.section_code,
            subsection_code=self.subsection_code,
            start=self.start,
            end=self.end,
        )


@dataclass(frozen=True)
class SubQuery:
    """A named unit of work for the aggregator. Names are unique within one fan-out."""

    name: str
    run: Callable[[], Any]


@dataclass
class AggregateResult:
    """Sub-query results in declaration order; ``failed`` is only filled by the partial policy."""

    values: dict = field(default_factory=dict)
    failed: dict = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failed


@dataclass(frozen=True)
class ReportResult:
    report_type: ReportType
    key: str
    data: Any
    tier: CacheTier

    def as_dict(self) -> dict:
        return {
            "report_type": self.report_type.value,
            "cache_key": self.key,
            "served_from": self.tier.value,
            "data": self.data,
        }
