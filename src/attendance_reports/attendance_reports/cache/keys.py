from __future__ import annotations

from datetime import date
from typing import Optional, Union

from ..core.constants import ALL_CODES


def _part(code: Optional[str]) -> str:
    return code if code else ALL_CODES


def _day(value: Union[date, str, None]) -> str:
    if value is None:
        return ALL_CODES
    return value.isoformat() if isinstance(value, date) else str(value)


def report_prefix(report_type: str) -> str:
    return f"{report_type}:"


def report_key(
    report_type: str,
    *,
    division_code: Optional[str] = None,
    section_code: Optional[str] = None,
    subsection_code: Optional[str] = None,
    start: Union[date, str, None] = None,
    end: Union[date, str, None] = None,
) -> str:
    """``<type>:<division>/<section>/<subsection>:<start>:<end>``; absent parts read ``*``."""
    scope = "/".join(_part(c) for c in (division_code, section_code, subsection_code))
    return f"{report_prefix(report_type)}{scope}:{_day(start)}:{_day(end)}"
