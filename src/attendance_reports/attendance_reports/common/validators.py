from __future__ import annotations

import re
from datetime import date
from typing import Optional

from ..core.exceptions import ValidationError

_CODE_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} must not be empty")
    return value.strip()


def optional_code(value: Optional[str], field_name: str) -> Optional[str]:
    """Normalize an optional hierarchy code: blank -> None, otherwise a safe token."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    if not _CODE_RE.match(value):
        raise ValidationError(f"{field_name} contains unsupported characters: {value!r}")
    return value


def require_date_range(start: date, end: date) -> None:
    if start > end:
        raise ValidationError(f"start date {start.isoformat()} is after end date {end.isoformat()}")


def require_positive(value: float, field_name: str) -> float:
    if value is None or value <= 0:
        raise ValidationError(f"{field_name} must be positive")
    return value


def require_non_negative(value: float, field_name: str) -> float:
    if value is None or value < 0:
        raise ValidationError(f"{field_name} must not be negative")
    return value
