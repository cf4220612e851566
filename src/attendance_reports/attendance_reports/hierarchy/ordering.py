"""Physical ordering of level-table rows.

Hierarchy codes are compared numerically when they are plain ASCII digits and lexically
otherwise; numeric codes sort before non-numeric ones. The same key is stored in each level
table's clustered primary key as ``(<level>_rank, <level>_num, <level>_code)``.
"""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

CodeKey = Tuple[int, int, str]

NUMERIC_RANK = 0
TEXT_RANK = 1
MISSING_RANK = 2


def is_numeric_code(code: str) -> bool:
    return code.isascii() and code.isdigit()


def code_sort_key(code: Optional[str]) -> CodeKey:
    if code is None:
        return (MISSING_RANK, 0, "")
    code = code.strip()
    if not code:
        return (MISSING_RANK, 0, "")
    if is_numeric_code(code):
        return (NUMERIC_RANK, int(code), code)
    return (TEXT_RANK, 0, code)


def path_sort_key(codes: Sequence[Optional[str]], employee_id: str) -> tuple:
    """Key over a hierarchy path followed by the employee id (ties broken by id ascending)."""
    key: list = []
    for code in codes:
        key.extend(code_sort_key(code))
    key.append(employee_id)
    return tuple(key)


def is_sorted(keys: Sequence[tuple]) -> bool:
    return all(a <= b for a, b in zip(keys, keys[1:]))
