from __future__ import annotations

import logging
from typing import Mapping, Sequence

import mysql.connector

from ..core.enums import HierarchyLevel
from ..core.exceptions import ValidationError
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, executemany_chunked, fetchall, fetchone
from .model import LEVEL_CODE_COLUMNS, LevelIndexRow, RowOutcome
from .ordering import code_sort_key
from .repository import LevelIndexStore

logger = logging.getLogger(__name__)

LEVEL_TABLES = {
    HierarchyLevel.DIVISION: "emp_ids_by_divisions",
    HierarchyLevel.SECTION: "emp_ids_by_sections",
    HierarchyLevel.SUBSECTION: "emp_ids_by_subsections",
}


def _prefix(code_column: str) -> str:
    return code_column[: -len("_code")]


def _columns(level: HierarchyLevel) -> list[str]:
    cols: list[str] = []
    for code_col in LEVEL_CODE_COLUMNS[level]:
        p = _prefix(code_col)
        cols += [f"{p}_rank", f"{p}_num", code_col]
    cols += [f"{level.value}_name", "employee_id", "employee_name", "synced_at"]
    return cols


def _order_by(level: HierarchyLevel) -> str:
    parts: list[str] = []
    for code_col in LEVEL_CODE_COLUMNS[level]:
        p = _prefix(code_col)
        parts += [f"{p}_rank", f"{p}_num", code_col]
    parts.append("employee_id")
    return ", ".join(parts)


def _params(row: LevelIndexRow) -> tuple:
    out: list = []
    for code in row.codes:
        rank, num, text = code_sort_key(code)
        out += [rank, num, text]
    out += [row.name, row.employee_id, row.employee_name, row.synced_at]
    return tuple(out)


def _to_row(level: HierarchyLevel, r: dict) -> LevelIndexRow:
    return LevelIndexRow(
        level=level,
        codes=tuple(str(r[c]) for c in LEVEL_CODE_COLUMNS[level]),
        name=r.get(f"{level.value}_name"),
        employee_id=str(r["employee_id"]),
        employee_name=r.get("employee_name"),
        synced_at=r.get("synced_at"),
    )


def code_predicates(level: HierarchyLevel, predicates: Mapping[str, str], *, alias: str = "") -> tuple[list[str], list]:
    """Equality predicates on a level table, expressed on the clustered key columns.

    Column names are whitelisted against the level; values are always bound parameters.
    """
    allowed = LEVEL_CODE_COLUMNS[level]
    qual = f"{alias}." if alias else ""
    where: list[str] = []
    params: list = []
    for col, value in predicates.items():
        if col not in allowed:
            raise ValidationError(f"{col} is not a column of the {level.value} table")
        rank, num, text = code_sort_key(value)
        p = _prefix(col)
        where.append(f"{qual}{p}_rank = %s AND {qual}{p}_num = %s AND {qual}{col} = %s")
        params += [rank, num, text]
    return where, params


class MySQLLevelIndexStore(LevelIndexStore):
    """Level tables whose clustered primary key is the hierarchy sort key.

    InnoDB stores rows in primary-key order, so a filter on a code prefix is a contiguous
    range scan and rows added by incremental sync still land in hierarchy order.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _insert_sql(self, table: str, level: HierarchyLevel, *, on_duplicate: bool = False) -> str:
        cols = _columns(level)
        sql = f"INSERT INTO {table} ({', '.join(cols)}) VALUES ({', '.join(['%s'] * len(cols))})"
        if on_duplicate:
            sql += " ON DUPLICATE KEY UPDATE employee_id = employee_id"
        return sql

    def replace_level(self, level: HierarchyLevel, rows: Sequence[LevelIndexRow]) -> int:
        live = LEVEL_TABLES[level]
        shadow = f"{live}__shadow"
        retired = f"{live}__old"

        with db_cursor(self._conn_factory, dictionary=False) as (_, cur):
            cur.execute(f"DROP TABLE IF EXISTS {shadow}")
            cur.execute(f"DROP TABLE IF EXISTS {retired}")
            cur.execute(f"CREATE TABLE {shadow} LIKE {live}")
            try:
                written = executemany_chunked(cur, self._insert_sql(shadow, level), (_params(r) for r in rows))
                # Single RENAME of both tables is atomic: readers see old or new, never neither.
                cur.execute(f"RENAME TABLE {live} TO {retired}, {shadow} TO {live}")
            except Exception:
                cur.execute(f"DROP TABLE IF EXISTS {shadow}")
                raise
            cur.execute(f"DROP TABLE IF EXISTS {retired}")

        logger.debug("Swapped %s into place (%d rows)", live, written)
        return written

    def insert_missing(self, level: HierarchyLevel, rows: Sequence[LevelIndexRow]) -> Sequence[RowOutcome]:
        table = LEVEL_TABLES[level]
        sql = self._insert_sql(table, level, on_duplicate=True)
        outcomes: list[RowOutcome] = []
        with db_cursor(self._conn_factory, dictionary=False) as (conn, cur):
            conn.autocommit = True
            for row in rows:
                try:
                    cur.execute(sql, _params(row))
                    # MySQL reports 1 for an insert and 0 when the duplicate-key no-op fired.
                    outcomes.append(RowOutcome(row=row, inserted=cur.rowcount == 1))
                except mysql.connector.Error as e:
                    outcomes.append(RowOutcome(row=row, inserted=False, error=str(e)))
        return outcomes

    def select_rows(self, level: HierarchyLevel, predicates: Mapping[str, str]) -> Sequence[LevelIndexRow]:
        where, params = code_predicates(level, predicates)
        sql = f"SELECT {', '.join(_columns(level))} FROM {LEVEL_TABLES[level]}"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += f" ORDER BY {_order_by(level)}"

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_to_row(level, r) for r in fetchall(cur)]

    def count(self, level: HierarchyLevel) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT COUNT(*) AS total FROM {LEVEL_TABLES[level]}")
            row = fetchone(cur)
            return int(row["total"]) if row else 0
