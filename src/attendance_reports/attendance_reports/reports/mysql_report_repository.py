from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..hierarchy.mysql_level_index_store import LEVEL_TABLES, code_predicates
from ..hierarchy.selector import LevelSelection
from .repository import AttendanceReportRepository

FACT_TABLE = "attendance_reports_optimized"

_PRESENT = "SUM(CASE WHEN a.attendance_status = 'Present' THEN 1 ELSE 0 END)"


_TEXT_COLUMNS = {
    "division_code",
    "division_name",
    "section_code",
    "section_name",
    "employee_id",
    "employee_name",
}


def _number(value):
    if value is None:
        return 0
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


def _clean(row: dict) -> dict:
    return {k: v if k in _TEXT_COLUMNS else _number(v) for k, v in row.items()}


class MySQLAttendanceReportRepository(AttendanceReportRepository):
    """Aggregates over the daily fact table.

    A hierarchy filter is applied by joining the selected level table on employee id; each
    employee has at most one row per level table so the join never multiplies fact rows.
    """

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _scope(self, scope: LevelSelection) -> tuple[str, list[str], list]:
        if scope.uses_roster:
            return "", [], []
        where, params = code_predicates(scope.level, dict(scope.predicates), alias="lvl")
        join = f" JOIN {LEVEL_TABLES[scope.level]} lvl ON lvl.employee_id = a.emp_id"
        return join, where, params

    def _select(
        self,
        columns: str,
        scope: LevelSelection,
        start: date,
        end: date,
        *,
        group_by: str = "",
        order_by: str = "",
    ) -> tuple[str, tuple]:
        join, where, params = self._scope(scope)
        clauses = ["a.attendance_date BETWEEN %s AND %s"] + where
        sql = f"SELECT {columns} FROM {FACT_TABLE} a{join} WHERE {' AND '.join(clauses)}"
        if group_by:
            sql += f" GROUP BY {group_by}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        return sql, tuple([start, end] + params)

    def _all(self, sql: str, params: tuple) -> list[dict[str, Any]]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            return [_clean(r) for r in fetchall(cur)]

    def _one(self, sql: str, params: tuple) -> dict[str, Any]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, params)
            row = fetchone(cur)
            return _clean(row) if row else {}

    def division_stats(self, scope: LevelSelection, start: date, end: date) -> Sequence[dict[str, Any]]:
        sql, params = self._select(
            f"""a.division_code, MAX(a.division_name) AS division_name,
                COUNT(DISTINCT a.emp_id) AS emp_count,
                {_PRESENT} AS present,
                COUNT(*) - {_PRESENT} AS absent""",
            scope,
            start,
            end,
            group_by="a.division_code",
            order_by="CAST(a.division_code AS UNSIGNED), a.division_code",
        )
        return self._all(sql, params)

    def section_stats(self, scope: LevelSelection, start: date, end: date) -> Sequence[dict[str, Any]]:
        sql, params = self._select(
            """a.division_code, a.section_code, MAX(a.section_name) AS section_name,
               COUNT(DISTINCT a.emp_id) AS emp_count,
               COUNT(DISTINCT a.attendance_date) AS days""",
            scope,
            start,
            end,
            group_by="a.division_code, a.section_code",
            order_by="CAST(a.division_code AS UNSIGNED), a.division_code, "
            "CAST(a.section_code AS UNSIGNED), a.section_code",
        )
        return self._all(sql, params)

    def employee_totals(self, scope: LevelSelection, start: date, end: date) -> dict[str, Any]:
        sql, params = self._select(
            "COUNT(DISTINCT a.emp_id) AS total_employees, COUNT(DISTINCT a.attendance_date) AS working_days",
            scope,
            start,
            end,
        )
        return self._one(sql, params)

    def summary(self, scope: LevelSelection, start: date, end: date) -> dict[str, Any]:
        sql, params = self._select(
            f"""COUNT(*) AS total_records,
                {_PRESENT} AS total_present,
                ROUND({_PRESENT} / NULLIF(COUNT(*), 0) * 100, 2) AS attendance_pct""",
            scope,
            start,
            end,
        )
        return self._one(sql, params)

    def group_rows(self, scope: LevelSelection, start: date, end: date) -> Sequence[dict[str, Any]]:
        if scope.uses_roster:
            order_by = "CAST(MAX(a.division_code) AS UNSIGNED), MAX(a.division_code), a.emp_id"
        else:
            # Level table primary key order: the hierarchy sort order.
            order_by = "MIN(lvl.division_rank), MIN(lvl.division_num), MIN(lvl.division_code), a.emp_id"
        sql, params = self._select(
            f"""a.emp_id AS employee_id, MAX(a.emp_name) AS employee_name,
                MAX(a.division_code) AS division_code, MAX(a.section_code) AS section_code,
                COUNT(*) AS records, {_PRESENT} AS present_days,
                COALESCE(SUM(a.work_hours), 0) AS work_hours""",
            scope,
            start,
            end,
            group_by="a.emp_id",
            order_by=order_by,
        )
        return self._all(sql, params)
