from __future__ import annotations

from typing import Sequence

from ..core.enums import HierarchyLevel
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall
from .model import EmployeeIdentity, HierarchyNode, TransferRecord
from .repository import HierarchySource


def _text(value) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


class MySQLHierarchySource(HierarchySource):
    """Reads the HRIS sync tables (employees_sync, divisions_sync, sections_sync, sub_sections,
    transferred_employees). Never writes to them."""

    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def fetch_active_roster(self) -> Sequence[EmployeeIdentity]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT EMP_NO AS employee_id, EMP_NAME AS employee_name,
                       DIV_CODE AS division_code, SEC_CODE AS section_code
                FROM employees_sync
                WHERE IS_ACTIVE = 1
                ORDER BY CAST(DIV_CODE AS UNSIGNED), CAST(SEC_CODE AS UNSIGNED), EMP_NO
                """
            )
            rows = fetchall(cur)
            return [
                EmployeeIdentity(
                    employee_id=str(r["employee_id"]),
                    employee_name=r.get("employee_name"),
                    division_code=_text(r.get("division_code")),
                    section_code=_text(r.get("section_code")),
                )
                for r in rows
            ]

    def fetch_hierarchy_nodes(self) -> Sequence[HierarchyNode]:
        nodes: list[HierarchyNode] = []
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute("SELECT HIE_CODE AS code, HIE_NAME AS name FROM divisions_sync")
            for r in fetchall(cur):
                nodes.append(HierarchyNode(HierarchyLevel.DIVISION, str(r["code"]).strip(), r.get("name")))

            cur.execute("SELECT HIE_CODE AS code, HIE_NAME AS name, HIE_RELATIONSHIP AS parent FROM sections_sync")
            for r in fetchall(cur):
                nodes.append(
                    HierarchyNode(HierarchyLevel.SECTION, str(r["code"]).strip(), r.get("name"), _text(r.get("parent")))
                )

            cur.execute("SELECT id AS code, sub_section_name AS name, section_code AS parent FROM sub_sections")
            for r in fetchall(cur):
                nodes.append(
                    HierarchyNode(HierarchyLevel.SUBSECTION, str(r["code"]).strip(), r.get("name"), _text(r.get("parent")))
                )
        return nodes

    def fetch_active_transfers(self) -> Sequence[TransferRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT employee_id, sub_section_id
                FROM transferred_employees
                WHERE transferred_status = 1
                ORDER BY id
                """
            )
            return [
                TransferRecord(employee_id=str(r["employee_id"]), subsection_id=str(r["sub_section_id"]), active=True)
                for r in fetchall(cur)
            ]
