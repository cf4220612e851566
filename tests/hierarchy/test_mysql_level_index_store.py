from __future__ import annotations

from datetime import datetime

import pytest
from mysql.connector.errors import DatabaseError, IntegrityError

from src.attendance_reports.attendance_reports.core.enums import HierarchyLevel
from src.attendance_reports.attendance_reports.core.exceptions import ValidationError
from src.attendance_reports.attendance_reports.hierarchy.model import LevelIndexRow
from src.attendance_reports.attendance_reports.hierarchy.mysql_level_index_store import (
    MySQLLevelIndexStore,
    code_predicates,
)
from tests.fakes import RecordingConnectionFactory

SEC = HierarchyLevel.SECTION
SYNCED = datetime(2026, 2, 1, 6, 30)


def _section_row(div, sec, emp, name="Sewing"):
    return LevelIndexRow(
        level=SEC, codes=(div, sec), name=name, employee_id=emp, employee_name=f"name {emp}", synced_at=SYNCED
    )


@pytest.fixture
def db():
    return RecordingConnectionFactory()


def test_replace_level_fills_a_shadow_table_then_swaps_it_in_with_one_rename(db):
    rows = [_section_row("1", "2", "E01"), _section_row("1", "12", "E02")]

    written = MySQLLevelIndexStore(db).replace_level(SEC, rows)

    assert written == 2
    sql = db.sql()
    assert sql[:3] == [
        "DROP TABLE IF EXISTS emp_ids_by_sections__shadow",
        "DROP TABLE IF EXISTS emp_ids_by_sections__old",
        "CREATE TABLE emp_ids_by_sections__shadow LIKE emp_ids_by_sections",
    ]
    kind, insert_sql, params = db.statements[3]
    assert kind == "executemany"
    assert insert_sql.startswith("INSERT INTO emp_ids_by_sections__shadow (")
    assert params == [
        (0, 1, "1", 0, 2, "2", "Sewing", "E01", "name E01", SYNCED),
        (0, 1, "1", 0, 12, "12", "Sewing", "E02", "name E02", SYNCED),
    ]
    assert sql[4:] == [
        "RENAME TABLE emp_ids_by_sections TO emp_ids_by_sections__old, "
        "emp_ids_by_sections__shadow TO emp_ids_by_sections",
        "DROP TABLE IF EXISTS emp_ids_by_sections__old",
    ]
    assert db.commits == 1


def test_failed_fill_drops_the_shadow_and_leaves_the_live_table(db):
    db.fail_on["INSERT INTO"] = DatabaseError("Lock wait timeout exceeded")

    with pytest.raises(DatabaseError):
        MySQLLevelIndexStore(db).replace_level(SEC, [_section_row("1", "2", "E01")])

    sql = db.sql()
    assert sql[-1] == "DROP TABLE IF EXISTS emp_ids_by_sections__shadow"
    assert not any(s.startswith("RENAME TABLE") for s in sql)
    assert not any(s == "DROP TABLE IF EXISTS emp_ids_by_sections" for s in sql)
    assert db.rollbacks == 1
    assert db.commits == 0


def test_insert_missing_reads_the_affected_row_count(db):
    rows = [_section_row("1", "2", "E01"), _section_row("1", "2", "E07"), _section_row("66", "3", "E10")]
    db.rowcounts = [1, 0, IntegrityError("Data too long for column 'employee_name'")]

    outcomes = MySQLLevelIndexStore(db).insert_missing(SEC, rows)

    assert [(o.inserted, o.failed) for o in outcomes] == [(True, False), (False, False), (False, True)]
    assert "Data too long" in outcomes[2].error
    assert all("ON DUPLICATE KEY UPDATE" in s for s in db.sql())
    assert db.connections[0].autocommit is True


def test_select_rows_binds_every_value(db):
    db.result_rows = [
        {
            "division_code": "66",
            "section_code": "3",
            "section_name": "Payroll",
            "employee_id": "E10",
            "employee_name": "name E10",
            "synced_at": SYNCED,
        }
    ]

    rows = MySQLLevelIndexStore(db).select_rows(SEC, {"division_code": "66", "section_code": "3"})

    (_, sql, params) = db.statements[0]
    assert "66" not in sql
    assert sql.count("%s") == len(params) == 6
    assert params == (0, 66, "66", 0, 3, "3")
    assert sql.endswith(
        "ORDER BY division_rank, division_num, division_code, section_rank, section_num, section_code, employee_id"
    )
    assert rows == [
        LevelIndexRow(
            level=SEC, codes=("66", "3"), name="Payroll", employee_id="E10", employee_name="name E10", synced_at=SYNCED
        )
    ]


def test_code_predicates_keep_values_out_of_the_sql():
    where, params = code_predicates(HierarchyLevel.DIVISION, {"division_code": "1' OR '1'='1"}, alias="lvl")

    assert where == ["lvl.division_rank = %s AND lvl.division_num = %s AND lvl.division_code = %s"]
    assert params == [1, 0, "1' OR '1'='1"]


@pytest.mark.parametrize(
    "level, column",
    [
        (HierarchyLevel.DIVISION, "section_code"),
        (HierarchyLevel.SECTION, "subsection_code"),
        (HierarchyLevel.SUBSECTION, "employee_name"),
        (HierarchyLevel.DIVISION, "division_code = division_code OR 1"),
    ],
)
def test_code_predicates_reject_columns_outside_the_level(level, column):
    with pytest.raises(ValidationError):
        code_predicates(level, {column: "1"})
