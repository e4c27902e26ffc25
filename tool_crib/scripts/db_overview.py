#!/usr/bin/env python3
"""Database overview and integrity checks for the tool crib."""

from __future__ import annotations

import argparse
import os
import sys
from dataclasses import dataclass
from pathlib import Path

APP_DIR = Path(__file__).resolve().parents[1]
if str(APP_DIR) not in sys.path:
    sys.path.insert(0, str(APP_DIR))

from sqlalchemy import create_engine, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from domain.records import LogRecord, ToolRecord
from models.crib_models import LogEntry, Tool
from services.calibration_service import is_blocked
from services.custody_service import find_anomalous_pairs
from services.timekeeping import today_ymd


EXPECTED_TABLES = ["Tools", "Employees", "Logs"]

EXPECTED_COLUMNS: dict[str, list[str]] = {
    "Tools": ["ToolID", "EquipmentName", "ToolNumber", "CalibrateDue", "Status", "DeletedAt"],
    "Employees": ["EmployeeID", "Name", "IDNumber", "DeletedAt"],
    "Logs": [
        "LogID",
        "Action",
        "EmployeeID",
        "EmployeeIDNumber",
        "ToolID",
        "ToolName",
        "ToolNumber",
        "Timestamp",
        "Condition",
        "VerifiedBy",
        "BorrowRemarks",
        "ReturnRemarks",
    ],
}


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str


def _print_section(title: str) -> None:
    print(f"\n=== {title} ===")


def _get_engine(db_url: str) -> Engine:
    return create_engine(db_url, pool_pre_ping=True, future=True)


def _scalar(engine: Engine, sql: str, params: dict | None = None):
    with engine.connect() as conn:
        return conn.execute(text(sql), params or {}).scalar()


def run_existence_checks(engine: Engine) -> list[CheckResult]:
    present = set(inspect(engine).get_table_names())
    return [
        CheckResult(f"table:{table}", table in present, "present" if table in present else "missing")
        for table in EXPECTED_TABLES
    ]


def run_column_checks(engine: Engine) -> list[CheckResult]:
    inspector = inspect(engine)
    present = set(inspector.get_table_names())
    results: list[CheckResult] = []
    for table, columns in EXPECTED_COLUMNS.items():
        if table not in present:
            results.append(CheckResult(f"columns:{table}", False, "table missing"))
            continue
        actual = {column["name"] for column in inspector.get_columns(table)}
        missing = [column for column in columns if column not in actual]
        results.append(
            CheckResult(f"columns:{table}", not missing, "ok" if not missing else f"missing {', '.join(missing)}")
        )
    return results


def run_integrity_checks(engine: Engine, today: str | None = None) -> list[CheckResult]:
    current_day = today or today_ymd()
    results: list[CheckResult] = []

    orphan_tools = _scalar(
        engine,
        "SELECT COUNT(*) FROM Logs l LEFT JOIN Tools t ON t.ToolID = l.ToolID WHERE t.ToolID IS NULL",
    )
    results.append(CheckResult("logs:tool_reference", not orphan_tools, f"{orphan_tools or 0} unresolved"))

    orphan_employees = _scalar(
        engine,
        "SELECT COUNT(*) FROM Logs l LEFT JOIN Employees e ON e.EmployeeID = l.EmployeeID WHERE e.EmployeeID IS NULL",
    )
    results.append(CheckResult("logs:employee_reference", not orphan_employees, f"{orphan_employees or 0} unresolved"))

    with Session(engine) as session:
        logs = [LogRecord.from_model(row) for row in session.execute(select(LogEntry)).scalars().all()]
        tools = [ToolRecord.from_model(row) for row in session.execute(select(Tool)).scalars().all()]

    anomalies = find_anomalous_pairs(logs)
    detail = "none" if not anomalies else ", ".join(f"employee={emp} tool={tool}" for emp, tool in anomalies)
    results.append(CheckResult("logs:returns_without_borrow", not anomalies, detail))

    overdue = [tool for tool in tools if tool.is_active and is_blocked(tool, current_day)]
    results.append(
        CheckResult(
            "tools:calibration_overdue",
            not overdue,
            "none" if not overdue else ", ".join(f"{tool.tool_number} ({tool.calibrate_due})" for tool in overdue),
        )
    )
    return results


def _print_results(title: str, results: list[CheckResult]) -> None:
    _print_section(title)
    for result in results:
        marker = "OK " if result.ok else "FAIL"
        print(f"[{marker}] {result.name}: {result.detail}")


def _print_row_counts(engine: Engine) -> None:
    _print_section("Row Counts")
    present = set(inspect(engine).get_table_names())
    for table in EXPECTED_TABLES:
        if table not in present:
            continue
        print(f"{table}: {_scalar(engine, f'SELECT COUNT(*) FROM {table}')}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Tool crib DB overview")
    parser.add_argument("--db-url", default=os.environ.get("TOOL_CRIB_DB_URL", ""))
    parser.add_argument("--today", default=None, help="YYYY-MM-DD used for the calibration check")
    args = parser.parse_args(argv)

    db_url = (args.db_url or "").strip()
    if not db_url:
        print("TOOL_CRIB_DB_URL is not set. Provide --db-url or export env first.")
        return 2

    try:
        engine = _get_engine(db_url)
        _scalar(engine, "SELECT 1")
    except Exception as exc:
        print(f"Could not connect to DB: {exc}")
        return 3

    existence = run_existence_checks(engine)
    _print_results("Table Existence", existence)
    _print_results("Column Checks", run_column_checks(engine))
    if all(result.ok for result in existence):
        _print_results("Integrity Checks", run_integrity_checks(engine, args.today))
    _print_row_counts(engine)
    return 0


if __name__ == "__main__":
    sys.exit(main())
