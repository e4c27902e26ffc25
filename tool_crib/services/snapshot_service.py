from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from domain.records import CribSnapshot, EmployeeRecord, LogRecord, ToolRecord
from models.crib_models import Employee, LogEntry, Tool


def load_snapshot(db: Session) -> CribSnapshot:
    tools = db.execute(select(Tool).order_by(Tool.ToolID)).scalars().all()
    employees = db.execute(select(Employee).order_by(Employee.EmployeeID)).scalars().all()
    logs = db.execute(select(LogEntry).order_by(LogEntry.LogID)).scalars().all()
    return CribSnapshot(
        tools=tuple(ToolRecord.from_model(row) for row in tools),
        employees=tuple(EmployeeRecord.from_model(row) for row in employees),
        logs=tuple(LogRecord.from_model(row) for row in logs),
    )
