from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from domain.enums import Condition, LogAction, status_after_return
from domain.errors import CalibrationBlocked, NotFound, ValidationFailure
from domain.records import ToolRecord
from models.crib_models import LogEntry
from services.calibration_service import ensure_not_blocked
from services.employee_service import find_live_employee_by_id_number
from services.timekeeping import now_timestamp, today_ymd
from services.tool_service import find_live_tool_by_number, get_live_tool


LOGS_LOGGER = logging.getLogger("tool_crib.logs")

VALID_CONDITIONS = {condition.value for condition in Condition}


def _require_condition(raw: str | None, missing_message: str) -> str:
    condition = (raw or "").strip()
    if not condition:
        raise ValidationFailure(missing_message)
    if condition not in VALID_CONDITIONS:
        raise ValidationFailure(f"Unknown condition: {condition}.")
    return condition


def submit_borrow(
    db: Session,
    *,
    tool_number: str | None,
    employee_id_number: str | None,
    condition: str | None,
    remarks: str | None,
    verified_by: str,
) -> LogEntry:
    tool_barcode = (tool_number or "").strip()
    employee_barcode = (employee_id_number or "").strip()
    if not tool_barcode or not employee_barcode:
        raise ValidationFailure("Scan both Tool and Employee barcodes.")
    condition = _require_condition(condition, "Select tool condition before borrowing.")

    tool = find_live_tool_by_number(db, tool_barcode)
    if not tool:
        raise NotFound("Tool not found.")
    employee = find_live_employee_by_id_number(db, employee_barcode)
    if not employee:
        raise NotFound("Employee not found.")

    try:
        ensure_not_blocked(ToolRecord.from_model(tool), today_ymd())
    except CalibrationBlocked:
        LOGS_LOGGER.warning(
            "Borrow blocked tool_id=%s calibrate_due=%s employee=%s",
            tool.ToolID,
            tool.CalibrateDue,
            employee.IDNumber,
        )
        raise

    entry = LogEntry(
        Action=LogAction.BORROW.value,
        EmployeeID=employee.EmployeeID,
        EmployeeIDNumber=employee.IDNumber,
        ToolID=tool.ToolID,
        ToolName=tool.EquipmentName,
        ToolNumber=tool.ToolNumber,
        Timestamp=now_timestamp(),
        Condition=condition,
        VerifiedBy=verified_by,
        BorrowRemarks=(remarks or "").strip() or None,
        ReturnRemarks=None,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    LOGS_LOGGER.info(
        "Borrow logged log_id=%s tool_id=%s employee=%s verified_by=%s",
        entry.LogID,
        entry.ToolID,
        entry.EmployeeIDNumber,
        verified_by,
    )
    return entry


def submit_return(
    db: Session,
    *,
    employee_id_number: str | None,
    tool_id: int | None,
    condition: str | None,
    remarks: str | None,
    verified_by: str,
) -> LogEntry:
    """Append a return entry and set the tool status from the return condition.

    Both writes share one commit, so a failed status update never leaves a
    return entry behind.
    """
    employee_barcode = (employee_id_number or "").strip()
    if not employee_barcode:
        raise ValidationFailure("Scan employee barcode first.")
    if not tool_id:
        raise ValidationFailure("Select a tool to return.")
    condition = _require_condition(condition, "Select tool condition upon return.")

    employee = find_live_employee_by_id_number(db, employee_barcode)
    if not employee:
        raise NotFound("Employee not found.")
    tool = get_live_tool(db, tool_id)

    entry = LogEntry(
        Action=LogAction.RETURN.value,
        EmployeeID=employee.EmployeeID,
        EmployeeIDNumber=employee.IDNumber,
        ToolID=tool.ToolID,
        ToolName=tool.EquipmentName,
        ToolNumber=tool.ToolNumber,
        Timestamp=now_timestamp(),
        Condition=condition,
        VerifiedBy=verified_by,
        BorrowRemarks=None,
        ReturnRemarks=(remarks or "").strip() or None,
    )
    try:
        db.add(entry)
        tool.Status = status_after_return(condition)
        tool.UpdatedDate = datetime.now()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        LOGS_LOGGER.exception("Return rolled back tool_id=%s employee=%s", tool_id, employee_barcode)
        raise
    db.refresh(entry)
    LOGS_LOGGER.info(
        "Return logged log_id=%s tool_id=%s employee=%s status=%s",
        entry.LogID,
        entry.ToolID,
        entry.EmployeeIDNumber,
        tool.Status,
    )
    return entry


def list_logs(db: Session) -> list[LogEntry]:
    return db.execute(
        select(LogEntry).order_by(LogEntry.Timestamp.desc(), LogEntry.LogID.desc())
    ).scalars().all()


def serialize_log(entry: LogEntry) -> dict:
    return {
        "logID": entry.LogID,
        "action": entry.Action,
        "employeeID": entry.EmployeeID,
        "employeeIdNumber": entry.EmployeeIDNumber,
        "toolID": entry.ToolID,
        "toolName": entry.ToolName,
        "toolNumber": entry.ToolNumber,
        "timestamp": entry.Timestamp,
        "condition": entry.Condition,
        "verifiedBy": entry.VerifiedBy,
        "borrowRemarks": entry.BorrowRemarks,
        "returnRemarks": entry.ReturnRemarks,
    }
