from __future__ import annotations

import logging
import time
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from domain.enums import ToolStatus
from domain.errors import DuplicateRecord, NotFound, ValidationFailure
from domain.records import ToolRecord
from models.crib_models import Tool
from services.timekeeping import normalize_ymd, now_timestamp


TOOLS_LOGGER = logging.getLogger("tool_crib.tools")

TOOL_LIST_MODES = {"all", "damage", "calibrate"}

_TOOL_FIELD_MAP = {
    "no": "No",
    "registrationIdNumber": "RegistrationIDNumber",
    "areaProcess": "AreaProcess",
    "equipmentName": "EquipmentName",
    "manufacturer": "Manufacturer",
    "model": "Model",
    "serialNumber": "SerialNumber",
    "typeOfCalibration": "TypeOfCalibration",
    "calibrationRange": "CalibrationRange",
    "dateOfRegistration": "DateOfRegistration",
    "resolution": "Resolution",
    "accuracy": "Accuracy",
    "remarks": "Remarks",
    "calibrateDue": "CalibrateDue",
    "toolNumber": "ToolNumber",
}


def _tool_number_taken(db: Session, tool_number: str) -> bool:
    existing = db.execute(
        select(Tool.ToolID).where(func.lower(Tool.ToolNumber) == tool_number.lower())
    ).first()
    return existing is not None


def generate_tool_number(db: Session, row_number: int | None = None) -> str:
    base = f"T-{int(time.time())}"
    if row_number is not None:
        base = f"{base}-{row_number}"
    candidate = base
    attempt = 1
    while _tool_number_taken(db, candidate):
        attempt += 1
        candidate = f"{base}-{attempt}"
    return candidate


def get_live_tool(db: Session, tool_id: int) -> Tool:
    tool = db.get(Tool, tool_id)
    if not tool or tool.DeletedAt:
        raise NotFound("Tool not found.")
    return tool


def find_live_tool_by_number(db: Session, tool_number: str) -> Tool | None:
    return db.execute(
        select(Tool)
        .where(func.lower(Tool.ToolNumber) == tool_number.strip().lower())
        .where(Tool.DeletedAt.is_(None))
    ).scalars().first()


def list_live_tools(db: Session) -> list[Tool]:
    return db.execute(
        select(Tool).where(Tool.DeletedAt.is_(None)).order_by(Tool.EquipmentName, Tool.ToolID)
    ).scalars().all()


def build_tool(db: Session, values: dict, row_number: int | None = None) -> Tool:
    """Validate registration values and return an unsaved Tool."""
    equipment_name = str(values.get("equipmentName") or "").strip()
    if not equipment_name:
        raise ValidationFailure("Equipment Name is required.")

    tool = Tool()
    for field, value in values.items():
        column = _TOOL_FIELD_MAP.get(field)
        if not column:
            continue
        if isinstance(value, str):
            value = value.strip() or None
        setattr(tool, column, value)

    tool.EquipmentName = equipment_name
    tool.CalibrateDue = normalize_ymd(values.get("calibrateDue"), "Calibrate Due")

    if tool.ToolNumber:
        if _tool_number_taken(db, tool.ToolNumber):
            raise DuplicateRecord(f"Tool number {tool.ToolNumber} already exists.")
    else:
        tool.ToolNumber = generate_tool_number(db, row_number)

    tool.Status = ToolStatus.GOOD.value
    tool.CreatedDate = datetime.now()
    tool.UpdatedDate = datetime.now()
    return tool


def create_tool(db: Session, values: dict) -> Tool:
    tool = build_tool(db, values)
    db.add(tool)
    db.commit()
    db.refresh(tool)
    TOOLS_LOGGER.info("Tool registered tool_id=%s tool_number=%s", tool.ToolID, tool.ToolNumber)
    return tool


def update_calibrate_due(db: Session, tool_id: int, raw_due: str | None) -> Tool:
    tool = get_live_tool(db, tool_id)
    tool.CalibrateDue = normalize_ymd(raw_due, "calibrateDue")
    tool.UpdatedDate = datetime.now()
    db.commit()
    return tool


def toggle_damage(db: Session, tool_id: int) -> Tool:
    tool = get_live_tool(db, tool_id)
    if tool.Status == ToolStatus.DAMAGE.value:
        tool.Status = ToolStatus.GOOD.value
    else:
        tool.Status = ToolStatus.DAMAGE.value
    tool.UpdatedDate = datetime.now()
    db.commit()
    return tool


def soft_delete_tool(db: Session, tool_id: int) -> Tool:
    tool = get_live_tool(db, tool_id)
    tool.DeletedAt = now_timestamp()
    tool.UpdatedDate = datetime.now()
    db.commit()
    TOOLS_LOGGER.info("Tool soft-deleted tool_id=%s at=%s", tool.ToolID, tool.DeletedAt)
    return tool


def filter_tools(tools: list[Tool], mode: str, query: str | None, today: str) -> list[Tool]:
    if mode not in TOOL_LIST_MODES:
        raise ValidationFailure("mode must be one of all, damage, calibrate.")

    rows = list(tools)
    if mode == "damage":
        rows = [tool for tool in rows if tool.Status == ToolStatus.DAMAGE.value]
    elif mode == "calibrate":
        rows = [tool for tool in rows if tool.CalibrateDue and tool.CalibrateDue >= today]
        rows.sort(key=lambda tool: tool.CalibrateDue)

    needle = (query or "").strip().lower()
    if needle:
        rows = [
            tool
            for tool in rows
            if needle in " ".join(
                value for value in (tool.EquipmentName, tool.Model, tool.ToolNumber, tool.CalibrateDue) if value
            ).lower()
        ]
    return rows


def serialize_tool(tool: Tool) -> dict:
    return {
        "toolID": tool.ToolID,
        "no": tool.No,
        "registrationIdNumber": tool.RegistrationIDNumber,
        "areaProcess": tool.AreaProcess,
        "equipmentName": tool.EquipmentName,
        "manufacturer": tool.Manufacturer,
        "model": tool.Model,
        "serialNumber": tool.SerialNumber,
        "typeOfCalibration": tool.TypeOfCalibration,
        "calibrationRange": tool.CalibrationRange,
        "dateOfRegistration": tool.DateOfRegistration,
        "resolution": tool.Resolution,
        "accuracy": tool.Accuracy,
        "remarks": tool.Remarks,
        "calibrateDue": tool.CalibrateDue,
        "toolNumber": tool.ToolNumber,
        "status": tool.Status,
        "createdDate": tool.CreatedDate,
        "updatedDate": tool.UpdatedDate,
        "deletedAt": tool.DeletedAt,
    }


def serialize_tool_record(tool: ToolRecord) -> dict:
    return {
        "toolID": tool.id,
        "equipmentName": tool.equipment_name,
        "toolNumber": tool.tool_number,
        "model": tool.model,
        "calibrateDue": tool.calibrate_due,
        "status": tool.status,
    }
