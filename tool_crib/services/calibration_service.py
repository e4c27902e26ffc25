from __future__ import annotations

from typing import Any, Iterable

from domain.enums import ToolStatus
from domain.errors import CalibrationBlocked


def is_blocked(tool: Any, today: str) -> bool:
    due = getattr(tool, "calibrate_due", None)
    if not due:
        return False
    return due <= today


def ensure_not_blocked(tool: Any, today: str) -> None:
    if is_blocked(tool, today):
        raise CalibrationBlocked(tool.equipment_name, tool.calibrate_due)


def due_soon(tools: Iterable[Any], today: str, limit: int | None = None) -> list:
    """Tools due today or later, soonest first. Overdue tools are left out."""
    upcoming = [tool for tool in tools if tool.calibrate_due and tool.calibrate_due >= today]
    upcoming.sort(key=lambda tool: tool.calibrate_due)
    if limit is None:
        return upcoming
    return upcoming[: max(limit, 0)]


def calibration_stats(tools: Iterable[Any], today: str) -> dict:
    tools = list(tools)
    return {
        "totalTools": len(tools),
        "damagedTools": sum(1 for tool in tools if tool.status == ToolStatus.DAMAGE.value),
        "calibrationDueTools": len(due_soon(tools, today)),
        "blockedTools": sum(1 for tool in tools if is_blocked(tool, today)),
    }
