"""Immutable snapshot records the custody and calibration logic works on.

Rows are copied out of the ORM session once per request, so every derived view
is a pure function of one explicit snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from domain.enums import LogAction, ToolStatus


@dataclass(frozen=True, slots=True)
class Active:
    is_active = True


@dataclass(frozen=True, slots=True)
class Deleted:
    at: str

    is_active = False


Lifecycle = Union[Active, Deleted]


def lifecycle_from(deleted_at: Any) -> Lifecycle:
    if deleted_at in (None, ""):
        return Active()
    return Deleted(at=str(deleted_at))


@dataclass(frozen=True, slots=True)
class ToolRecord:
    id: int
    equipment_name: str
    tool_number: str
    calibrate_due: Optional[str] = None
    status: str = ToolStatus.GOOD.value
    model: Optional[str] = None
    lifecycle: Lifecycle = field(default_factory=Active)

    @property
    def is_active(self) -> bool:
        return self.lifecycle.is_active

    @classmethod
    def from_model(cls, row: Any) -> "ToolRecord":
        return cls(
            id=int(row.ToolID),
            equipment_name=row.EquipmentName or "",
            tool_number=row.ToolNumber or "",
            calibrate_due=row.CalibrateDue or None,
            status=row.Status or ToolStatus.GOOD.value,
            model=row.Model,
            lifecycle=lifecycle_from(row.DeletedAt),
        )


@dataclass(frozen=True, slots=True)
class EmployeeRecord:
    id: int
    name: str
    id_number: str
    lifecycle: Lifecycle = field(default_factory=Active)

    @property
    def is_active(self) -> bool:
        return self.lifecycle.is_active

    @classmethod
    def from_model(cls, row: Any) -> "EmployeeRecord":
        return cls(
            id=int(row.EmployeeID),
            name=row.Name or "",
            id_number=row.IDNumber or "",
            lifecycle=lifecycle_from(row.DeletedAt),
        )


@dataclass(frozen=True, slots=True)
class LogRecord:
    id: int
    action: str
    employee_id: int
    employee_id_number: str
    tool_id: int
    tool_name: str
    tool_number: str
    timestamp: str
    condition: str
    verified_by: str = ""
    borrow_remarks: Optional[str] = None
    return_remarks: Optional[str] = None

    @property
    def is_borrow(self) -> bool:
        return self.action == LogAction.BORROW.value

    @property
    def is_return(self) -> bool:
        return self.action == LogAction.RETURN.value

    @classmethod
    def from_model(cls, row: Any) -> "LogRecord":
        return cls(
            id=int(row.LogID),
            action=row.Action,
            employee_id=int(row.EmployeeID),
            employee_id_number=row.EmployeeIDNumber or "",
            tool_id=int(row.ToolID),
            tool_name=row.ToolName or "",
            tool_number=row.ToolNumber or "",
            timestamp=row.Timestamp,
            condition=row.Condition,
            verified_by=row.VerifiedBy or "",
            borrow_remarks=row.BorrowRemarks,
            return_remarks=row.ReturnRemarks,
        )


@dataclass(frozen=True, slots=True)
class CribSnapshot:
    tools: tuple[ToolRecord, ...] = ()
    employees: tuple[EmployeeRecord, ...] = ()
    logs: tuple[LogRecord, ...] = ()

    def live_tools(self) -> list[ToolRecord]:
        return [tool for tool in self.tools if tool.is_active]

    def live_employees(self) -> list[EmployeeRecord]:
        return [employee for employee in self.employees if employee.is_active]


@dataclass(frozen=True, slots=True)
class PairedTransaction:
    borrow_id: int
    return_id: Optional[int]
    employee_id: int
    employee_id_number: str
    tool_id: int
    tool_name: str
    tool_number: str
    borrow_time: str
    borrow_condition: str
    borrow_remarks: str
    return_time: Optional[str]
    return_condition: Optional[str]
    return_remarks: str
    verified_by: str

    @property
    def is_open(self) -> bool:
        return self.return_id is None


@dataclass(frozen=True, slots=True)
class CustodyEntry:
    tool: ToolRecord
    borrow_log: LogRecord
