from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from domain.errors import DuplicateRecord, NotFound, ValidationFailure
from models.crib_models import Employee
from services.timekeeping import now_timestamp
from services.user_access_service import hash_password, new_salt


EMPLOYEES_LOGGER = logging.getLogger("tool_crib.employees")

MIN_PASSWORD_LENGTH = 4


def normalize_id_number(raw: str | None) -> str:
    return (raw or "").strip()


def find_live_employee_by_id_number(db: Session, id_number: str) -> Employee | None:
    normalized = normalize_id_number(id_number)
    if not normalized:
        return None
    return db.execute(
        select(Employee)
        .where(func.lower(Employee.IDNumber) == normalized.lower())
        .where(Employee.DeletedAt.is_(None))
    ).scalars().first()


def get_live_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if not employee or employee.DeletedAt:
        raise NotFound("Employee not found.")
    return employee


def list_live_employees(db: Session, query: str | None = None) -> list[Employee]:
    rows = db.execute(
        select(Employee).where(Employee.DeletedAt.is_(None)).order_by(Employee.Name, Employee.EmployeeID)
    ).scalars().all()
    needle = (query or "").strip().lower()
    if not needle:
        return rows
    return [row for row in rows if needle in f"{row.Name} {row.IDNumber}".lower()]


def create_employee(db: Session, name: str, id_number: str, password: str | None = None) -> Employee:
    name = (name or "").strip()
    id_number = normalize_id_number(id_number)
    if not name:
        raise ValidationFailure("Name is required.")
    if not id_number:
        raise ValidationFailure("ID number is required.")
    if find_live_employee_by_id_number(db, id_number):
        raise DuplicateRecord("Employee ID already exists.")

    employee = Employee(
        Name=name,
        IDNumber=id_number,
        CreatedDate=datetime.now(),
        UpdatedDate=datetime.now(),
    )
    if password is not None:
        set_password(employee, password)

    db.add(employee)
    db.commit()
    db.refresh(employee)
    EMPLOYEES_LOGGER.info("Employee added employee_id=%s id_number=%s", employee.EmployeeID, employee.IDNumber)
    return employee


def set_password(employee: Employee, password: str) -> None:
    trimmed = str(password or "").strip()
    if len(trimmed) < MIN_PASSWORD_LENGTH:
        raise ValidationFailure(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    salt = new_salt()
    employee.PasswordSalt = salt
    employee.PasswordHash = hash_password(trimmed, salt)


def soft_delete_employee(db: Session, employee_id: int) -> Employee:
    employee = get_live_employee(db, employee_id)
    employee.DeletedAt = now_timestamp()
    employee.UpdatedDate = datetime.now()
    db.commit()
    EMPLOYEES_LOGGER.info("Employee soft-deleted employee_id=%s at=%s", employee.EmployeeID, employee.DeletedAt)
    return employee


def serialize_employee(employee: Employee) -> dict:
    return {
        "employeeID": employee.EmployeeID,
        "name": employee.Name,
        "idNumber": employee.IDNumber,
        "hasPassword": bool(employee.PasswordHash),
        "createdDate": employee.CreatedDate,
        "deletedAt": employee.DeletedAt,
    }
