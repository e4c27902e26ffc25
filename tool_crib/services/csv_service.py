from __future__ import annotations

import csv
import io
import logging
from typing import Sequence

from sqlalchemy.orm import Session

from domain.enums import condition_label
from domain.errors import CribError, ValidationFailure
from domain.records import PairedTransaction
from services.tool_service import build_tool


TOOLS_LOGGER = logging.getLogger("tool_crib.tools")

# CSV header -> tool registration field
IMPORT_HEADERS = {
    "No.": "no",
    "Registration ID Number": "registrationIdNumber",
    "Area/Process": "areaProcess",
    "Equipment Name": "equipmentName",
    "Manufacturer": "manufacturer",
    "Model": "model",
    "Serial Number": "serialNumber",
    "Type of Calibration": "typeOfCalibration",
    "Calibration Range": "calibrationRange",
    "Date of Registration": "dateOfRegistration",
    "Resolution": "resolution",
    "Accuracy": "accuracy",
    "Remarks": "remarks",
    "Calibrate Due": "calibrateDue",
}

EXPORT_COLUMNS = [
    "employee_id",
    "tool",
    "tool_number",
    "borrow_time",
    "borrow_status",
    "borrow_remarks",
    "return_time",
    "return_status",
    "return_remarks",
    "verified_by",
]


def _normalize_header(raw: str) -> str:
    return (raw or "").strip().lower()


def import_tools_csv(db: Session, content: bytes) -> dict:
    """Register one tool per CSV row. Bad rows are reported, not fatal."""
    try:
        text_content = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ValidationFailure("CSV file must be UTF-8 encoded.") from exc

    reader = csv.reader(io.StringIO(text_content))
    headers = next(reader, None)
    if not headers:
        raise ValidationFailure("CSV file is empty")

    positions = {_normalize_header(header): index for index, header in enumerate(headers)}
    missing = [expected for expected in IMPORT_HEADERS if _normalize_header(expected) not in positions]
    if missing:
        raise ValidationFailure(
            "CSV missing or has incorrect headers. Expected: " + ", ".join(IMPORT_HEADERS)
        )

    imported = 0
    errors: list[str] = []
    for row_number, row in enumerate(reader, start=1):
        if not any((cell or "").strip() for cell in row):
            continue
        values = {}
        for header, field in IMPORT_HEADERS.items():
            index = positions[_normalize_header(header)]
            values[field] = row[index].strip() if index < len(row) else ""
        if not values["equipmentName"]:
            errors.append(f"Row {row_number}: Equipment Name is required")
            continue
        try:
            tool = build_tool(db, values, row_number=row_number)
            db.add(tool)
            db.flush()
        except CribError as exc:
            errors.append(f"Row {row_number}: {exc}")
            continue
        imported += 1

    db.commit()
    TOOLS_LOGGER.info("CSV import finished imported=%s errors=%s", imported, len(errors))
    return {"imported": imported, "errors": errors}


def export_pairs_csv(pairs: Sequence[PairedTransaction]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS, lineterminator="\n")
    writer.writeheader()
    for pair in pairs:
        writer.writerow(
            {
                "employee_id": pair.employee_id_number,
                "tool": pair.tool_name,
                "tool_number": pair.tool_number,
                "borrow_time": pair.borrow_time,
                "borrow_status": condition_label(pair.borrow_condition),
                "borrow_remarks": pair.borrow_remarks or "",
                "return_time": pair.return_time or "",
                "return_status": condition_label(pair.return_condition) if pair.return_condition else "",
                "return_remarks": pair.return_remarks or "",
                "verified_by": pair.verified_by,
            }
        )
    return buffer.getvalue()
