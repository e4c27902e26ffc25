from typing import Optional

from pydantic import BaseModel, ConfigDict


class BorrowRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    toolNumber: Optional[str] = None
    employeeIdNumber: Optional[str] = None
    condition: Optional[str] = None
    remarks: Optional[str] = None


class ReturnRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    employeeIdNumber: Optional[str] = None
    toolID: Optional[int] = None
    condition: Optional[str] = None
    remarks: Optional[str] = None
