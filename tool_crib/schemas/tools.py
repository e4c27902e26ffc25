from typing import Optional

from pydantic import BaseModel, ConfigDict


class ToolCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    equipmentName: str
    toolNumber: Optional[str] = None
    no: Optional[str] = None
    registrationIdNumber: Optional[str] = None
    areaProcess: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    serialNumber: Optional[str] = None
    typeOfCalibration: Optional[str] = None
    calibrationRange: Optional[str] = None
    dateOfRegistration: Optional[str] = None
    resolution: Optional[str] = None
    accuracy: Optional[str] = None
    remarks: Optional[str] = None
    calibrateDue: Optional[str] = None


class CalibrateDueUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    calibrateDue: Optional[str] = None
