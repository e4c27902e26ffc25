from typing import Optional

from pydantic import BaseModel, ConfigDict


class EmployeeCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    idNumber: str
    password: Optional[str] = None


class SignupRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    idNumber: str
    password: str


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    idNumber: str | None = None
    password: str | None = None
