from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from db.base import Base


class Tool(Base):
    __tablename__ = "Tools"

    ToolID = Column(Integer, primary_key=True)
    No = Column(String(50))
    RegistrationIDNumber = Column(String(100))
    AreaProcess = Column(String(255))
    EquipmentName = Column(String(255), nullable=False)
    Manufacturer = Column(String(255))
    Model = Column(String(255))
    SerialNumber = Column(String(255))
    TypeOfCalibration = Column(String(255))
    CalibrationRange = Column(String(255))
    DateOfRegistration = Column(String(50))
    Resolution = Column(String(100))
    Accuracy = Column(String(100))
    Remarks = Column(String(1000))
    CalibrateDue = Column(String(10))
    ToolNumber = Column(String(100), nullable=False, unique=True)
    Status = Column(String(20), nullable=False, default="good")
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())
    DeletedAt = Column(String(19))

    Logs = relationship("LogEntry", back_populates="Tool")


class Employee(Base):
    __tablename__ = "Employees"

    EmployeeID = Column(Integer, primary_key=True)
    Name = Column(String(255), nullable=False)
    IDNumber = Column(String(100), nullable=False)
    PasswordHash = Column(String(256))
    PasswordSalt = Column(String(64))
    CreatedDate = Column(DateTime, server_default=func.now())
    UpdatedDate = Column(DateTime, server_default=func.now())
    DeletedAt = Column(String(19))

    Logs = relationship("LogEntry", back_populates="Employee")


class LogEntry(Base):
    __tablename__ = "Logs"

    LogID = Column(Integer, primary_key=True)
    Action = Column(String(10), nullable=False)
    EmployeeID = Column(Integer, ForeignKey("Employees.EmployeeID"), nullable=False)
    EmployeeIDNumber = Column(String(100), nullable=False)
    ToolID = Column(Integer, ForeignKey("Tools.ToolID"), nullable=False)
    ToolName = Column(String(255), nullable=False)
    ToolNumber = Column(String(100), nullable=False)
    Timestamp = Column(String(19), nullable=False, index=True)
    Condition = Column(String(20), nullable=False)
    VerifiedBy = Column(String(255))
    BorrowRemarks = Column(String(1000))
    ReturnRemarks = Column(String(1000))

    Employee = relationship("Employee", back_populates="Logs")
    Tool = relationship("Tool", back_populates="Logs")
