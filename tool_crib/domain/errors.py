from __future__ import annotations


class CribError(Exception):
    """Base class for rejections surfaced to the caller as a user-facing message."""


class NotFound(CribError):
    pass


class ValidationFailure(CribError):
    pass


class DuplicateRecord(CribError):
    pass


class CalibrationBlocked(CribError):
    def __init__(self, tool_name: str, calibrate_due: str):
        self.tool_name = tool_name
        self.calibrate_due = calibrate_due
        super().__init__(f"Blocked: {tool_name} is due for calibration ({calibrate_due}).")
