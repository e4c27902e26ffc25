from __future__ import annotations

from enum import Enum


class LogAction(str, Enum):
    BORROW = "borrow"
    RETURN = "return"


class Condition(str, Enum):
    GOOD = "good"
    FOR_CALIBRATION = "for_calibration"
    CALIBRATION_DONE = "calibration_done"
    DAMAGED = "damaged"


class ToolStatus(str, Enum):
    GOOD = "good"
    DAMAGE = "damage"


CONDITION_LABELS = {
    Condition.GOOD.value: "Good",
    Condition.FOR_CALIBRATION.value: "For Calibration",
    Condition.CALIBRATION_DONE.value: "Calibration Done",
    Condition.DAMAGED.value: "Damaged",
}


def condition_label(condition: str | None) -> str:
    if not condition:
        return "-"
    return CONDITION_LABELS.get(condition, condition)


def status_after_return(condition: str) -> str:
    if condition == Condition.DAMAGED.value:
        return ToolStatus.DAMAGE.value
    return ToolStatus.GOOD.value
