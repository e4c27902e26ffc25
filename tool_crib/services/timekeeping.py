from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from domain.errors import ValidationFailure


YMD_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def today_ymd() -> str:
    return date.today().strftime(YMD_FORMAT)


def now_timestamp() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


def normalize_ymd(raw: Any, field_name: str = "date") -> Optional[str]:
    """Return a zero-padded YYYY-MM-DD string, or None for an empty value."""
    if raw is None:
        return None
    if isinstance(raw, date):
        return raw.strftime(YMD_FORMAT)
    value = str(raw).strip()
    if not value:
        return None
    try:
        parsed = datetime.strptime(value, YMD_FORMAT).date()
    except ValueError as exc:
        raise ValidationFailure(f"{field_name} must be a YYYY-MM-DD date.") from exc
    # strptime also accepts unpadded months and days.
    if parsed.strftime(YMD_FORMAT) != value:
        raise ValidationFailure(f"{field_name} must be a YYYY-MM-DD date.")
    return value
