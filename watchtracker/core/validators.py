"""
Shared field validators.

Each helper raises ``ValueError`` with a user-facing message so it can be
called from pydantic ``field_validator`` hooks as well as from services.
"""
import math
import re
from datetime import date, datetime
from typing import Any, Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
PHONE_RE = re.compile(r"^\+?[1-9]\d{0,15}$")
PHONE_STRIP_RE = re.compile(r"[\s\-()]")


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and EMAIL_RE.match(value) is not None


def is_valid_phone(value: Optional[str]) -> bool:
    if not value:
        return False
    return PHONE_RE.match(PHONE_STRIP_RE.sub("", value)) is not None


def validate_email(value: Any, message: str = "Invalid email format") -> Optional[str]:
    """Empty values pass through as ``None``; anything else must look like an address."""
    if value is None or value == "":
        return None
    value = str(value).strip()
    if not is_valid_email(value):
        raise ValueError(message)
    return value


def validate_date(value: Any, message: str = "Date must be in YYYY-MM-DD format") -> Optional[date]:
    """Accept ``YYYY-MM-DD`` strings (or date objects); empty values become ``None``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = str(value).strip()
    if not DATE_RE.match(value):
        raise ValueError(message)
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(message)


def validate_positive_number(value: Any, field_name: str) -> Optional[float]:
    """Parse a non-negative number; empty values become ``None``."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field_name} must be a valid positive number")
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{field_name} must be a valid positive number")
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"{field_name} must be a valid positive number")
    return number


def blank_to_none(value: Any) -> Any:
    """Treat empty or whitespace-only strings as missing."""
    if isinstance(value, str) and not value.strip():
        return None
    return value
