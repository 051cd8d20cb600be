from __future__ import annotations

from ..core.constants import TRUE_STRINGS
from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_positive_days(days: float) -> float:
    if days is None or float(days) <= 0:
        raise ValidationError("Days must be greater than zero")
    return float(days)


def parse_bool(value: str) -> bool:
    return (value or "").strip().lower() in TRUE_STRINGS


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()
