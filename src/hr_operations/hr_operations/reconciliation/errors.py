"""Map repository failures onto the row-level error categories."""

from __future__ import annotations

import re
from typing import Iterable, Optional, Tuple

from ..core.enums import ErrorCategory
from ..core.exceptions import StorageError

# MySQL errno and PostgreSQL SQLSTATE codes
_FOREIGN_KEY_CODES = frozenset({"1216", "1217", "1451", "1452", "23503"})
_DUPLICATE_CODES = frozenset({"1062", "1586", "23505"})
_DATE_CODES = frozenset({"22007", "22008"})
_ID_CODES = frozenset({"1366", "22P02"})

_FIELD_PATTERNS = (
    re.compile(r"FOREIGN KEY \(`(?P<field>\w+)`\)"),
    re.compile(r"Key \((?P<field>\w+)\)="),
    re.compile(r"for column '(?P<field>\w+)'"),
    re.compile(r"for key '(?:\w+\.)?(?P<field>\w+)'"),
)


def _category(code: Optional[str], message: str) -> ErrorCategory:
    text = message.lower()
    if code in _FOREIGN_KEY_CODES or "foreign key" in text:
        return ErrorCategory.FOREIGN_KEY_VIOLATION
    if code in _DUPLICATE_CODES or "duplicate" in text:
        return ErrorCategory.DUPLICATE_VALUE
    if code in _DATE_CODES or (code == "1292" and "date" in text):
        return ErrorCategory.INVALID_DATE_FORMAT
    if code in _ID_CODES or code == "1292" or "invalid input syntax" in text:
        return ErrorCategory.INVALID_ID_FORMAT
    return ErrorCategory.DATABASE_ERROR


def extract_field(message: str, candidates: Iterable[str] = ()) -> Optional[str]:
    """Best-effort column name from a driver message.

    Constraint names such as 'uq_employees_email' are resolved against the
    candidate column names when one of them appears inside it.
    """
    candidates = sorted(set(candidates), key=len, reverse=True)
    for pattern in _FIELD_PATTERNS:
        m = pattern.search(message)
        if not m:
            continue
        found = m.group("field")
        if not candidates or found in candidates:
            return found
        for c in candidates:
            if c in found:
                return c
        return found
    for c in candidates:
        if re.search(rf"\b{re.escape(c)}\b", message):
            return c
    return None


def classify_storage_error(
    error: StorageError,
    candidates: Iterable[str] = (),
) -> Tuple[ErrorCategory, Optional[str]]:
    message = error.message or str(error)
    return _category(error.code, message), extract_field(message, candidates)
