from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from ..core.constants import EXCEL_EPOCH, EXCEL_SERIAL_MAX, EXCEL_SERIAL_MIN, ISO_YEAR_MAX, ISO_YEAR_MIN


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def inclusive_days(start: date, end: date) -> int:
    return (end - start).days + 1


def excel_serial_to_date(serial: int) -> date:
    """Spreadsheet serial day count to calendar date (1899-12-30 epoch).

    Raises ValueError outside EXCEL_SERIAL_MIN..EXCEL_SERIAL_MAX.
    """
    if not EXCEL_SERIAL_MIN <= serial <= EXCEL_SERIAL_MAX:
        raise ValueError(f"Excel serial {serial} outside {EXCEL_SERIAL_MIN}..{EXCEL_SERIAL_MAX}")
    return EXCEL_EPOCH + timedelta(days=int(serial))


def date_to_excel_serial(value: date) -> int:
    return (value - EXCEL_EPOCH).days


def _parse_iso_in_range(text: str) -> Optional[date]:
    try:
        d = parse_iso_date(text)
    except ValueError:
        return None
    if not ISO_YEAR_MIN <= d.year <= ISO_YEAR_MAX:
        return None
    return d


def normalize_date_value(value: str) -> Optional[str]:
    """Convert a spreadsheet cell to an ISO date string.

    Accepts ISO dates (optionally followed by a time part, as pandas renders
    datetime cells) and Excel serials (a fractional part is the time of day
    and is dropped). Returns None when the value cannot be converted.
    """
    text = (value or "").strip()
    if not text:
        return None

    head = text.replace("T", " ").split(" ", 1)[0]
    if "-" in head:
        d = _parse_iso_in_range(head)
        return d.isoformat() if d else None

    try:
        number = float(text)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    serial = int(number)
    try:
        return excel_serial_to_date(serial).isoformat()
    except ValueError:
        return None


def iso_to_excel_serial(value: str) -> int:
    """Inverse of excel_serial_to_date for a YYYY-MM-DD string."""
    return date_to_excel_serial(parse_iso_date(value))
