"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import date

MAX_UPLOAD_BYTES = 5 * 1024 * 1024

# Spreadsheet day zero; serial 1 is 1899-12-31.
EXCEL_EPOCH = date(1899, 12, 30)
EXCEL_SERIAL_MIN = 1
EXCEL_SERIAL_MAX = 60000
ISO_YEAR_MIN = 1900
ISO_YEAR_MAX = 2100

TRUE_STRINGS = frozenset({"true", "1", "yes"})

DEFAULT_DISPLAY_LIMIT = 100
DEFAULT_PENDING_LIMIT = 500

ERROR_REPORT_COLUMNS = ("Row Number", "Email", "Error", "Details")
