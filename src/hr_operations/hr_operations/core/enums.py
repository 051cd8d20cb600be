from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles, lowest to highest. Ranking lives in roles.hierarchy."""

    EMPLOYEE = "employee"
    REPORTING_MANAGER = "reporting_manager"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    HALF_DAY = "half_day"
    HOLIDAY = "holiday"

    @property
    def implies_presence(self) -> bool:
        return self in {AttendanceStatus.PRESENT, AttendanceStatus.LATE, AttendanceStatus.HALF_DAY}


class RequestStatus(str, Enum):
    """Leave request workflow. PENDING is the only non-terminal state."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_final(self) -> bool:
        return self != RequestStatus.PENDING


class RowStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class ImportMode(str, Enum):
    """What a bulk employee upload does with each row."""

    UPDATE = "update"
    CREATE = "create"


class ErrorCategory(str, Enum):
    """Per-row failure categories reported by bulk reconciliation."""

    MISSING_EMAIL = "MissingEmail"
    NO_DATA_TO_UPDATE = "NoDataToUpdate"
    EMAIL_NOT_FOUND = "EmailNotFound"
    FOREIGN_KEY_VIOLATION = "ForeignKeyViolation"
    DUPLICATE_VALUE = "DuplicateValue"
    INVALID_DATE_FORMAT = "InvalidDateFormat"
    INVALID_ID_FORMAT = "InvalidIdFormat"
    DATABASE_ERROR = "DatabaseError"
    INVALID_ROLE = "InvalidRole"
    NOT_PERMITTED = "NotPermitted"

    # Biometric punch import
    MISSING_FIELDS = "MissingFields"
    INVALID_DATE = "InvalidDate"
    NO_MATCH = "NoMatch"
    MULTIPLE_MATCHES = "MultipleMatches"
