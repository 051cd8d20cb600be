from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    code = "DomainError"


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "ValidationError"


class AuthorizationError(DomainError):
    """Raised when a role is not allowed to perform a transition."""

    code = "Forbidden"


class NotFoundError(DomainError):
    """Missing balance row, employee, request or attendance record."""

    code = "NotFound"


class AlreadyFinalError(DomainError):
    """Raised when a decided request is decided again."""

    code = "AlreadyFinal"


class InsufficientBalanceError(DomainError):
    code = "InsufficientBalance"

    def __init__(self, *, requested: float, remaining: float):
        self.requested = float(requested)
        self.remaining = float(remaining)
        self.shortfall = self.requested - self.remaining
        super().__init__(
            f"Insufficient leave balance: requested {self.requested:g} day(s), "
            f"{self.remaining:g} remaining (short by {self.shortfall:g})"
        )


class LedgerInvariantError(DomainError):
    """A balance row would break (or already breaks) 0 <= used <= allocated."""

    code = "LedgerInvariant"


class LedgerConsistencyError(DomainError):
    """Ledger and request status disagree and could not be compensated.

    Needs manual repair.
    """

    code = "LedgerConsistency"


class UploadError(DomainError):
    """Base for malformed bulk uploads. The whole file is refused."""

    code = "UploadError"


class EmptyFileError(UploadError):
    code = "EmptyFile"


class MissingHeadersError(UploadError):
    code = "MissingHeaders"


class NoKeyColumnError(UploadError):
    code = "NoKeyColumn"


class FileTooLargeError(UploadError):
    code = "FileTooLarge"


class StorageError(Exception):
    """Failure reported by a repository, carrying the driver's error code."""

    def __init__(self, code: Optional[str], message: str):
        self.code = str(code) if code is not None else None
        self.message = message
        super().__init__(f"[{self.code}] {message}" if self.code else message)
