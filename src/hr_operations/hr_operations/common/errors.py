from __future__ import annotations

import logging

from flask import Flask
from werkzeug.exceptions import HTTPException

from ..core.exceptions import (
    AlreadyFinalError,
    AuthorizationError,
    DomainError,
    InsufficientBalanceError,
    LedgerConsistencyError,
    LedgerInvariantError,
    NotFoundError,
    StorageError,
    UploadError,
    ValidationError,
)
from .http import fail

log = logging.getLogger(__name__)

# Most specific first.
STATUS_BY_ERROR = (
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (AlreadyFinalError, 409),
    (InsufficientBalanceError, 409),
    (UploadError, 400),
    (ValidationError, 400),
    (LedgerConsistencyError, 500),
    (LedgerInvariantError, 500),
)


def status_for(error: DomainError) -> int:
    for cls, status in STATUS_BY_ERROR:
        if isinstance(error, cls):
            return status
    return 400


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain(e: DomainError):
        status = status_for(e)
        if status >= 500:
            log.error("%s: %s", e.code, e)
        extra = {}
        if isinstance(e, InsufficientBalanceError):
            extra = {"requested": e.requested, "remaining": e.remaining, "shortfall": e.shortfall}
        return fail(str(e), status=status, code=e.code, **extra)

    @app.errorhandler(StorageError)
    def _storage(e: StorageError):
        log.error("Storage error: %s", e)
        return fail("Storage error", status=500, code="StorageError", detail=e.message)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500, code=e.name)
