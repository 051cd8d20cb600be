from __future__ import annotations

from datetime import date, datetime
from functools import wraps
from typing import Any, Dict, Optional

from flask import jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import AuthorizationError, ValidationError
from ..users.model import Actor


def ok(data: Any = None, *, status: int = 200, **extra):
    body: Dict[str, Any] = {"ok": True, "data": data}
    body.update(extra)
    return jsonify(body), status


def fail(message: str, *, status: int = 400, code: Optional[str] = None, **detail):
    error: Dict[str, Any] = {"code": code or "Error", "message": message}
    error.update(detail)
    return jsonify({"ok": False, "error": error}), status


def current_actor() -> Actor:
    """Actor from the session set up by the (external) login flow."""
    try:
        return Actor(
            employee_id=int(session["user_id"]),
            role=Role(session["role"]),
            company_id=int(session["company_id"]),
        )
    except (KeyError, TypeError, ValueError):
        raise AuthorizationError("Not signed in")


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        return view(current_actor(), *args, **kwargs)

    return wrapper


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_date(data: Dict[str, Any], key: str) -> date:
    raw = data.get(key)
    if not raw:
        raise ValidationError(f"{key} is required")
    try:
        return datetime.strptime(str(raw), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"{key} must be YYYY-MM-DD")


def optional_datetime(data: Dict[str, Any], key: str) -> Optional[datetime]:
    raw = data.get(key)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(str(raw))
    except ValueError:
        raise ValidationError(f"{key} must be an ISO date-time")


def require_int(data: Dict[str, Any], key: str) -> int:
    try:
        return int(data[key])
    except (KeyError, TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")


def optional_int(data: Dict[str, Any], key: str, default: int) -> int:
    if data.get(key) in (None, ""):
        return default
    return require_int(data, key)
