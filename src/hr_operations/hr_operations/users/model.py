from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..core.enums import Role


@dataclass(frozen=True)
class Employee:
    """Domain entity: an employee of one tenant.

    Note: plain data object (no DB access code).
    """

    employee_id: int
    email: str
    name: str
    role: Role
    company_id: int
    department: Optional[str] = None
    position: Optional[str] = None
    hire_date: Optional[date] = None
    is_active: bool = True
    reporting_manager_id: Optional[int] = None
    role_id: Optional[int] = None
    team_id: Optional[int] = None


@dataclass(frozen=True)
class Actor:
    """Who is calling, passed explicitly into every operation."""

    employee_id: int
    role: Role
    company_id: int
