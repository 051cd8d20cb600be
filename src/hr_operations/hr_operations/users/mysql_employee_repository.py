from __future__ import annotations

from enum import Enum
from typing import Mapping, Optional, Sequence

from ..core.enums import Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import Employee
from .repository import EmployeeRepository

_COLUMNS = """
    employee_id, email, name, role, company_id, department, position,
    hire_date, is_active, reporting_manager_id, role_id, team_id
"""

# Columns a bulk update may touch; anything else is a programming error.
UPDATABLE_COLUMNS = frozenset(
    {
        "name",
        "role",
        "department",
        "position",
        "hire_date",
        "is_active",
        "company_id",
        "reporting_manager_id",
        "role_id",
        "team_id",
    }
)

# Columns a bulk import may set besides email and company_id.
CREATABLE_COLUMNS = UPDATABLE_COLUMNS - {"company_id"}


def _db_value(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    return value


def _to_employee(row: dict) -> Employee:
    return Employee(
        employee_id=int(row["employee_id"]),
        email=row["email"],
        name=row["name"],
        role=Role(row["role"]),
        company_id=int(row["company_id"]),
        department=row.get("department"),
        position=row.get("position"),
        hire_date=row.get("hire_date"),
        is_active=bool(row.get("is_active", True)),
        reporting_manager_id=row.get("reporting_manager_id"),
        role_id=row.get("role_id"),
        team_id=row.get("team_id"),
    )


class MySQLEmployeeRepository(EmployeeRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees WHERE employee_id=%s", (int(employee_id),))
            row = fetchone(cur)
            return _to_employee(row) if row else None

    def find_by_email(self, email: str) -> Optional[Employee]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees WHERE LOWER(email)=LOWER(%s)", (email,))
            row = fetchone(cur)
            return _to_employee(row) if row else None

    def list_by_company(self, company_id: int, *, active_only: bool = True) -> Sequence[Employee]:
        clauses = ["company_id=%s"]
        if active_only:
            clauses.append("is_active=1")
        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM employees WHERE {where} ORDER BY name", (int(company_id),))
            return [_to_employee(r) for r in fetchall(cur)]

    def update_by_email(self, *, company_id: int, email: str, fields: Mapping[str, object]) -> int:
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        if not fields:
            return 0

        names = sorted(fields)
        assignments = ", ".join(f"{name}=%s" for name in names)
        params = [_db_value(fields[name]) for name in names]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                UPDATE employees
                SET {assignments}
                WHERE LOWER(email)=LOWER(%s) AND company_id=%s
                """,
                tuple(params + [email, int(company_id)]),
            )
            # MySQL reports changed rows; an identical row still counts as a match.
            if cur.rowcount > 0:
                return int(cur.rowcount)
            cur.execute(
                "SELECT COUNT(*) AS n FROM employees WHERE LOWER(email)=LOWER(%s) AND company_id=%s",
                (email, int(company_id)),
            )
            row = fetchone(cur)
            return int(row["n"]) if row else 0

    def create(self, *, company_id: int, email: str, fields: Mapping[str, object]) -> Employee:
        unknown = set(fields) - CREATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Not insertable: {sorted(unknown)}")

        names = sorted(fields)
        columns = ", ".join(["company_id", "email"] + names)
        placeholders = ", ".join(["%s"] * (len(names) + 2))
        params = [int(company_id), email] + [_db_value(fields[name]) for name in names]
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"INSERT INTO employees ({columns}) VALUES ({placeholders})", tuple(params))
            employee_id = int(cur.lastrowid)
            cur.execute(f"SELECT {_COLUMNS} FROM employees WHERE employee_id=%s", (employee_id,))
            return _to_employee(fetchone(cur))
