from __future__ import annotations

from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence

from ..core.enums import AttendanceStatus, Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import AttendanceRecord
from .repository import UPSERT_FIELDS, AttendanceRepository

_COLUMNS = """
    attendance_id, employee_id, company_id, work_date, status,
    check_in_time, check_out_time, pending_approval, requestor_role,
    change_reason, notes
"""


def _to_record(r: dict) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        employee_id=int(r["employee_id"]),
        company_id=int(r["company_id"]),
        work_date=r["work_date"],
        status=AttendanceStatus(r["status"]),
        check_in_time=r.get("check_in_time"),
        check_out_time=r.get("check_out_time"),
        pending_approval=bool(r.get("pending_approval")),
        requestor_role=Role(r["requestor_role"]) if r.get("requestor_role") else None,
        change_reason=r.get("change_reason"),
        notes=r.get("notes"),
    )


def _db_value(value: object) -> object:
    if isinstance(value, (AttendanceStatus, Role)):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance WHERE attendance_id=%s", (int(attendance_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def get_for_employee_and_date(self, employee_id: int, work_date: date) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance WHERE employee_id=%s AND work_date=%s",
                (int(employee_id), work_date),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def upsert(
        self,
        *,
        employee_id: int,
        company_id: int,
        work_date: date,
        fields: Mapping[str, object],
    ) -> AttendanceRecord:
        unknown = set(fields) - UPSERT_FIELDS
        if unknown:
            raise ValueError(f"Unknown attendance fields: {sorted(unknown)}")
        if "status" not in fields:
            raise ValueError("status is required for attendance upsert")

        names = sorted(fields)
        columns = ", ".join(["employee_id", "company_id", "work_date"] + names)
        placeholders = ",".join(["%s"] * (3 + len(names)))
        updates = ", ".join(f"{n}=VALUES({n})" for n in names + ["company_id"])
        params = [int(employee_id), int(company_id), work_date] + [_db_value(fields[n]) for n in names]

        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                INSERT INTO attendance({columns})
                VALUES({placeholders})
                ON DUPLICATE KEY UPDATE {updates}
                """,
                tuple(params),
            )
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance WHERE employee_id=%s AND work_date=%s",
                (int(employee_id), work_date),
            )
            return _to_record(fetchone(cur))

    def list_pending(
        self,
        *,
        company_id: int,
        requestor_roles: Optional[Iterable[Role]] = None,
        limit: Optional[int] = 500,
    ) -> Sequence[AttendanceRecord]:
        where = "company_id=%s AND pending_approval=1"
        params: List[object] = [int(company_id)]
        if requestor_roles is not None:
            roles = [Role(r).value for r in requestor_roles]
            if not roles:
                return []
            where += f" AND COALESCE(requestor_role, %s) IN ({', '.join(['%s'] * len(roles))})"
            params.append(Role.EMPLOYEE.value)
            params.extend(roles)
        sql = f"SELECT {_COLUMNS} FROM attendance WHERE {where} ORDER BY work_date ASC, attendance_id ASC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_to_record(r) for r in fetchall(cur)]

    def approve_pending(self, *, attendance_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "UPDATE attendance SET pending_approval=0 WHERE attendance_id=%s AND pending_approval=1",
                (int(attendance_id),),
            )
            return cur.rowcount > 0

    def delete_pending(self, *, attendance_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "DELETE FROM attendance WHERE attendance_id=%s AND pending_approval=1",
                (int(attendance_id),),
            )
            return cur.rowcount > 0
