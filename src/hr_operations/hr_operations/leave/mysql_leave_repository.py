from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, List, Optional, Sequence

from ..core.enums import RequestStatus, Role
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .model import LeaveBalance, LeaveRequest
from .repository import LeaveRepository

_REQUEST_COLUMNS = """
    request_id, employee_id, company_id, leave_type_id, start_date, end_date,
    total_days, reason, status, requestor_role, created_at,
    decided_by, decided_at, approved_at, decision_comment
"""


def _to_request(r: dict) -> LeaveRequest:
    return LeaveRequest(
        request_id=int(r["request_id"]),
        employee_id=int(r["employee_id"]),
        company_id=int(r["company_id"]),
        leave_type_id=int(r["leave_type_id"]),
        start_date=r["start_date"],
        end_date=r["end_date"],
        total_days=float(r["total_days"]),
        reason=r["reason"],
        status=RequestStatus(r["status"]),
        requestor_role=Role(r["requestor_role"]),
        created_at=r["created_at"],
        decided_by=r.get("decided_by"),
        decided_at=r.get("decided_at"),
        approved_at=r.get("approved_at"),
        decision_comment=r.get("decision_comment"),
    )


def _to_balance(r: dict) -> LeaveBalance:
    return LeaveBalance(
        employee_id=int(r["employee_id"]),
        leave_type_id=int(r["leave_type_id"]),
        allocated_days=float(r["allocated_days"]),
        used_days=float(r["used_days"]),
    )


class MySQLLeaveRepository(LeaveRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    # -------- Requests --------
    def create_request(
        self,
        *,
        employee_id: int,
        company_id: int,
        leave_type_id: int,
        start_date: date,
        end_date: date,
        total_days: float,
        reason: str,
        requestor_role: Role,
        status: RequestStatus = RequestStatus.PENDING,
        decided_by: Optional[int] = None,
        approved_at: Optional[datetime] = None,
    ) -> int:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO leave_requests(
                    employee_id, company_id, leave_type_id, start_date, end_date,
                    total_days, reason, status, requestor_role,
                    decided_by, decided_at, approved_at
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(employee_id),
                    int(company_id),
                    int(leave_type_id),
                    start_date,
                    end_date,
                    float(total_days),
                    reason,
                    status.value,
                    requestor_role.value,
                    decided_by,
                    approved_at,
                    approved_at,
                ),
            )
            return int(cur.lastrowid)

    def get_request(self, *, request_id: int) -> Optional[LeaveRequest]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_REQUEST_COLUMNS} FROM leave_requests WHERE request_id=%s", (int(request_id),))
            r = fetchone(cur)
            return _to_request(r) if r else None

    def list_pending(
        self,
        *,
        company_id: int,
        requestor_roles: Optional[Iterable[Role]] = None,
        limit: Optional[int] = 500,
    ) -> Sequence[LeaveRequest]:
        where = "company_id=%s AND status=%s"
        params: List[object] = [int(company_id), RequestStatus.PENDING.value]
        if requestor_roles is not None:
            roles = [Role(r).value for r in requestor_roles]
            if not roles:
                return []
            where += f" AND requestor_role IN ({', '.join(['%s'] * len(roles))})"
            params.extend(roles)
        sql = f"SELECT {_REQUEST_COLUMNS} FROM leave_requests WHERE {where} ORDER BY created_at ASC, request_id ASC"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(int(limit))
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(sql, tuple(params))
            return [_to_request(r) for r in fetchall(cur)]

    def decide_request(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        decided_by: Optional[int],
        comment: Optional[str] = None,
        decided_at: datetime,
    ) -> bool:
        approved_at = decided_at if status == RequestStatus.APPROVED else None
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE leave_requests
                SET status=%s, decided_by=%s, decided_at=%s, approved_at=%s, decision_comment=%s
                WHERE request_id=%s AND status=%s
                """,
                (
                    status.value,
                    decided_by,
                    decided_at,
                    approved_at,
                    comment,
                    int(request_id),
                    RequestStatus.PENDING.value,
                ),
            )
            return cur.rowcount > 0

    # -------- Balances --------
    def get_balance(self, *, employee_id: int, leave_type_id: int) -> Optional[LeaveBalance]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT employee_id, leave_type_id, allocated_days, used_days
                FROM leave_balances
                WHERE employee_id=%s AND leave_type_id=%s
                """,
                (int(employee_id), int(leave_type_id)),
            )
            r = fetchone(cur)
            return _to_balance(r) if r else None

    def upsert_balance(self, *, employee_id: int, leave_type_id: int, allocated_days: float) -> LeaveBalance:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO leave_balances(employee_id, leave_type_id, allocated_days, used_days)
                VALUES(%s,%s,%s,0)
                ON DUPLICATE KEY UPDATE allocated_days=VALUES(allocated_days)
                """,
                (int(employee_id), int(leave_type_id), float(allocated_days)),
            )
            cur.execute(
                """
                SELECT employee_id, leave_type_id, allocated_days, used_days
                FROM leave_balances
                WHERE employee_id=%s AND leave_type_id=%s
                """,
                (int(employee_id), int(leave_type_id)),
            )
            return _to_balance(fetchone(cur))

    def increment_used(self, *, employee_id: int, leave_type_id: int, days: float) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE leave_balances
                SET used_days = used_days + %s
                WHERE employee_id=%s AND leave_type_id=%s AND used_days + %s <= allocated_days
                """,
                (float(days), int(employee_id), int(leave_type_id), float(days)),
            )
            return cur.rowcount > 0

    def decrement_used(self, *, employee_id: int, leave_type_id: int, days: float) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE leave_balances
                SET used_days = GREATEST(used_days - %s, 0)
                WHERE employee_id=%s AND leave_type_id=%s
                """,
                (float(days), int(employee_id), int(leave_type_id)),
            )
            return cur.rowcount > 0
