from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.service import AttendanceService
from .core.constants import DEFAULT_DISPLAY_LIMIT, MAX_UPLOAD_BYTES
from .database.connection import DBConfig, DatabaseConnection
from .leave.ledger import BalanceLedger
from .leave.mysql_leave_repository import MySQLLeaveRepository
from .reconciliation.attendance_import import BiometricAttendanceImporter
from .reconciliation.engine import ReconciliationEngine
from .requests.service import RequestLifecycleService
from .users.mysql_employee_repository import MySQLEmployeeRepository


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    employees_repo: MySQLEmployeeRepository
    attendance_repo: MySQLAttendanceRepository
    leaves_repo: MySQLLeaveRepository

    ledger: BalanceLedger
    lifecycle_service: RequestLifecycleService
    attendance_service: AttendanceService
    reconciliation_engine: ReconciliationEngine
    attendance_importer: BiometricAttendanceImporter


def build_container(
    *,
    db_config: Mapping[str, object],
    max_upload_bytes: int = MAX_UPLOAD_BYTES,
    allow_balance_override: bool = False,
    display_limit: int = DEFAULT_DISPLAY_LIMIT,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_mapping(db_config))

    employees_repo = MySQLEmployeeRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    leaves_repo = MySQLLeaveRepository(conn)

    ledger = BalanceLedger(leaves_repo)
    lifecycle_service = RequestLifecycleService(
        leaves_repo,
        attendance_repo,
        employees_repo,
        ledger=ledger,
        allow_balance_override=allow_balance_override,
    )
    attendance_service = AttendanceService(attendance_repo, employees_repo)
    reconciliation_engine = ReconciliationEngine(
        employees_repo,
        max_upload_bytes=max_upload_bytes,
        display_limit=display_limit,
    )
    attendance_importer = BiometricAttendanceImporter(
        employees_repo,
        attendance_repo,
        max_upload_bytes=max_upload_bytes,
    )

    return Container(
        conn=conn,
        employees_repo=employees_repo,
        attendance_repo=attendance_repo,
        leaves_repo=leaves_repo,
        ledger=ledger,
        lifecycle_service=lifecycle_service,
        attendance_service=attendance_service,
        reconciliation_engine=reconciliation_engine,
        attendance_importer=attendance_importer,
    )
