from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Union

from ..common.datetime_utils import now_local
from ..core.enums import AttendanceStatus
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..roles import hierarchy
from ..users.model import Actor, Employee
from ..users.repository import EmployeeRepository
from .model import AttendanceRecord
from .repository import AttendanceRepository

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BulkMarkResult:
    work_date: date
    status: AttendanceStatus
    records: List[AttendanceRecord]

    @property
    def marked(self) -> int:
        return len(self.records)


class AttendanceService:
    """Direct attendance marking by managers and admins.

    This is an administrative act, not a request: rows are written with
    pending_approval = False. Corrections submitted as backdates go through
    RequestLifecycleService instead.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        employees: EmployeeRepository,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._attendance = attendance
        self._employees = employees
        self._clock = clock

    def _resolve_scope(self, actor: Actor, employee_ids: Iterable[int]) -> List[Employee]:
        out: List[Employee] = []
        for employee_id in employee_ids:
            employee = self._employees.get_by_id(int(employee_id))
            if not employee:
                raise NotFoundError(f"Employee {employee_id} not found")
            if not hierarchy.can_mark_attendance(actor, employee):
                raise AuthorizationError(f"Employee {employee_id} is outside your scope")
            out.append(employee)
        return out

    def bulk_mark(
        self,
        actor: Actor,
        *,
        employee_ids: Iterable[int],
        work_date: date,
        status: Union[AttendanceStatus, str],
        today: Optional[date] = None,
    ) -> BulkMarkResult:
        if not hierarchy.can_bulk_mark(actor.role):
            raise AuthorizationError("Only managers and admins can mark attendance")

        now = self._clock()
        today = today or now.date()
        if work_date > today:
            raise ValidationError("Attendance cannot be marked for a future date")
        try:
            status = AttendanceStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {status}")

        ids = list(dict.fromkeys(int(i) for i in employee_ids))
        if not ids:
            raise ValidationError("Select at least one employee")

        # Whole batch is refused if any employee is out of scope.
        employees = self._resolve_scope(actor, ids)

        check_in = datetime.combine(work_date, now.time()) if status.implies_presence else None
        records: List[AttendanceRecord] = []
        for employee in employees:
            records.append(
                self._attendance.upsert(
                    employee_id=employee.employee_id,
                    company_id=employee.company_id,
                    work_date=work_date,
                    fields={
                        "status": status,
                        "check_in_time": check_in,
                        "check_out_time": None,
                        "pending_approval": False,
                        "requestor_role": actor.role,
                        "change_reason": None,
                    },
                )
            )

        log.info(
            "%s %s marked %d employee(s) %s on %s",
            actor.role.value,
            actor.employee_id,
            len(records),
            status.value,
            work_date,
        )
        return BulkMarkResult(work_date=work_date, status=status, records=records)
