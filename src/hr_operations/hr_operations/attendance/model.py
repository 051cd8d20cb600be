from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import AttendanceStatus, Role


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one attendance row per employee per day."""

    attendance_id: int
    employee_id: int
    company_id: int
    work_date: date
    status: AttendanceStatus
    check_in_time: Optional[datetime] = None
    check_out_time: Optional[datetime] = None
    pending_approval: bool = False
    requestor_role: Optional[Role] = None
    change_reason: Optional[str] = None
    notes: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "attendance_id": self.attendance_id,
            "employee_id": self.employee_id,
            "company_id": self.company_id,
            "date": self.work_date.isoformat(),
            "status": self.status.value,
            "check_in_time": self.check_in_time.isoformat() if self.check_in_time else None,
            "check_out_time": self.check_out_time.isoformat() if self.check_out_time else None,
            "pending_approval": self.pending_approval,
            "requestor_role": self.requestor_role.value if self.requestor_role else None,
            "change_reason": self.change_reason,
        }
