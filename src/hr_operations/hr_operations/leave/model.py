from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..core.enums import RequestStatus, Role


@dataclass(frozen=True)
class LeaveRequest:
    request_id: int
    employee_id: int
    company_id: int
    leave_type_id: int
    start_date: date
    end_date: date
    total_days: float
    reason: str
    status: RequestStatus
    requestor_role: Role
    created_at: datetime
    decided_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    decision_comment: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "employee_id": self.employee_id,
            "leave_type_id": self.leave_type_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "reason": self.reason,
            "status": self.status.value,
            "requestor_role": self.requestor_role.value,
            "decided_by": self.decided_by,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "approved_at": self.approved_at.isoformat() if self.approved_at else None,
            "decision_comment": self.decision_comment,
        }


@dataclass(frozen=True)
class LeaveBalance:
    employee_id: int
    leave_type_id: int
    allocated_days: float
    used_days: float

    @property
    def remaining_days(self) -> float:
        return self.allocated_days - self.used_days

    @property
    def is_consistent(self) -> bool:
        return 0 <= self.used_days <= self.allocated_days

    def as_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "leave_type_id": self.leave_type_id,
            "allocated": self.allocated_days,
            "used": self.used_days,
            "remaining": self.remaining_days,
        }
