from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional, Protocol, Sequence

from ..core.enums import RequestStatus, Role
from .model import LeaveBalance, LeaveRequest


class LeaveRepository(Protocol):
    # Requests
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
        raise NotImplementedError

    def get_request(self, *, request_id: int) -> Optional[LeaveRequest]:
        raise NotImplementedError

    def list_pending(
        self,
        *,
        company_id: int,
        requestor_roles: Optional[Iterable[Role]] = None,
        limit: Optional[int] = 500,
    ) -> Sequence[LeaveRequest]:
        """Oldest first. requestor_roles filters before the limit; limit=None returns all."""

        raise NotImplementedError

    def decide_request(
        self,
        *,
        request_id: int,
        status: RequestStatus,
        decided_by: Optional[int],
        comment: Optional[str] = None,
        decided_at: datetime,
    ) -> bool:
        """Compare-and-swap from PENDING. False when someone else decided first."""

        raise NotImplementedError

    # Balances
    def get_balance(self, *, employee_id: int, leave_type_id: int) -> Optional[LeaveBalance]:
        raise NotImplementedError

    def upsert_balance(self, *, employee_id: int, leave_type_id: int, allocated_days: float) -> LeaveBalance:
        """Create or re-allocate; used_days is left untouched on conflict."""

        raise NotImplementedError

    def increment_used(self, *, employee_id: int, leave_type_id: int, days: float) -> bool:
        """Add days only while used + days <= allocated. False if the guard failed."""

        raise NotImplementedError

    def decrement_used(self, *, employee_id: int, leave_type_id: int, days: float) -> bool:
        """Subtract days, never going below zero."""

        raise NotImplementedError
