from __future__ import annotations

from datetime import date
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from ..core.enums import Role
from .model import AttendanceRecord

# Keys accepted in upsert(fields=...)
UPSERT_FIELDS = frozenset(
    {
        "status",
        "check_in_time",
        "check_out_time",
        "pending_approval",
        "requestor_role",
        "change_reason",
        "notes",
    }
)


class AttendanceRepository(Protocol):
    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_employee_and_date(self, employee_id: int, work_date: date) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def upsert(
        self,
        *,
        employee_id: int,
        company_id: int,
        work_date: date,
        fields: Mapping[str, object],
    ) -> AttendanceRecord:
        """Insert or overwrite on the (employee_id, work_date) key."""

        raise NotImplementedError

    def list_pending(
        self,
        *,
        company_id: int,
        requestor_roles: Optional[Iterable[Role]] = None,
        limit: Optional[int] = 500,
    ) -> Sequence[AttendanceRecord]:
        """Oldest first. A NULL requestor_role counts as employee; limit=None returns all."""

        raise NotImplementedError

    def approve_pending(self, *, attendance_id: int) -> bool:
        """Clear pending_approval only if it is still set."""

        raise NotImplementedError

    def delete_pending(self, *, attendance_id: int) -> bool:
        """Delete the row only if it is still pending approval."""

        raise NotImplementedError
