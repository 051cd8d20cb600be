from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence, Tuple, Union

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import inclusive_days, now_local
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_PENDING_LIMIT
from ..core.enums import AttendanceStatus, RequestStatus, Role
from ..core.exceptions import (
    AlreadyFinalError,
    AuthorizationError,
    DomainError,
    InsufficientBalanceError,
    LedgerConsistencyError,
    NotFoundError,
    ValidationError,
)
from ..leave.ledger import BalanceLedger
from ..leave.model import LeaveBalance, LeaveRequest
from ..leave.repository import LeaveRepository
from ..roles import hierarchy
from ..users.model import Actor, Employee
from ..users.repository import EmployeeRepository

log = logging.getLogger(__name__)

# requestor roles whose pending entries the sweep approves
_AUTO_APPROVED = tuple(r for r in Role if hierarchy.is_auto_approved(r))


@dataclass(frozen=True)
class SweepResult:
    company_id: int
    leaves_approved: int = 0
    attendance_approved: int = 0
    # (kind, id, error code, message) for entries that could not be approved
    failures: Tuple[Tuple[str, int, str, str], ...] = field(default_factory=tuple)

    @property
    def total_approved(self) -> int:
        return self.leaves_approved + self.attendance_approved


class RequestLifecycleService:
    """pending -> approved | rejected for leave requests and backdated attendance.

    Approved and rejected are terminal. Decisions are compare-and-swap writes,
    so of two concurrent deciders the second gets AlreadyFinalError.
    """

    def __init__(
        self,
        leaves: LeaveRepository,
        attendance: AttendanceRepository,
        employees: EmployeeRepository,
        *,
        ledger: Optional[BalanceLedger] = None,
        allow_balance_override: bool = False,
        clock: Callable[[], datetime] = now_local,
    ):
        self._leaves = leaves
        self._attendance = attendance
        self._employees = employees
        self._ledger = ledger or BalanceLedger(leaves)
        self._allow_balance_override = bool(allow_balance_override)
        self._clock = clock

    # ----- helpers -----
    def _employee_in_tenant(self, actor: Actor, employee_id: int) -> Employee:
        employee = self._employees.get_by_id(int(employee_id))
        if not employee:
            raise NotFoundError(f"Employee {employee_id} not found")
        if employee.company_id != actor.company_id:
            raise AuthorizationError("Employee belongs to another company")
        return employee

    def _load_leave(self, actor: Actor, request_id: int) -> LeaveRequest:
        req = self._leaves.get_request(request_id=int(request_id))
        if not req:
            raise NotFoundError(f"Leave request {request_id} not found")
        if req.company_id != actor.company_id:
            raise AuthorizationError("Leave request belongs to another company")
        return req

    def _load_attendance(self, actor: Actor, attendance_id: int) -> AttendanceRecord:
        rec = self._attendance.get_by_id(int(attendance_id))
        if not rec:
            raise NotFoundError(f"Attendance record {attendance_id} not found")
        if rec.company_id != actor.company_id:
            raise AuthorizationError("Attendance record belongs to another company")
        return rec

    def _compensate(self, req: LeaveRequest, cause: BaseException) -> None:
        try:
            self._ledger.reverse_approval(req.employee_id, req.leave_type_id, req.total_days)
        except Exception as e:
            log.exception(
                "Ledger compensation failed for leave request %s (%.2f day(s))",
                req.request_id,
                req.total_days,
            )
            raise LedgerConsistencyError(
                f"Leave request {req.request_id}: ledger applied but status write failed ({cause}); "
                f"reversal also failed ({e})"
            ) from e
        log.warning("Reversed ledger for leave request %s after failed status write: %s", req.request_id, cause)

    def _apply_and_approve(
        self,
        req: LeaveRequest,
        *,
        decided_by: Optional[int],
        comment: Optional[str],
        override_balance: bool = False,
        approver_role: Optional[Role] = None,
    ) -> None:
        # Nothing is written until the balance is known to cover the request.
        try:
            self._ledger.check_available(req.employee_id, req.leave_type_id, req.total_days)
        except InsufficientBalanceError as e:
            if not (override_balance and self._allow_balance_override and approver_role == Role.SUPER_ADMIN):
                raise
            self._ledger.extend_allocation(req.employee_id, req.leave_type_id, e.shortfall)

        self._ledger.apply_approval(req.employee_id, req.leave_type_id, req.total_days)

        try:
            decided = self._leaves.decide_request(
                request_id=req.request_id,
                status=RequestStatus.APPROVED,
                decided_by=decided_by,
                comment=comment,
                decided_at=self._clock(),
            )
        except Exception as e:
            self._compensate(req, e)
            raise

        if not decided:
            err = AlreadyFinalError(f"Leave request {req.request_id} was already decided")
            self._compensate(req, err)
            raise err

        log.info("Leave request %s approved by %s", req.request_id, decided_by if decided_by is not None else "system")

    # ----- leave -----
    def create_leave(
        self,
        actor: Actor,
        *,
        employee_id: int,
        leave_type_id: int,
        start_date: date,
        end_date: date,
        reason: str,
    ) -> LeaveRequest:
        if end_date < start_date:
            raise ValidationError("End date must be on or after start date")
        total_days = inclusive_days(start_date, end_date)
        if total_days < 1:
            raise ValidationError("A leave request must cover at least one day")
        reason = require_non_empty(reason, "Reason")

        employee = self._employee_in_tenant(actor, employee_id)
        if not hierarchy.can_act_for(actor, employee):
            raise AuthorizationError("Not allowed to request leave for this employee")

        if not hierarchy.is_auto_approved(actor.role):
            # A missing allocation row is reported now rather than at approval time.
            self._ledger.get_balance(employee.employee_id, leave_type_id)
            rid = self._leaves.create_request(
                employee_id=employee.employee_id,
                company_id=employee.company_id,
                leave_type_id=int(leave_type_id),
                start_date=start_date,
                end_date=end_date,
                total_days=total_days,
                reason=reason,
                requestor_role=actor.role,
            )
            log.info("Leave request %s created for employee %s (%d day(s))", rid, employee.employee_id, total_days)
            return self._leaves.get_request(request_id=rid)

        # super_admin: applied immediately, ledger first so a failed insert can be reversed.
        self._ledger.apply_approval(employee.employee_id, leave_type_id, total_days)
        now = self._clock()
        try:
            rid = self._leaves.create_request(
                employee_id=employee.employee_id,
                company_id=employee.company_id,
                leave_type_id=int(leave_type_id),
                start_date=start_date,
                end_date=end_date,
                total_days=total_days,
                reason=reason,
                requestor_role=actor.role,
                status=RequestStatus.APPROVED,
                decided_by=actor.employee_id,
                approved_at=now,
            )
        except Exception as e:
            try:
                self._ledger.reverse_approval(employee.employee_id, leave_type_id, total_days)
            except Exception as rev:
                log.exception("Ledger compensation failed after insert error for employee %s", employee.employee_id)
                raise LedgerConsistencyError(
                    f"Leave applied to ledger but request insert failed ({e}); reversal failed ({rev})"
                ) from rev
            raise
        log.info("Leave request %s auto-approved for super_admin %s", rid, actor.employee_id)
        return self._leaves.get_request(request_id=rid)

    def approve_leave(
        self,
        actor: Actor,
        *,
        request_id: int,
        comment: str = "",
        override_balance: bool = False,
    ) -> LeaveRequest:
        req = self._load_leave(actor, request_id)
        if req.status.is_final:
            raise AlreadyFinalError(f"Leave request {req.request_id} is already {req.status.value}")
        if not hierarchy.can_approve(actor.role, req.requestor_role):
            raise AuthorizationError(f"{actor.role.value} cannot approve a request from {req.requestor_role.value}")

        self._apply_and_approve(
            req,
            decided_by=actor.employee_id,
            comment=(comment or "").strip() or None,
            override_balance=override_balance,
            approver_role=actor.role,
        )
        return self._leaves.get_request(request_id=req.request_id)

    def reject_leave(self, actor: Actor, *, request_id: int, comment: str) -> LeaveRequest:
        comment = require_non_empty(comment, "Rejection reason")
        req = self._load_leave(actor, request_id)
        if req.status.is_final:
            raise AlreadyFinalError(f"Leave request {req.request_id} is already {req.status.value}")
        if not hierarchy.can_approve(actor.role, req.requestor_role):
            raise AuthorizationError(f"{actor.role.value} cannot reject a request from {req.requestor_role.value}")

        decided = self._leaves.decide_request(
            request_id=req.request_id,
            status=RequestStatus.REJECTED,
            decided_by=actor.employee_id,
            comment=comment,
            decided_at=self._clock(),
        )
        if not decided:
            raise AlreadyFinalError(f"Leave request {req.request_id} was already decided")
        log.info("Leave request %s rejected by %s", req.request_id, actor.employee_id)
        return self._leaves.get_request(request_id=req.request_id)

    def get_leave_balance(self, actor: Actor, *, employee_id: int, leave_type_id: int) -> LeaveBalance:
        employee = self._employee_in_tenant(actor, employee_id)
        if not hierarchy.can_act_for(actor, employee):
            raise AuthorizationError("Not allowed to view this employee's balance")
        return self._ledger.get_balance(employee.employee_id, leave_type_id)

    def list_pending_leaves(self, actor: Actor, *, limit: int = DEFAULT_PENDING_LIMIT) -> Sequence[LeaveRequest]:
        self.auto_approve_sweep(actor.company_id)
        return self._leaves.list_pending(
            company_id=actor.company_id,
            requestor_roles=hierarchy.approvable_roles(actor.role),
            limit=limit,
        )

    # ----- attendance backdates -----
    def create_backdated_attendance(
        self,
        actor: Actor,
        *,
        employee_id: int,
        work_date: date,
        status: Union[AttendanceStatus, str],
        change_reason: str = "",
        check_in_time: Optional[datetime] = None,
        check_out_time: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> AttendanceRecord:
        today = today or self._clock().date()
        if work_date > today:
            raise ValidationError("Backdated attendance cannot be in the future")
        try:
            status = AttendanceStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown attendance status: {status}")

        employee = self._employee_in_tenant(actor, employee_id)
        if not hierarchy.can_act_for(actor, employee):
            raise AuthorizationError("Not allowed to submit attendance for this employee")

        if not status.implies_presence:
            check_in_time = None
            check_out_time = None
        elif check_in_time and check_out_time and check_out_time < check_in_time:
            raise ValidationError("Check-out cannot be before check-in")

        pending = not hierarchy.is_auto_approved(actor.role)
        rec = self._attendance.upsert(
            employee_id=employee.employee_id,
            company_id=employee.company_id,
            work_date=work_date,
            fields={
                "status": status,
                "check_in_time": check_in_time,
                "check_out_time": check_out_time,
                "pending_approval": pending,
                "requestor_role": actor.role,
                "change_reason": (change_reason or "").strip() or None,
            },
        )
        log.info(
            "Backdated attendance %s for employee %s on %s (%s, pending=%s)",
            rec.attendance_id,
            employee.employee_id,
            work_date,
            status.value,
            pending,
        )
        return rec

    def approve_attendance(self, actor: Actor, *, attendance_id: int, comment: str = "") -> AttendanceRecord:
        rec = self._load_attendance(actor, attendance_id)
        if not rec.pending_approval:
            raise AlreadyFinalError(f"Attendance record {rec.attendance_id} is not pending approval")
        requestor = rec.requestor_role or Role.EMPLOYEE
        if not hierarchy.can_approve(actor.role, requestor):
            raise AuthorizationError(f"{actor.role.value} cannot approve an entry from {requestor.value}")

        if not self._attendance.approve_pending(attendance_id=rec.attendance_id):
            raise AlreadyFinalError(f"Attendance record {rec.attendance_id} was already decided")
        log.info("Attendance %s approved by %s %s", rec.attendance_id, actor.employee_id, (comment or "").strip())
        return self._attendance.get_by_id(rec.attendance_id)

    def reject_attendance(self, actor: Actor, *, attendance_id: int, comment: str) -> None:
        comment = require_non_empty(comment, "Rejection reason")
        rec = self._load_attendance(actor, attendance_id)
        if not rec.pending_approval:
            raise AlreadyFinalError(f"Attendance record {rec.attendance_id} is not pending approval")
        requestor = rec.requestor_role or Role.EMPLOYEE
        if not hierarchy.can_approve(actor.role, requestor):
            raise AuthorizationError(f"{actor.role.value} cannot reject an entry from {requestor.value}")

        if not self._attendance.delete_pending(attendance_id=rec.attendance_id):
            raise AlreadyFinalError(f"Attendance record {rec.attendance_id} was already decided")
        log.info("Attendance %s rejected by %s: %s", rec.attendance_id, actor.employee_id, comment)

    def list_pending_attendance(self, actor: Actor, *, limit: int = DEFAULT_PENDING_LIMIT) -> Sequence[AttendanceRecord]:
        self.auto_approve_sweep(actor.company_id)
        return self._attendance.list_pending(
            company_id=actor.company_id,
            requestor_roles=hierarchy.approvable_roles(actor.role),
            limit=limit,
        )

    # ----- background -----
    def auto_approve_sweep(self, company_id: int) -> SweepResult:
        """Approve every pending entry authored by a super_admin. Idempotent."""
        leaves_approved = 0
        attendance_approved = 0
        failures: List[Tuple[str, int, str, str]] = []

        for req in self._leaves.list_pending(company_id=int(company_id), requestor_roles=_AUTO_APPROVED, limit=None):
            try:
                self._apply_and_approve(req, decided_by=None, comment="Auto-approved (super_admin requestor)")
            except AlreadyFinalError:
                continue
            except LedgerConsistencyError:
                raise
            except DomainError as e:
                log.warning("Auto-approve of leave request %s blocked: %s", req.request_id, e)
                failures.append(("leave", req.request_id, e.code, str(e)))
                continue
            leaves_approved += 1

        for rec in self._attendance.list_pending(
            company_id=int(company_id), requestor_roles=_AUTO_APPROVED, limit=None
        ):
            if self._attendance.approve_pending(attendance_id=rec.attendance_id):
                attendance_approved += 1

        result = SweepResult(
            company_id=int(company_id),
            leaves_approved=leaves_approved,
            attendance_approved=attendance_approved,
            failures=tuple(failures),
        )
        if result.total_approved or failures:
            log.info(
                "Auto-approve sweep company=%s: %d leave(s), %d attendance, %d blocked",
                company_id,
                leaves_approved,
                attendance_approved,
                len(failures),
            )
        return result
