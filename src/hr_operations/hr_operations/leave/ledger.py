from __future__ import annotations

import logging

from ..common.validators import require_positive_days
from ..core.exceptions import InsufficientBalanceError, LedgerInvariantError, NotFoundError, ValidationError
from .model import LeaveBalance
from .repository import LeaveRepository

log = logging.getLogger(__name__)


class BalanceLedger:
    """Allocated/used accounting per (employee, leave type).

    Every mutation goes through a guarded repository call so concurrent
    approvals for the same key cannot push used_days past allocated_days.
    """

    def __init__(self, leaves: LeaveRepository):
        self._leaves = leaves

    def get_balance(self, employee_id: int, leave_type_id: int) -> LeaveBalance:
        balance = self._leaves.get_balance(employee_id=int(employee_id), leave_type_id=int(leave_type_id))
        if balance is None:
            raise NotFoundError(f"No leave allocation for employee {employee_id}, leave type {leave_type_id}")
        if not balance.is_consistent:
            raise LedgerInvariantError(
                f"Balance for employee {employee_id}, leave type {leave_type_id} is corrupt: "
                f"used {balance.used_days:g} of {balance.allocated_days:g}"
            )
        return balance

    def check_available(self, employee_id: int, leave_type_id: int, days: float) -> LeaveBalance:
        days = require_positive_days(days)
        balance = self.get_balance(employee_id, leave_type_id)
        if balance.used_days + days > balance.allocated_days:
            raise InsufficientBalanceError(requested=days, remaining=balance.remaining_days)
        return balance

    def apply_approval(self, employee_id: int, leave_type_id: int, days: float) -> LeaveBalance:
        days = require_positive_days(days)
        self.check_available(employee_id, leave_type_id, days)

        ok = self._leaves.increment_used(employee_id=int(employee_id), leave_type_id=int(leave_type_id), days=days)
        if not ok:
            # Lost a race with another approval on the same balance.
            current = self.get_balance(employee_id, leave_type_id)
            raise InsufficientBalanceError(requested=days, remaining=current.remaining_days)

        balance = self.get_balance(employee_id, leave_type_id)
        log.info(
            "Applied %.2f day(s) to employee=%s leave_type=%s (used %.2f/%.2f)",
            days,
            employee_id,
            leave_type_id,
            balance.used_days,
            balance.allocated_days,
        )
        return balance

    def reverse_approval(self, employee_id: int, leave_type_id: int, days: float) -> LeaveBalance:
        days = require_positive_days(days)
        self.get_balance(employee_id, leave_type_id)
        self._leaves.decrement_used(employee_id=int(employee_id), leave_type_id=int(leave_type_id), days=days)
        balance = self.get_balance(employee_id, leave_type_id)
        log.info(
            "Reversed %.2f day(s) for employee=%s leave_type=%s (used %.2f/%.2f)",
            days,
            employee_id,
            leave_type_id,
            balance.used_days,
            balance.allocated_days,
        )
        return balance

    def allocate(self, employee_id: int, leave_type_id: int, allocated_days: float) -> LeaveBalance:
        if allocated_days is None or float(allocated_days) < 0:
            raise ValidationError("Allocated days cannot be negative")
        allocated_days = float(allocated_days)

        existing = self._leaves.get_balance(employee_id=int(employee_id), leave_type_id=int(leave_type_id))
        if existing is not None and existing.used_days > allocated_days:
            raise LedgerInvariantError(
                f"Cannot allocate {allocated_days:g} day(s): {existing.used_days:g} already used"
            )
        return self._leaves.upsert_balance(
            employee_id=int(employee_id),
            leave_type_id=int(leave_type_id),
            allocated_days=allocated_days,
        )

    def extend_allocation(self, employee_id: int, leave_type_id: int, extra_days: float) -> LeaveBalance:
        """Raise the ceiling by extra_days (over-allocation override)."""
        extra_days = require_positive_days(extra_days)
        balance = self.get_balance(employee_id, leave_type_id)
        log.warning(
            "Extending allocation for employee=%s leave_type=%s by %.2f day(s)",
            employee_id,
            leave_type_id,
            extra_days,
        )
        return self.allocate(employee_id, leave_type_id, balance.allocated_days + extra_days)
