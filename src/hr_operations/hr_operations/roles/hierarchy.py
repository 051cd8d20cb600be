"""Role ranking and every authorization decision made by the services.

All checks are pure functions of their arguments so they can be tested
without storage.
"""

from __future__ import annotations

from typing import FrozenSet, Union

from ..core.enums import Role
from ..users.model import Actor, Employee

_RANK = {
    Role.EMPLOYEE: 0,
    Role.REPORTING_MANAGER: 1,
    Role.ADMIN: 2,
    Role.SUPER_ADMIN: 3,
}

# approver role -> requestor roles it may decide on
_APPROVABLE = {
    Role.SUPER_ADMIN: frozenset({Role.EMPLOYEE, Role.REPORTING_MANAGER, Role.ADMIN}),
    Role.ADMIN: frozenset({Role.EMPLOYEE}),
    Role.REPORTING_MANAGER: frozenset({Role.EMPLOYEE}),
    Role.EMPLOYEE: frozenset(),
}

_MARKING_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.REPORTING_MANAGER})
_EMPLOYEE_MANAGERS = frozenset({Role.SUPER_ADMIN, Role.ADMIN})


def _as_role(value: Union[Role, str]) -> Role:
    return value if isinstance(value, Role) else Role(value)


def rank(role: Union[Role, str]) -> int:
    return _RANK[_as_role(role)]


def outranks(a: Union[Role, str], b: Union[Role, str]) -> bool:
    return rank(a) > rank(b)


def is_auto_approved(requestor_role: Union[Role, str]) -> bool:
    """super_admin entries never wait for a human approver."""
    return _as_role(requestor_role) == Role.SUPER_ADMIN


def can_approve(approver_role: Union[Role, str], requestor_role: Union[Role, str]) -> bool:
    approver = _as_role(approver_role)
    requestor = _as_role(requestor_role)
    if is_auto_approved(requestor):
        return False
    return outranks(approver, requestor) and requestor in _APPROVABLE[approver]


def can_mark_attendance(actor: Actor, employee: Employee) -> bool:
    """Scope for direct (non-pending) attendance marking on someone else."""
    if actor.company_id != employee.company_id:
        return False
    if actor.role in (Role.SUPER_ADMIN, Role.ADMIN):
        return True
    if actor.role == Role.REPORTING_MANAGER:
        return employee.reporting_manager_id is not None and int(employee.reporting_manager_id) == int(actor.employee_id)
    return False


def can_act_for(actor: Actor, employee: Employee) -> bool:
    """May the actor create a request on the employee's behalf?"""
    if int(actor.employee_id) == int(employee.employee_id):
        return actor.company_id == employee.company_id
    return can_mark_attendance(actor, employee)


def can_manage_employees(role: Union[Role, str]) -> bool:
    return _as_role(role) in _EMPLOYEE_MANAGERS


def can_bulk_mark(role: Union[Role, str]) -> bool:
    return _as_role(role) in _MARKING_ROLES


def approvable_roles(approver_role: Union[Role, str]) -> FrozenSet[Role]:
    """Requestor roles whose pending entries the approver may decide on."""
    return _APPROVABLE[_as_role(approver_role)]


def can_assign_role(actor_role: Union[Role, str], target_role: Union[Role, str]) -> bool:
    """Roles handed out through bulk edits must sit strictly below the editor."""
    return can_manage_employees(actor_role) and outranks(actor_role, target_role)


def can_move_between_companies(role: Union[Role, str]) -> bool:
    return _as_role(role) == Role.SUPER_ADMIN
