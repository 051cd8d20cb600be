from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

import pytest

from src.hr_operations.hr_operations.attendance.model import AttendanceRecord
from src.hr_operations.hr_operations.core.enums import AttendanceStatus, RequestStatus, Role
from src.hr_operations.hr_operations.core.exceptions import StorageError
from src.hr_operations.hr_operations.leave.model import LeaveBalance, LeaveRequest
from src.hr_operations.hr_operations.users.model import Actor, Employee

NOW = datetime(2026, 3, 10, 9, 30, 0)
TODAY = NOW.date()


class FakeEmployeeRepo:
    def __init__(self, employees=()):
        self._by_id: dict[int, Employee] = {e.employee_id: e for e in employees}
        self.updates: list[tuple[str, dict]] = []
        self.created: list[Employee] = []
        # email -> StorageError raised by update_by_email
        self.errors: dict[str, StorageError] = {}

    def add(self, employee: Employee) -> Employee:
        self._by_id[employee.employee_id] = employee
        return employee

    def get_by_id(self, employee_id):
        return self._by_id.get(int(employee_id))

    def find_by_email(self, email):
        for e in self._by_id.values():
            if e.email.lower() == (email or "").lower():
                return e
        return None

    def list_by_company(self, company_id, *, active_only=True):
        return [
            e
            for e in self._by_id.values()
            if e.company_id == int(company_id) and (e.is_active or not active_only)
        ]

    def update_by_email(self, *, company_id, email, fields):
        if email in self.errors:
            raise self.errors[email]
        for e in list(self._by_id.values()):
            if e.company_id == int(company_id) and e.email.lower() == email:
                self._by_id[e.employee_id] = replace(e, **dict(fields))
                self.updates.append((email, dict(fields)))
                return 1
        return 0

    def create(self, *, company_id, email, fields):
        if email in self.errors:
            raise self.errors[email]
        if self.find_by_email(email) is not None:
            raise StorageError("1062", f"Duplicate entry '{email}' for key 'employees.uq_employees_email'")
        employee = Employee(
            employee_id=max(self._by_id, default=0) + 1,
            email=email,
            company_id=int(company_id),
            **dict(fields),
        )
        self.created.append(employee)
        return self.add(employee)


class FakeLeaveRepo:
    def __init__(self):
        self._next_id = 1
        self.requests: dict[int, LeaveRequest] = {}
        self.balances: dict[tuple[int, int], LeaveBalance] = {}
        self.fail_decide: StorageError = None
        self.fail_decrement: StorageError = None
        self.fail_create: StorageError = None
        # request ids another approver decides just before our CAS lands
        self.decided_elsewhere: set[int] = set()

    def create_request(
        self,
        *,
        employee_id,
        company_id,
        leave_type_id,
        start_date,
        end_date,
        total_days,
        reason,
        requestor_role,
        status=RequestStatus.PENDING,
        decided_by=None,
        approved_at=None,
    ):
        if self.fail_create:
            raise self.fail_create
        rid = self._next_id
        self._next_id += 1
        self.requests[rid] = LeaveRequest(
            request_id=rid,
            employee_id=int(employee_id),
            company_id=int(company_id),
            leave_type_id=int(leave_type_id),
            start_date=start_date,
            end_date=end_date,
            total_days=float(total_days),
            reason=reason,
            status=status,
            requestor_role=Role(requestor_role),
            created_at=NOW,
            decided_by=decided_by,
            decided_at=approved_at,
            approved_at=approved_at,
        )
        return rid

    def get_request(self, *, request_id):
        return self.requests.get(int(request_id))

    def list_pending(self, *, company_id, requestor_roles=None, limit=500):
        pending = [
            r
            for r in self.requests.values()
            if r.company_id == int(company_id)
            and r.status == RequestStatus.PENDING
            and (requestor_roles is None or r.requestor_role in set(requestor_roles))
        ]
        return pending if limit is None else pending[:limit]

    def decide_request(self, *, request_id, status, decided_by, comment=None, decided_at):
        if self.fail_decide:
            raise self.fail_decide
        req = self.requests.get(int(request_id))
        if req and req.request_id in self.decided_elsewhere:
            self.requests[req.request_id] = replace(req, status=RequestStatus.REJECTED, decided_by=999)
            return False
        if not req or req.status != RequestStatus.PENDING:
            return False
        self.requests[req.request_id] = replace(
            req,
            status=status,
            decided_by=decided_by,
            decided_at=decided_at,
            approved_at=decided_at if status == RequestStatus.APPROVED else None,
            decision_comment=comment,
        )
        return True

    def get_balance(self, *, employee_id, leave_type_id):
        return self.balances.get((int(employee_id), int(leave_type_id)))

    def upsert_balance(self, *, employee_id, leave_type_id, allocated_days):
        key = (int(employee_id), int(leave_type_id))
        current = self.balances.get(key)
        used = current.used_days if current else 0.0
        self.balances[key] = LeaveBalance(
            employee_id=key[0], leave_type_id=key[1], allocated_days=float(allocated_days), used_days=used
        )
        return self.balances[key]

    def increment_used(self, *, employee_id, leave_type_id, days):
        key = (int(employee_id), int(leave_type_id))
        b = self.balances.get(key)
        if b is None or b.used_days + days > b.allocated_days:
            return False
        self.balances[key] = replace(b, used_days=b.used_days + days)
        return True

    def decrement_used(self, *, employee_id, leave_type_id, days):
        if self.fail_decrement:
            raise self.fail_decrement
        key = (int(employee_id), int(leave_type_id))
        b = self.balances.get(key)
        if b is None:
            return False
        self.balances[key] = replace(b, used_days=max(b.used_days - days, 0.0))
        return True


class FakeAttendanceRepo:
    def __init__(self):
        self._next_id = 1
        self.records: dict[int, AttendanceRecord] = {}
        # employee ids whose upsert raises
        self.errors: dict[int, StorageError] = {}

    def get_by_id(self, attendance_id):
        return self.records.get(int(attendance_id))

    def get_for_employee_and_date(self, employee_id, work_date):
        for r in self.records.values():
            if r.employee_id == int(employee_id) and r.work_date == work_date:
                return r
        return None

    def upsert(self, *, employee_id, company_id, work_date, fields):
        if int(employee_id) in self.errors:
            raise self.errors[int(employee_id)]
        values = dict(fields)
        values["status"] = AttendanceStatus(values["status"])
        existing = self.get_for_employee_and_date(employee_id, work_date)
        if existing:
            rec = replace(existing, company_id=int(company_id), **values)
        else:
            rec = AttendanceRecord(
                attendance_id=self._next_id,
                employee_id=int(employee_id),
                company_id=int(company_id),
                work_date=work_date,
                **values,
            )
            self._next_id += 1
        self.records[rec.attendance_id] = rec
        return rec

    def list_pending(self, *, company_id, requestor_roles=None, limit=500):
        pending = [
            r
            for r in self.records.values()
            if r.company_id == int(company_id)
            and r.pending_approval
            and (requestor_roles is None or (r.requestor_role or Role.EMPLOYEE) in set(requestor_roles))
        ]
        return pending if limit is None else pending[:limit]

    def approve_pending(self, *, attendance_id):
        rec = self.records.get(int(attendance_id))
        if not rec or not rec.pending_approval:
            return False
        self.records[rec.attendance_id] = replace(rec, pending_approval=False)
        return True

    def delete_pending(self, *, attendance_id):
        rec = self.records.get(int(attendance_id))
        if not rec or not rec.pending_approval:
            return False
        del self.records[rec.attendance_id]
        return True


def make_employee(employee_id, role, *, company_id=1, name=None, manager_id=None, is_active=True):
    return Employee(
        employee_id=employee_id,
        email=f"user{employee_id}@example.com",
        name=name or f"User {employee_id}",
        role=role,
        company_id=company_id,
        reporting_manager_id=manager_id,
        is_active=is_active,
    )


def actor_for(employee: Employee) -> Actor:
    return Actor(employee_id=employee.employee_id, role=employee.role, company_id=employee.company_id)


@pytest.fixture
def staff():
    """One company with every role plus an outsider from company 2."""
    return {
        "super_admin": make_employee(1, Role.SUPER_ADMIN, name="Sam Super"),
        "admin": make_employee(2, Role.ADMIN, name="Ada Admin"),
        "manager": make_employee(3, Role.REPORTING_MANAGER, name="Rita Manager", manager_id=2),
        "employee": make_employee(4, Role.EMPLOYEE, name="Eve Worker", manager_id=3),
        "peer": make_employee(5, Role.EMPLOYEE, name="Evan Other", manager_id=2),
        "outsider": make_employee(6, Role.EMPLOYEE, company_id=2, name="Olga Outside"),
    }


@pytest.fixture
def employees_repo(staff):
    return FakeEmployeeRepo(staff.values())


@pytest.fixture
def leaves_repo():
    return FakeLeaveRepo()


@pytest.fixture
def attendance_repo():
    return FakeAttendanceRepo()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def actors(staff):
    return {key: actor_for(e) for key, e in staff.items()}
