from __future__ import annotations

from datetime import timedelta

import pytest

from src.hr_operations.hr_operations.attendance.service import AttendanceService
from src.hr_operations.hr_operations.core.enums import AttendanceStatus
from src.hr_operations.hr_operations.core.exceptions import AuthorizationError, NotFoundError, ValidationError


@pytest.fixture
def service(attendance_repo, employees_repo, clock):
    return AttendanceService(attendance_repo, employees_repo, clock=clock)


def test_admin_marks_present_with_check_in_now(service, actors, attendance_repo, today):
    result = service.bulk_mark(actors["admin"], employee_ids=[4, 5, 4], work_date=today, status="present")

    assert result.marked == 2
    for rec in result.records:
        assert rec.pending_approval is False
        assert rec.check_in_time.date() == today
        assert (rec.check_in_time.hour, rec.check_in_time.minute) == (9, 30)
    assert len(attendance_repo.records) == 2


def test_absent_has_no_check_in(service, actors, today):
    result = service.bulk_mark(actors["admin"], employee_ids=[4], work_date=today - timedelta(days=3), status="absent")
    assert result.records[0].check_in_time is None
    assert result.status == AttendanceStatus.ABSENT


def test_marking_is_not_a_request_even_from_a_manager(service, actors, today):
    result = service.bulk_mark(actors["manager"], employee_ids=[4], work_date=today, status="late")
    assert result.records[0].pending_approval is False


def test_out_of_scope_employee_refuses_whole_batch(service, actors, attendance_repo, today):
    with pytest.raises(AuthorizationError):
        service.bulk_mark(actors["manager"], employee_ids=[4, 5], work_date=today, status="present")
    assert attendance_repo.records == {}


def test_other_tenant_and_unknown_employee(service, actors, attendance_repo, today):
    with pytest.raises(AuthorizationError):
        service.bulk_mark(actors["admin"], employee_ids=[6], work_date=today, status="present")
    with pytest.raises(NotFoundError):
        service.bulk_mark(actors["admin"], employee_ids=[4, 404], work_date=today, status="present")
    assert attendance_repo.records == {}


def test_employee_cannot_bulk_mark(service, actors, today):
    with pytest.raises(AuthorizationError):
        service.bulk_mark(actors["employee"], employee_ids=[4], work_date=today, status="present")


def test_rejects_future_empty_and_unknown_status(service, actors, today):
    with pytest.raises(ValidationError):
        service.bulk_mark(actors["admin"], employee_ids=[4], work_date=today + timedelta(days=1), status="present")
    with pytest.raises(ValidationError):
        service.bulk_mark(actors["admin"], employee_ids=[], work_date=today, status="present")
    with pytest.raises(ValidationError):
        service.bulk_mark(actors["admin"], employee_ids=[4], work_date=today, status="remote")


def test_remarking_overwrites_existing_pending_entry(service, actors, attendance_repo, today):
    attendance_repo.upsert(
        employee_id=4, company_id=1, work_date=today, fields={"status": "absent", "pending_approval": True}
    )
    service.bulk_mark(actors["admin"], employee_ids=[4], work_date=today, status="present")
    rec = attendance_repo.get_for_employee_and_date(4, today)
    assert rec.status == AttendanceStatus.PRESENT
    assert rec.pending_approval is False
