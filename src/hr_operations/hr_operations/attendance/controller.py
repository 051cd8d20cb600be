from __future__ import annotations

from flask import Flask

from ..common.http import json_body, login_required, ok, optional_datetime, optional_int, require_date
from ..core.exceptions import ValidationError
from ..container import Container


def register(app: Flask, container: Container) -> None:
    lifecycle = container.lifecycle_service
    attendance_service = container.attendance_service

    @app.route("/api/attendance/backdate", methods=["POST"], endpoint="backdate_attendance")
    @login_required
    def backdate_attendance(actor):
        data = json_body()
        rec = lifecycle.create_backdated_attendance(
            actor,
            employee_id=optional_int(data, "employee_id", actor.employee_id),
            work_date=require_date(data, "date"),
            status=str(data.get("status") or ""),
            change_reason=str(data.get("change_reason") or ""),
            check_in_time=optional_datetime(data, "check_in_time"),
            check_out_time=optional_datetime(data, "check_out_time"),
        )
        return ok(rec.as_dict(), status=201)

    @app.route("/api/attendance/pending", methods=["GET"], endpoint="pending_attendance")
    @login_required
    def pending_attendance(actor):
        return ok([r.as_dict() for r in lifecycle.list_pending_attendance(actor)])

    @app.route("/api/attendance/<int:attendance_id>/approve", methods=["POST"], endpoint="approve_attendance")
    @login_required
    def approve_attendance(actor, attendance_id: int):
        data = json_body()
        rec = lifecycle.approve_attendance(actor, attendance_id=attendance_id, comment=str(data.get("comment") or ""))
        return ok(rec.as_dict())

    @app.route("/api/attendance/<int:attendance_id>/reject", methods=["POST"], endpoint="reject_attendance")
    @login_required
    def reject_attendance(actor, attendance_id: int):
        data = json_body()
        lifecycle.reject_attendance(actor, attendance_id=attendance_id, comment=str(data.get("comment") or ""))
        return ok({"attendance_id": attendance_id, "deleted": True})

    @app.route("/api/attendance/bulk-mark", methods=["POST"], endpoint="bulk_mark_attendance")
    @login_required
    def bulk_mark_attendance(actor):
        data = json_body()
        employee_ids = data.get("employee_ids")
        if not isinstance(employee_ids, list):
            raise ValidationError("employee_ids must be a list")
        try:
            employee_ids = [int(i) for i in employee_ids]
        except (TypeError, ValueError):
            raise ValidationError("employee_ids must be integers")
        result = attendance_service.bulk_mark(
            actor,
            employee_ids=employee_ids,
            work_date=require_date(data, "date"),
            status=str(data.get("status") or ""),
        )
        return ok(
            {
                "date": result.work_date.isoformat(),
                "status": result.status.value,
                "marked": result.marked,
                "records": [r.as_dict() for r in result.records],
            }
        )
