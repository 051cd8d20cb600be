from __future__ import annotations

from flask import Flask, request

from ..common.http import json_body, login_required, ok, optional_int, require_date, require_int
from ..container import Container


def register(app: Flask, container: Container) -> None:
    lifecycle = container.lifecycle_service

    @app.route("/api/leaves", methods=["POST"], endpoint="create_leave")
    @login_required
    def create_leave(actor):
        data = json_body()
        req = lifecycle.create_leave(
            actor,
            employee_id=optional_int(data, "employee_id", actor.employee_id),
            leave_type_id=require_int(data, "leave_type_id"),
            start_date=require_date(data, "start_date"),
            end_date=require_date(data, "end_date"),
            reason=str(data.get("reason") or ""),
        )
        return ok(req.as_dict(), status=201)

    @app.route("/api/leaves/pending", methods=["GET"], endpoint="pending_leaves")
    @login_required
    def pending_leaves(actor):
        limit = request.args.get("limit", type=int)
        items = lifecycle.list_pending_leaves(actor, limit=limit) if limit else lifecycle.list_pending_leaves(actor)
        return ok([r.as_dict() for r in items])

    @app.route("/api/leaves/<int:request_id>/approve", methods=["POST"], endpoint="approve_leave")
    @login_required
    def approve_leave(actor, request_id: int):
        data = json_body()
        req = lifecycle.approve_leave(
            actor,
            request_id=request_id,
            comment=str(data.get("comment") or ""),
            override_balance=bool(data.get("override_balance", False)),
        )
        return ok(req.as_dict())

    @app.route("/api/leaves/<int:request_id>/reject", methods=["POST"], endpoint="reject_leave")
    @login_required
    def reject_leave(actor, request_id: int):
        data = json_body()
        req = lifecycle.reject_leave(actor, request_id=request_id, comment=str(data.get("comment") or ""))
        return ok(req.as_dict())

    @app.route(
        "/api/leave-balances/<int:employee_id>/<int:leave_type_id>",
        methods=["GET"],
        endpoint="leave_balance",
    )
    @login_required
    def leave_balance(actor, employee_id: int, leave_type_id: int):
        balance = lifecycle.get_leave_balance(actor, employee_id=employee_id, leave_type_id=leave_type_id)
        return ok(balance.as_dict())
