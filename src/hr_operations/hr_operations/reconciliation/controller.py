from __future__ import annotations

import json

from flask import Flask, Response, request

from ..common.http import login_required, ok
from ..core.enums import ImportMode
from ..core.exceptions import EmptyFileError, ValidationError
from ..container import Container
from .model import ReconciliationResult


def _uploaded_file():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise EmptyFileError("No file uploaded")
    return upload.read(), upload.filename


def _mapping_override():
    raw = request.form.get("mapping")
    if not raw:
        return None
    try:
        mapping = json.loads(raw)
    except ValueError:
        raise ValidationError("mapping must be a JSON object")
    if not isinstance(mapping, dict):
        raise ValidationError("mapping must be a JSON object")
    return mapping


def _respond(result: ReconciliationResult, *, display_limit: int):
    if request.args.get("format") == "csv":
        return Response(
            result.error_report_csv(),
            mimetype="text/csv",
            headers={"Content-Disposition": "attachment; filename=error_report.csv"},
        )
    return ok(
        {
            "summary": result.summary(),
            "rows": [o.as_dict() for o in result.display_outcomes(display_limit)],
        }
    )


def register(app: Flask, container: Container) -> None:
    engine = container.reconciliation_engine
    importer = container.attendance_importer

    @app.route("/api/employees/bulk-update/preview", methods=["POST"], endpoint="bulk_update_preview")
    @login_required
    def bulk_update_preview(actor):
        content, filename = _uploaded_file()
        session = engine.prepare(content, filename)
        return ok(
            {
                "filename": filename,
                "headers": session.headers,
                "total": session.total,
                "mapping": session.mapping.as_dict(),
            }
        )

    @app.route("/api/employees/bulk-update", methods=["POST"], endpoint="bulk_update_employees")
    @login_required
    def bulk_update_employees(actor):
        content, filename = _uploaded_file()
        mapping = _mapping_override()
        result = engine.reconcile_file(actor, content, filename, mapping=mapping)
        return _respond(result, display_limit=engine.display_limit)

    @app.route("/api/employees/bulk-import", methods=["POST"], endpoint="bulk_import_employees")
    @login_required
    def bulk_import_employees(actor):
        content, filename = _uploaded_file()
        mapping = _mapping_override()
        result = engine.reconcile_file(actor, content, filename, mode=ImportMode.CREATE, mapping=mapping)
        return _respond(result, display_limit=engine.display_limit)

    @app.route("/api/attendance/biometric-import", methods=["POST"], endpoint="biometric_import")
    @login_required
    def biometric_import(actor):
        content, filename = _uploaded_file()
        result = importer.import_file(actor, content, filename)
        return _respond(result, display_limit=engine.display_limit)
