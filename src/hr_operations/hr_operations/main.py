from __future__ import annotations

import importlib
import logging

import click
from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .common.errors import register_error_handlers
from .core.constants import MAX_UPLOAD_BYTES
from .database.bootstrap import apply_schema, list_tables

from .container import Container, build_container
from .attendance.controller import register as register_attendance
from .leave.controller import register as register_leave
from .reconciliation.controller import register as register_reconciliation

log = logging.getLogger(__name__)


def register_commands(app: Flask, container: Container) -> None:
    @app.cli.command("sweep-auto-approvals")
    @click.option("--company-id", type=int, required=True, help="Tenant to sweep.")
    def sweep_auto_approvals(company_id: int):
        """Approve pending entries authored by super_admins."""
        result = container.lifecycle_service.auto_approve_sweep(company_id)
        click.echo(
            f"company {result.company_id}: {result.leaves_approved} leave(s), "
            f"{result.attendance_approved} attendance entr(ies) approved"
        )
        for kind, entry_id, code, message in result.failures:
            click.echo(f"  blocked {kind} {entry_id}: {code} {message}", err=True)


def create_app(container: Container = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    max_upload_bytes = int(getattr(settings, "MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES))
    # Leave room for multipart framing around the file itself.
    app.config["MAX_CONTENT_LENGTH"] = max_upload_bytes + 64 * 1024

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    log.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        container = build_container(
            db_config=db_config,
            max_upload_bytes=max_upload_bytes,
            allow_balance_override=bool(getattr(settings, "ALLOW_BALANCE_OVERRIDE", False)),
        )
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(container.conn)
            log.info("schema ready (tables=%d)", len(list_tables(container.conn)))

    register_error_handlers(app)
    register_leave(app, container)
    register_attendance(app, container)
    register_reconciliation(app, container)
    register_commands(app, container)

    return app
