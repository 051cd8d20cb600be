"""Bulk employee reconciliation: update or create registry rows from an upload.

Rows are applied one at a time and in file order. A failing row is recorded
with its category and the batch carries on; only malformed files (too
large, empty, no headers, no email column, required fields unmapped)
refuse the whole upload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from ..common.datetime_utils import normalize_date_value
from ..common.validators import normalize_email, parse_bool
from ..core.constants import DEFAULT_DISPLAY_LIMIT, MAX_UPLOAD_BYTES
from ..core.enums import ErrorCategory, ImportMode, Role, RowStatus
from ..core.exceptions import AuthorizationError, StorageError, ValidationError
from ..roles import hierarchy
from ..users.model import Actor
from ..users.repository import EmployeeRepository
from .errors import classify_storage_error
from .mapping import (
    BOOL_FIELDS,
    CREATE_REQUIRED_FIELDS,
    DATE_FIELDS,
    FieldMapping,
    find_key_column,
    infer_field_mapping,
)
from .model import CancelToken, ImportRecord, ProgressSnapshot, ReconciliationResult, RowOutcome, TableData
from .parser import read_table

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]


@dataclass(frozen=True)
class ImportSession:
    """A parsed upload plus the mapping that will be applied to it."""

    filename: str
    table: TableData
    mapping: FieldMapping

    @property
    def headers(self) -> List[str]:
        return self.table.headers

    @property
    def total(self) -> int:
        return len(self.table.records)


class _RowRejected(Exception):
    def __init__(self, category: ErrorCategory, message: str, column: Optional[str] = None):
        super().__init__(message)
        self.category = category
        self.message = message
        self.column = column


def _parse_role(value: object) -> Role:
    text = str(value).strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return Role(text)
    except ValueError:
        raise _RowRejected(ErrorCategory.INVALID_ROLE, f"Unknown role '{value}'", "role")


class ReconciliationEngine:
    def __init__(
        self,
        employees: EmployeeRepository,
        *,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        display_limit: int = DEFAULT_DISPLAY_LIMIT,
    ):
        self._employees = employees
        self.max_upload_bytes = max_upload_bytes
        self.display_limit = display_limit

    def prepare(self, content: bytes, filename: str) -> ImportSession:
        table = read_table(content, filename, max_bytes=self.max_upload_bytes)
        key_column = find_key_column(table.headers)
        mapping = infer_field_mapping(table.headers, key_column=key_column)
        log.info(
            "Parsed %s: %d row(s), key column %r, mapped %s",
            filename,
            len(table.records),
            key_column,
            sorted(mapping.fields),
        )
        return ImportSession(filename=filename, table=table, mapping=mapping)

    def build_payload(self, record: ImportRecord, mapping: FieldMapping) -> Tuple[Dict[str, object], List[str]]:
        """Collect mapped non-empty cells. Returns (payload, warnings)."""
        payload: Dict[str, object] = {}
        warnings: List[str] = []
        for target, header in mapping.fields.items():
            value = record.get(header)
            if not value:
                continue
            if target in DATE_FIELDS:
                converted = normalize_date_value(value)
                if converted is None:
                    msg = f"Dropped unparseable date '{value}' for {target}"
                    log.warning("Row %d: %s", record.row_number, msg)
                    warnings.append(msg)
                    continue
                payload[target] = converted
            elif target in BOOL_FIELDS:
                payload[target] = parse_bool(value)
            else:
                payload[target] = value
        return payload, warnings

    def _authorize_payload(self, actor: Actor, payload: Dict[str, object]) -> None:
        """Normalise role/company_id in place; raise _RowRejected when the actor may not set them."""
        if "role" in payload:
            role = _parse_role(payload["role"])
            if not hierarchy.can_assign_role(actor.role, role):
                raise _RowRejected(
                    ErrorCategory.NOT_PERMITTED,
                    f"{actor.role.value} cannot assign role {role.value}",
                    "role",
                )
            payload["role"] = role

        if "company_id" in payload:
            raw = payload["company_id"]
            try:
                company_id = int(str(raw).strip())
            except ValueError:
                raise _RowRejected(ErrorCategory.INVALID_ID_FORMAT, f"Invalid company id '{raw}'", "company_id")
            if company_id != actor.company_id and not hierarchy.can_move_between_companies(actor.role):
                raise _RowRejected(
                    ErrorCategory.NOT_PERMITTED,
                    "Only a super_admin can place employees in another company",
                    "company_id",
                )
            payload["company_id"] = company_id

    @staticmethod
    def _failure(
        record: ImportRecord,
        email: str,
        category: ErrorCategory,
        message: str,
        *,
        column: Optional[str] = None,
        payload: Optional[Dict[str, object]] = None,
        warnings: Sequence[str] = (),
    ) -> RowOutcome:
        return RowOutcome(
            row_number=record.row_number,
            email=email,
            status=RowStatus.ERROR,
            category=category,
            message=message,
            column=column,
            payload=dict(payload or {}),
            raw=dict(record.values),
            warnings=tuple(warnings),
        )

    def _storage_failure(
        self,
        record: ImportRecord,
        email: str,
        error: StorageError,
        payload: Dict[str, object],
        warnings: List[str],
    ) -> RowOutcome:
        category, column = classify_storage_error(error, payload.keys())
        log.warning("Row %d (%s) failed: %s", record.row_number, email, error)
        return self._failure(
            record, email, category, error.message, column=column, payload=payload, warnings=warnings
        )

    def _apply_row(self, actor: Actor, record: ImportRecord, mapping: FieldMapping) -> RowOutcome:
        email = normalize_email(record.get(mapping.key_column))
        if not email:
            return self._failure(record, "", ErrorCategory.MISSING_EMAIL, "Email is required")

        payload, warnings = self.build_payload(record, mapping)
        if not payload:
            return self._failure(
                record, email, ErrorCategory.NO_DATA_TO_UPDATE, "No mapped values to update", warnings=warnings
            )
        try:
            self._authorize_payload(actor, payload)
        except _RowRejected as e:
            return self._failure(
                record, email, e.category, e.message, column=e.column, payload=payload, warnings=warnings
            )

        try:
            affected = self._employees.update_by_email(company_id=actor.company_id, email=email, fields=payload)
        except StorageError as e:
            return self._storage_failure(record, email, e, payload, warnings)

        if affected == 0:
            return self._failure(
                record,
                email,
                ErrorCategory.EMAIL_NOT_FOUND,
                f"No employee with email {email}",
                payload=payload,
                warnings=warnings,
            )

        return RowOutcome(
            row_number=record.row_number,
            email=email,
            status=RowStatus.SUCCESS,
            message="Updated",
            payload=payload,
            warnings=tuple(warnings),
        )

    def _create_row(self, actor: Actor, record: ImportRecord, mapping: FieldMapping) -> RowOutcome:
        email = normalize_email(record.get(mapping.key_column))
        if not email:
            return self._failure(record, "", ErrorCategory.MISSING_EMAIL, "Email is required")

        payload, warnings = self.build_payload(record, mapping)
        missing = [f for f in CREATE_REQUIRED_FIELDS if f not in payload]
        if missing:
            return self._failure(
                record,
                email,
                ErrorCategory.MISSING_FIELDS,
                f"Missing required fields: {', '.join(missing)}",
                column=", ".join(missing),
                payload=payload,
                warnings=warnings,
            )
        try:
            self._authorize_payload(actor, payload)
        except _RowRejected as e:
            return self._failure(
                record, email, e.category, e.message, column=e.column, payload=payload, warnings=warnings
            )

        if self._employees.find_by_email(email) is not None:
            return self._failure(
                record,
                email,
                ErrorCategory.DUPLICATE_VALUE,
                f"An employee with email {email} already exists",
                column="email",
                payload=payload,
                warnings=warnings,
            )

        company_id = payload.pop("company_id", actor.company_id)
        try:
            created = self._employees.create(company_id=company_id, email=email, fields=payload)
        except StorageError as e:
            return self._storage_failure(record, email, e, payload, warnings)

        log.info("Row %d: created employee %s (%s)", record.row_number, created.employee_id, email)
        return RowOutcome(
            row_number=record.row_number,
            email=email,
            status=RowStatus.SUCCESS,
            message="Created",
            payload=payload,
            warnings=tuple(warnings),
        )

    def run(
        self,
        actor: Actor,
        session: ImportSession,
        *,
        mode: Union[ImportMode, str] = ImportMode.UPDATE,
        mapping: Optional[Mapping[str, Optional[str]]] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> ReconciliationResult:
        if not hierarchy.can_manage_employees(actor.role):
            raise AuthorizationError("Only admins can bulk update or import employees")
        try:
            mode = ImportMode(mode)
        except ValueError:
            raise ValidationError(f"Unknown import mode: {mode}")

        field_mapping = session.mapping
        if mapping:
            field_mapping = field_mapping.with_overrides(mapping, session.headers)

        if mode == ImportMode.CREATE:
            unmapped = [f for f in CREATE_REQUIRED_FIELDS if field_mapping.header_for(f) is None]
            if unmapped:
                raise ValidationError(f"Map the required fields before importing: {', '.join(unmapped)}")
            apply_row = self._create_row
        else:
            apply_row = self._apply_row

        result = ReconciliationResult(total=session.total)
        for record in session.table.records:
            if cancel_token is not None and cancel_token.cancelled:
                result.cancelled = True
                break
            result.record(apply_row(actor, record, field_mapping))
            if on_progress is not None:
                on_progress(result.snapshot())

        log.info(
            "Bulk %s of %s by %s: %d/%d done, %d ok, %d failed%s",
            mode.value,
            session.filename,
            actor.employee_id,
            result.completed,
            result.total,
            result.success,
            result.failed,
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def reconcile_file(
        self,
        actor: Actor,
        content: bytes,
        filename: str,
        *,
        mode: Union[ImportMode, str] = ImportMode.UPDATE,
        mapping: Optional[Mapping[str, Optional[str]]] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> ReconciliationResult:
        if not hierarchy.can_manage_employees(actor.role):
            raise AuthorizationError("Only admins can bulk update or import employees")
        session = self.prepare(content, filename)
        return self.run(
            actor, session, mode=mode, mapping=mapping, on_progress=on_progress, cancel_token=cancel_token
        )
