"""Import raw biometric punch logs as attendance.

A punch log has one row per punch (Name, Log Date). Punches are grouped per
employee per day; the first punch becomes check-in, the last check-out.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from ..attendance.repository import AttendanceRepository
from ..common.datetime_utils import excel_serial_to_date
from ..core.constants import ISO_YEAR_MAX, ISO_YEAR_MIN, MAX_UPLOAD_BYTES
from ..core.enums import AttendanceStatus, ErrorCategory, RowStatus
from ..core.exceptions import AuthorizationError, MissingHeadersError, StorageError
from ..roles import hierarchy
from ..users.model import Actor, Employee
from ..users.repository import EmployeeRepository
from .engine import ProgressCallback
from .errors import classify_storage_error
from .model import CancelToken, ImportRecord, ReconciliationResult, RowOutcome
from .parser import read_table

log = logging.getLogger(__name__)

IMPORT_NOTE = "Imported from biometric device"
NAME_HEADER = "name"
LOG_DATE_HEADER = "log date"

_DATETIME_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
)


def parse_punch_time(value: str) -> Optional[datetime]:
    """Parse a punch timestamp: text date-time or spreadsheet serial with fraction."""
    text = (value or "").strip()
    if not text:
        return None
    for fmt in _DATETIME_FORMATS:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return parsed if ISO_YEAR_MIN <= parsed.year <= ISO_YEAR_MAX else None
    try:
        number = float(text)
    except ValueError:
        return None
    if number != number:
        return None
    try:
        day = excel_serial_to_date(int(number))
    except ValueError:
        return None
    seconds = round((number - int(number)) * 86400)
    return datetime.combine(day, datetime.min.time()) + timedelta(seconds=seconds)


@dataclass
class PunchGroup:
    name: str
    work_date: date
    row_numbers: List[int] = field(default_factory=list)
    punches: List[datetime] = field(default_factory=list)

    @property
    def first_row(self) -> int:
        return min(self.row_numbers)

    @property
    def check_in(self) -> datetime:
        return min(self.punches)

    @property
    def check_out(self) -> Optional[datetime]:
        return max(self.punches) if len(self.punches) > 1 else None


def _find_header(headers: Sequence[str], wanted: str) -> Optional[str]:
    for h in headers:
        if h.strip().lower() == wanted:
            return h
    return None


class BiometricAttendanceImporter:
    def __init__(
        self,
        employees: EmployeeRepository,
        attendance: AttendanceRepository,
        *,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
    ):
        self._employees = employees
        self._attendance = attendance
        self.max_upload_bytes = max_upload_bytes

    def group_punches(
        self, records: Sequence[ImportRecord], name_header: str, date_header: str
    ) -> Tuple[List[PunchGroup], List[RowOutcome]]:
        groups: "OrderedDict[Tuple[str, date], PunchGroup]" = OrderedDict()
        rejected: List[RowOutcome] = []
        for record in records:
            name = record.get(name_header)
            raw_date = record.get(date_header)
            if not name or not raw_date:
                rejected.append(
                    RowOutcome(
                        row_number=record.row_number,
                        email="",
                        status=RowStatus.ERROR,
                        category=ErrorCategory.MISSING_FIELDS,
                        message="Name and Log Date are required",
                        raw=dict(record.values),
                    )
                )
                continue
            punch = parse_punch_time(raw_date)
            if punch is None:
                rejected.append(
                    RowOutcome(
                        row_number=record.row_number,
                        email="",
                        status=RowStatus.ERROR,
                        category=ErrorCategory.INVALID_DATE,
                        message=f"Invalid date: {raw_date}",
                        column="Log Date",
                        raw=dict(record.values),
                    )
                )
                continue
            key = (name.lower(), punch.date())
            group = groups.get(key)
            if group is None:
                group = groups[key] = PunchGroup(name=name, work_date=punch.date())
            group.row_numbers.append(record.row_number)
            group.punches.append(punch)
        return list(groups.values()), rejected

    def _match(self, group: PunchGroup, by_name: Dict[str, List[Employee]]) -> Tuple[Optional[Employee], Optional[RowOutcome]]:
        matches = by_name.get(group.name.lower(), [])
        if len(matches) == 1:
            return matches[0], None
        category = ErrorCategory.NO_MATCH if not matches else ErrorCategory.MULTIPLE_MATCHES
        message = (
            f"No active employee named '{group.name}'"
            if not matches
            else f"{len(matches)} active employees named '{group.name}'"
        )
        return None, RowOutcome(
            row_number=group.first_row,
            email="",
            status=RowStatus.ERROR,
            category=category,
            message=message,
            raw={"Name": group.name, "Log Date": group.work_date.isoformat()},
        )

    def _apply_group(self, actor: Actor, group: PunchGroup, employee: Employee) -> RowOutcome:
        fields = {
            "status": AttendanceStatus.PRESENT,
            "check_in_time": group.check_in,
            "check_out_time": group.check_out,
            "pending_approval": False,
            "requestor_role": actor.role,
            "notes": IMPORT_NOTE,
        }
        try:
            self._attendance.upsert(
                employee_id=employee.employee_id,
                company_id=employee.company_id,
                work_date=group.work_date,
                fields=fields,
            )
        except StorageError as e:
            category, column = classify_storage_error(e, fields.keys())
            log.warning("Punch import for %s on %s failed: %s", employee.email, group.work_date, e)
            return RowOutcome(
                row_number=group.first_row,
                email=employee.email,
                status=RowStatus.ERROR,
                category=category,
                message=e.message,
                column=column,
                raw={"Name": group.name, "Log Date": group.work_date.isoformat()},
            )
        return RowOutcome(
            row_number=group.first_row,
            email=employee.email,
            status=RowStatus.SUCCESS,
            message=f"{len(group.punches)} punch(es) on {group.work_date.isoformat()}",
        )

    def import_file(
        self,
        actor: Actor,
        content: bytes,
        filename: str,
        *,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancelToken] = None,
    ) -> ReconciliationResult:
        if not hierarchy.can_manage_employees(actor.role):
            raise AuthorizationError("Only admins can import biometric attendance")

        table = read_table(content, filename, max_bytes=self.max_upload_bytes)
        name_header = _find_header(table.headers, NAME_HEADER)
        date_header = _find_header(table.headers, LOG_DATE_HEADER)
        if not name_header or not date_header:
            raise MissingHeadersError("The file must contain 'Name' and 'Log Date' columns")

        groups, rejected = self.group_punches(table.records, name_header, date_header)
        by_name: Dict[str, List[Employee]] = {}
        for employee in self._employees.list_by_company(actor.company_id, active_only=True):
            by_name.setdefault(employee.name.strip().lower(), []).append(employee)

        result = ReconciliationResult(total=len(rejected) + len(groups))
        for outcome in rejected:
            result.record(outcome)
        for group in groups:
            if cancel_token is not None and cancel_token.cancelled:
                result.cancelled = True
                break
            employee, failure = self._match(group, by_name)
            result.record(failure or self._apply_group(actor, group, employee))
            if on_progress is not None:
                on_progress(result.snapshot())

        log.info(
            "Biometric import of %s by %s: %d group(s), %d ok, %d failed%s",
            filename,
            actor.employee_id,
            len(groups),
            result.success,
            result.failed,
            " (cancelled)" if result.cancelled else "",
        )
        return result
