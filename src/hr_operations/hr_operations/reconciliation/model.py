from __future__ import annotations

import csv
import io
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.constants import DEFAULT_DISPLAY_LIMIT, ERROR_REPORT_COLUMNS
from ..core.enums import ErrorCategory, RowStatus


@dataclass(frozen=True)
class ImportRecord:
    """One data row of an uploaded file. row_number counts the header as row 1."""

    row_number: int
    values: Dict[str, str]

    def get(self, header: Optional[str]) -> str:
        if not header:
            return ""
        return (self.values.get(header) or "").strip()


@dataclass(frozen=True)
class TableData:
    headers: List[str]
    records: List[ImportRecord]


@dataclass(frozen=True)
class RowOutcome:
    row_number: int
    email: str
    status: RowStatus
    category: Optional[ErrorCategory] = None
    message: str = ""
    column: Optional[str] = None
    payload: Dict[str, object] = field(default_factory=dict)
    raw: Dict[str, str] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status == RowStatus.SUCCESS

    def as_dict(self) -> dict:
        return {
            "row_number": self.row_number,
            "email": self.email,
            "status": self.status.value,
            "category": self.category.value if self.category else None,
            "message": self.message,
            "column": self.column,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class ProgressSnapshot:
    total: int
    completed: int
    success: int
    failed: int
    error_categories: Dict[str, int]

    @property
    def percent(self) -> int:
        return round(self.completed * 100 / self.total) if self.total else 0


class CancelToken:
    """Set from any thread; the engine checks it between rows."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class ReconciliationResult:
    total: int
    outcomes: List[RowOutcome] = field(default_factory=list)
    cancelled: bool = False

    def record(self, outcome: RowOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def completed(self) -> int:
        return len(self.outcomes)

    @property
    def success(self) -> int:
        return sum(1 for o in self.outcomes if o.ok)

    @property
    def failed(self) -> int:
        return self.completed - self.success

    @property
    def skipped(self) -> int:
        return self.total - self.completed

    @property
    def error_categories(self) -> Dict[str, int]:
        counts = Counter(o.category.value for o in self.outcomes if not o.ok and o.category)
        return dict(counts)

    @property
    def failed_outcomes(self) -> List[RowOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def display_outcomes(self, limit: int = DEFAULT_DISPLAY_LIMIT) -> Sequence[RowOutcome]:
        """Capped view for screens; outcomes itself is never truncated."""
        return self.outcomes[: max(0, int(limit))]

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            total=self.total,
            completed=self.completed,
            success=self.success,
            failed=self.failed,
            error_categories=self.error_categories,
        )

    def summary(self) -> dict:
        return {
            "total": self.total,
            "completed": self.completed,
            "success": self.success,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "error_categories": self.error_categories,
        }

    def error_report_csv(self) -> str:
        out = io.StringIO()
        writer = csv.DictWriter(out, fieldnames=list(ERROR_REPORT_COLUMNS))
        writer.writeheader()
        for o in self.failed_outcomes:
            details = o.message
            if o.column:
                details = f"{details} (column: {o.column})"
            writer.writerow(
                {
                    "Row Number": o.row_number,
                    "Email": o.email,
                    "Error": o.category.value if o.category else "",
                    "Details": details,
                }
            )
        return out.getvalue()
