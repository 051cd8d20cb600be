from __future__ import annotations

from typing import Mapping, Optional, Protocol, Sequence

from .model import Employee


class EmployeeRepository(Protocol):
    """Repository interface for the employee registry.

    Note (DIP): services depend on this interface, not on a concrete DB.
    """

    def get_by_id(self, employee_id: int) -> Optional[Employee]:
        raise NotImplementedError

    def find_by_email(self, email: str) -> Optional[Employee]:
        raise NotImplementedError

    def list_by_company(self, company_id: int, *, active_only: bool = True) -> Sequence[Employee]:
        raise NotImplementedError

    def update_by_email(self, *, company_id: int, email: str, fields: Mapping[str, object]) -> int:
        """Apply a partial update; returns the number of rows affected."""

        raise NotImplementedError

    def create(self, *, company_id: int, email: str, fields: Mapping[str, object]) -> Employee:
        """Insert a new employee. A taken email surfaces as StorageError (duplicate key)."""

        raise NotImplementedError
