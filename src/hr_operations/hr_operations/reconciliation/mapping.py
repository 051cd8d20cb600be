from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple

from ..core.exceptions import NoKeyColumnError, ValidationError

KEY_FIELD = "email"

TARGET_FIELDS: Tuple[str, ...] = (
    "name",
    "role",
    "department",
    "position",
    "hire_date",
    "is_active",
    "company_id",
    "reporting_manager_id",
    "role_id",
    "team_id",
)
DATE_FIELDS = frozenset({"hire_date"})
BOOL_FIELDS = frozenset({"is_active"})
# Besides the email key, a created employee needs these mapped and filled.
CREATE_REQUIRED_FIELDS: Tuple[str, ...] = ("name", "role", "department")


@dataclass(frozen=True)
class _Rule:
    all_of: Tuple[str, ...] = ()
    any_of: Tuple[str, ...] = ()
    none_of: Tuple[str, ...] = ()

    def matches(self, header: str) -> bool:
        text = header.lower()
        if not all(t in text for t in self.all_of):
            return False
        if self.any_of and not any(t in text for t in self.any_of):
            return False
        return not any(t in text for t in self.none_of)


_RULES: Dict[str, _Rule] = {
    "name": _Rule(all_of=("name",), none_of=("manager", "company", "team", "role", "user")),
    "role": _Rule(all_of=("role",), none_of=("id",)),
    "department": _Rule(any_of=("department", "dept")),
    "position": _Rule(any_of=("position", "title", "designation")),
    "hire_date": _Rule(all_of=("date",), any_of=("hire", "start", "join")),
    "is_active": _Rule(all_of=("active",)),
    "company_id": _Rule(all_of=("company",)),
    "reporting_manager_id": _Rule(all_of=("manager",)),
    "role_id": _Rule(all_of=("role", "id")),
    "team_id": _Rule(all_of=("team",)),
}


def find_key_column(headers: Sequence[str]) -> str:
    for h in headers:
        if KEY_FIELD in h.lower():
            return h
    raise NoKeyColumnError("No email column found. Include an email column to identify records.")


@dataclass(frozen=True)
class FieldMapping:
    """Target field -> file header. Unmapped fields are skipped, never defaulted."""

    key_column: str
    fields: Dict[str, str] = field(default_factory=dict)

    def header_for(self, target: str) -> Optional[str]:
        return self.fields.get(target)

    def with_overrides(self, overrides: Mapping[str, Optional[str]], headers: Sequence[str]) -> "FieldMapping":
        """Apply user edits. A None/empty header unmaps the field."""
        key_column = self.key_column
        fields = dict(self.fields)
        for target, header in overrides.items():
            header = (header or "").strip() or None
            if header is not None and header not in headers:
                raise ValidationError(f"Column '{header}' is not in the file")
            if target == KEY_FIELD:
                if header is None:
                    raise ValidationError("The email column cannot be unmapped")
                key_column = header
                continue
            if target not in TARGET_FIELDS:
                raise ValidationError(f"Unknown field '{target}'")
            if header is None:
                fields.pop(target, None)
            else:
                fields[target] = header
        fields = {t: h for t, h in fields.items() if h != key_column}
        return FieldMapping(key_column=key_column, fields=fields)

    def as_dict(self) -> dict:
        return {KEY_FIELD: self.key_column, **self.fields}


def infer_field_mapping(headers: Sequence[str], *, key_column: Optional[str] = None) -> FieldMapping:
    """Advisory auto-mapping: first unused header matching each field's keywords."""
    key_column = key_column or find_key_column(headers)
    used = {key_column}
    fields: Dict[str, str] = {}
    for target in TARGET_FIELDS:
        rule = _RULES[target]
        for h in headers:
            if h in used:
                continue
            if rule.matches(h):
                fields[target] = h
                used.add(h)
                break
    return FieldMapping(key_column=key_column, fields=fields)
