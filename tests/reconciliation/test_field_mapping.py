from __future__ import annotations

import pytest

from src.hr_operations.hr_operations.core.exceptions import NoKeyColumnError, ValidationError
from src.hr_operations.hr_operations.reconciliation.mapping import find_key_column, infer_field_mapping

HEADERS = [
    "Employee Email",
    "Full Name",
    "Dept",
    "Job Title",
    "Date of Joining",
    "Active",
    "Company",
    "Reporting Manager ID",
    "Role",
    "Role ID",
    "Team",
]


def test_key_column_is_first_header_mentioning_email():
    assert find_key_column(["Name", "Work EMAIL", "Personal email"]) == "Work EMAIL"


def test_missing_key_column():
    with pytest.raises(NoKeyColumnError):
        find_key_column(["Name", "Phone"])


def test_infers_every_field_from_keywords():
    mapping = infer_field_mapping(HEADERS)
    assert mapping.key_column == "Employee Email"
    assert mapping.fields == {
        "name": "Full Name",
        "role": "Role",
        "department": "Dept",
        "position": "Job Title",
        "hire_date": "Date of Joining",
        "is_active": "Active",
        "company_id": "Company",
        "reporting_manager_id": "Reporting Manager ID",
        "role_id": "Role ID",
        "team_id": "Team",
    }


def test_each_header_maps_to_at_most_one_field():
    mapping = infer_field_mapping(HEADERS)
    headers = list(mapping.fields.values())
    assert len(headers) == len(set(headers))
    assert mapping.key_column not in headers


def test_name_rule_skips_manager_and_team_names():
    mapping = infer_field_mapping(["Email", "Manager Name", "Team Name", "Name"])
    assert mapping.header_for("name") == "Name"


def test_unrecognised_headers_stay_unmapped():
    mapping = infer_field_mapping(["Email", "Favourite colour"])
    assert mapping.fields == {}


def test_overrides_remap_and_unmap():
    mapping = infer_field_mapping(HEADERS).with_overrides({"department": None, "position": "Dept"}, HEADERS)
    assert mapping.header_for("department") is None
    assert mapping.header_for("position") == "Dept"


def test_override_can_change_key_column():
    headers = ["Email", "Alt Email", "Name"]
    mapping = infer_field_mapping(headers).with_overrides({"email": "Alt Email"}, headers)
    assert mapping.key_column == "Alt Email"
    assert mapping.as_dict()["email"] == "Alt Email"


def test_bad_overrides_are_rejected():
    mapping = infer_field_mapping(HEADERS)
    with pytest.raises(ValidationError):
        mapping.with_overrides({"salary": "Dept"}, HEADERS)
    with pytest.raises(ValidationError):
        mapping.with_overrides({"department": "Cost Centre"}, HEADERS)
    with pytest.raises(ValidationError):
        mapping.with_overrides({"email": None}, HEADERS)
