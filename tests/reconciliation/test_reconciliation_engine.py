from __future__ import annotations

import csv
import io

import pytest

from src.hr_operations.hr_operations.core.enums import ImportMode, Role
from src.hr_operations.hr_operations.core.exceptions import (
    AuthorizationError,
    NoKeyColumnError,
    StorageError,
    ValidationError,
)
from src.hr_operations.hr_operations.reconciliation.engine import ReconciliationEngine
from src.hr_operations.hr_operations.reconciliation.errors import classify_storage_error
from src.hr_operations.hr_operations.reconciliation.model import CancelToken

UPLOAD = (
    b"Email,Name,Department,Hire Date,Active\n"
    b"USER4@example.com ,Eve W,Sales,45292,yes\n"
    b",Nobody,Ops,,\n"
    b"user5@example.com,,,,\n"
    b"ghost@example.com,Ghost,Ops,,\n"
    b"user2@example.com,Ada,Ops,not-a-date,0\n"
)


@pytest.fixture
def engine(employees_repo):
    return ReconciliationEngine(employees_repo, display_limit=2)


def test_every_row_gets_an_outcome(engine, actors, employees_repo):
    result = engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv")

    assert result.total == 5
    assert result.completed == result.success + result.failed == 5
    assert (result.success, result.failed) == (2, 3)
    assert result.error_categories == {"MissingEmail": 1, "NoDataToUpdate": 1, "EmailNotFound": 1}
    assert [o.row_number for o in result.outcomes] == [2, 3, 4, 5, 6]

    eve = employees_repo.get_by_id(4)
    assert (eve.name, eve.department, eve.hire_date, eve.is_active) == ("Eve W", "Sales", "2024-01-01", True)


def test_unparseable_date_is_dropped_with_warning(engine, actors, employees_repo):
    result = engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv")
    ada_row = result.outcomes[-1]

    assert ada_row.ok
    assert "hire_date" not in ada_row.payload
    assert ada_row.payload["is_active"] is False
    assert any("not-a-date" in w for w in ada_row.warnings)
    assert employees_repo.get_by_id(2).hire_date is None


def test_failed_rows_keep_raw_values(engine, actors):
    result = engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv")
    assert result.failed_outcomes[0].raw["Name"] == "Nobody"


def test_updates_are_scoped_to_the_actor_company(engine, actors):
    content = b"Email,Name\nuser6@example.com,Hijack\n"
    result = engine.reconcile_file(actors["admin"], content, "staff.csv")
    assert result.error_categories == {"EmailNotFound": 1}


def test_storage_errors_are_classified_per_row(engine, actors, employees_repo):
    employees_repo.errors["user4@example.com"] = StorageError(
        "1452",
        "Cannot add or update a child row: a foreign key constraint fails "
        "(`hr`.`employees`, CONSTRAINT `fk_team` FOREIGN KEY (`team_id`) REFERENCES `teams` (`team_id`))",
    )
    employees_repo.errors["user5@example.com"] = StorageError(
        "1062", "Duplicate entry 'x' for key 'employees.uq_employees_email'"
    )
    content = b"Email,Team,Name\nuser4@example.com,99,Eve\nuser5@example.com,1,Evan\nuser2@example.com,1,Ada\n"
    result = engine.reconcile_file(actors["admin"], content, "teams.csv")

    first, second, third = result.outcomes
    assert (first.category.value, first.column) == ("ForeignKeyViolation", "team_id")
    assert second.category.value == "DuplicateValue"
    assert third.ok


@pytest.mark.parametrize(
    "code,message,expected",
    [
        ("1292", "Incorrect date value: '2024-13-01' for column 'hire_date' at row 1", "InvalidDateFormat"),
        ("1366", "Incorrect integer value: 'abc' for column 'team_id' at row 1", "InvalidIdFormat"),
        ("22P02", 'invalid input syntax for type uuid: "abc"', "InvalidIdFormat"),
        ("23503", 'insert or update on table "employees" violates foreign key constraint', "ForeignKeyViolation"),
        ("2013", "Lost connection to MySQL server during query", "DatabaseError"),
        (None, "duplicate key value violates unique constraint", "DuplicateValue"),
    ],
)
def test_classify_storage_error(code, message, expected):
    category, _ = classify_storage_error(StorageError(code, message), ["hire_date", "team_id"])
    assert category.value == expected


def test_field_is_extracted_from_column_message():
    _, field = classify_storage_error(
        StorageError("1366", "Incorrect integer value: 'abc' for column 'team_id' at row 1"), ["team_id"]
    )
    assert field == "team_id"


def test_progress_is_reported_after_each_row(engine, actors):
    seen = []
    engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv", on_progress=seen.append)
    assert [s.completed for s in seen] == [1, 2, 3, 4, 5]
    assert seen[-1].percent == 100
    assert seen[-1].success + seen[-1].failed == 5


def test_cancel_stops_between_rows(engine, actors, employees_repo):
    token = CancelToken()

    def on_progress(snapshot):
        if snapshot.completed == 2:
            token.cancel()

    result = engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv", on_progress=on_progress, cancel_token=token)

    assert result.cancelled is True
    assert result.completed == 2
    assert result.skipped == 3
    assert [email for email, _ in employees_repo.updates] == ["user4@example.com"]


def test_mapping_override_unmaps_a_field(engine, actors, employees_repo):
    engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv", mapping={"department": None})
    assert employees_repo.get_by_id(4).department is None


def test_prepare_exposes_headers_and_inferred_mapping(engine):
    session = engine.prepare(UPLOAD, "staff.csv")
    assert session.total == 5
    assert session.mapping.as_dict() == {
        "email": "Email",
        "name": "Name",
        "department": "Department",
        "hire_date": "Hire Date",
        "is_active": "Active",
    }


def test_file_without_email_column_is_refused(engine, actors):
    with pytest.raises(NoKeyColumnError):
        engine.reconcile_file(actors["admin"], b"Name\nEve\n", "staff.csv")


def test_only_admins_reconcile(engine, actors):
    with pytest.raises(AuthorizationError):
        engine.reconcile_file(actors["manager"], UPLOAD, "staff.csv")


def test_display_is_capped_but_outcomes_are_complete(engine, actors):
    result = engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv")
    assert len(result.display_outcomes(engine.display_limit)) == 2
    assert len(result.outcomes) == 5


def test_error_report_lists_each_failed_row(engine, actors):
    result = engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv")
    rows = list(csv.DictReader(io.StringIO(result.error_report_csv())))

    assert [r["Row Number"] for r in rows] == ["3", "4", "5"]
    assert [r["Error"] for r in rows] == ["MissingEmail", "NoDataToUpdate", "EmailNotFound"]
    assert rows[2]["Email"] == "ghost@example.com"


def test_failed_row_serialises_the_offending_column(engine, actors, employees_repo):
    employees_repo.errors["user4@example.com"] = StorageError(
        "1366", "Incorrect integer value: 'abc' for column 'team_id' at row 1"
    )
    result = engine.reconcile_file(actors["admin"], b"Email,Team\nuser4@example.com,abc\n", "teams.csv")
    row = result.outcomes[0].as_dict()
    assert (row["category"], row["column"]) == ("InvalidIdFormat", "team_id")
    assert "(column: team_id)" in result.error_report_csv()


@pytest.mark.parametrize(
    "cell,category",
    [("super_admin", "NotPermitted"), ("Admin", "NotPermitted"), ("chief", "InvalidRole")],
)
def test_admin_cannot_grant_roles_at_or_above_their_own(engine, actors, employees_repo, cell, category):
    content = f"Email,Role\nuser5@example.com,{cell}\n".encode()
    result = engine.reconcile_file(actors["admin"], content, "roles.csv")

    assert result.error_categories == {category: 1}
    assert result.outcomes[0].column == "role"
    assert employees_repo.get_by_id(5).role == Role.EMPLOYEE
    assert employees_repo.updates == []


def test_roles_below_the_editor_are_normalised_and_applied(engine, actors, employees_repo):
    content = b"Email,Role\nuser5@example.com,Reporting Manager\n"
    result = engine.reconcile_file(actors["admin"], content, "roles.csv")

    assert result.success == 1
    assert employees_repo.get_by_id(5).role == Role.REPORTING_MANAGER


def test_super_admin_may_promote_to_admin(engine, actors, employees_repo):
    engine.reconcile_file(actors["super_admin"], b"Email,Role\nuser5@example.com,admin\n", "roles.csv")
    assert employees_repo.get_by_id(5).role == Role.ADMIN


@pytest.mark.parametrize("cell,category", [("2", "NotPermitted"), ("abc", "InvalidIdFormat")])
def test_admin_cannot_move_employees_to_another_company(engine, actors, employees_repo, cell, category):
    content = f"Email,Company\nuser5@example.com,{cell}\n".encode()
    result = engine.reconcile_file(actors["admin"], content, "move.csv")

    assert result.error_categories == {category: 1}
    assert employees_repo.get_by_id(5).company_id == 1


def test_own_company_id_is_accepted(engine, actors, employees_repo):
    result = engine.reconcile_file(actors["admin"], b"Email,Company\nuser5@example.com,1\n", "move.csv")
    assert result.success == 1
    assert employees_repo.updates == [("user5@example.com", {"company_id": 1})]


def test_super_admin_may_move_employees_between_companies(engine, actors, employees_repo):
    result = engine.reconcile_file(actors["super_admin"], b"Email,Company\nuser5@example.com,2\n", "move.csv")
    assert result.success == 1
    assert employees_repo.get_by_id(5).company_id == 2


NEW_HIRES = (
    b"Email,Name,Role,Department,Position\n"
    b"new1@example.com,Nina New,employee,Ops,Analyst\n"
    b"new2@example.com,Noah New,,Ops,\n"
    b"user4@example.com,Eve Again,employee,Sales,\n"
    b"boss@example.com,Bea Boss,super_admin,Board,\n"
    b"new3@example.com,Nora New,Reporting Manager,Ops,Lead\n"
)


def test_import_creates_employees_in_the_actor_company(engine, actors, employees_repo):
    result = engine.reconcile_file(actors["admin"], NEW_HIRES, "hires.csv", mode=ImportMode.CREATE)

    assert (result.total, result.success, result.failed) == (5, 2, 3)
    assert result.error_categories == {"MissingFields": 1, "DuplicateValue": 1, "NotPermitted": 1}

    nina = employees_repo.find_by_email("new1@example.com")
    assert (nina.name, nina.role, nina.department, nina.position, nina.company_id) == (
        "Nina New",
        Role.EMPLOYEE,
        "Ops",
        "Analyst",
        1,
    )
    assert employees_repo.find_by_email("new3@example.com").role == Role.REPORTING_MANAGER
    assert employees_repo.find_by_email("boss@example.com") is None


def test_import_reports_missing_cells_by_field(engine, actors):
    result = engine.reconcile_file(actors["admin"], NEW_HIRES, "hires.csv", mode="create")
    missing = result.outcomes[1]
    assert missing.category.value == "MissingFields"
    assert missing.column == "role"


def test_import_maps_duplicate_key_errors(engine, actors, employees_repo):
    employees_repo.errors["new1@example.com"] = StorageError(
        "1062", "Duplicate entry 'new1@example.com' for key 'employees.uq_employees_email'"
    )
    result = engine.reconcile_file(actors["admin"], NEW_HIRES, "hires.csv", mode=ImportMode.CREATE)
    assert result.outcomes[0].category.value == "DuplicateValue"
    assert result.outcomes[-1].ok


def test_import_refuses_files_without_required_columns(engine, actors, employees_repo):
    with pytest.raises(ValidationError):
        engine.reconcile_file(
            actors["admin"], b"Email,Name\nnew@example.com,Nia\n", "hires.csv", mode=ImportMode.CREATE
        )
    assert employees_repo.created == []


def test_unknown_mode_is_rejected(engine, actors):
    with pytest.raises(ValidationError):
        engine.reconcile_file(actors["admin"], UPLOAD, "staff.csv", mode="merge")
