import pandas as pd
import pytest
from openpyxl import Workbook

from lead_importer import Actor, ProspectHandlingPolicy, Role, import_clients, import_rows
from lead_importer.config import ImportSettings
from lead_importer.store import InMemoryClientStore


@pytest.fixture()
def upload_bytes(tmp_path):
    frame = pd.DataFrame(
        [
            {"Phone": "555-0001", "Full Name": "Jane", "HOT": "yes", "Course Fee": "1000", "Course Fee Paid": "400"},
            {"Phone": "", "Full Name": "NoPhone", "HOT": "", "Course Fee": "", "Course Fee Paid": ""},
        ]
    )
    path = tmp_path / "upload.xlsx"
    frame.to_excel(path, index=False)
    return path.read_bytes()


def test_import_clients_end_to_end(upload_bytes) -> None:
    store = InMemoryClientStore()

    summary = import_clients(upload_bytes, Actor(actor_id="emp-1"), store, filename="upload.xlsx")

    assert summary.success_count == 1
    assert summary.as_dict() == {
        "message": "1 clients processed successfully",
        "errors": [{"row": 3, "message": "Missing phone"}],
        "failures": [],
    }
    jane = store.find_by_phone("5550001")
    assert jane.name == "Jane"
    assert jane.status == "HOT"
    assert jane.course_fee == 1000
    assert jane.course_fee_paid == 400
    assert jane.total_fee is None
    assert jane.assigned_employee_id == "emp-1"


def test_running_the_same_batch_twice_updates_instead_of_duplicating(upload_bytes) -> None:
    store = InMemoryClientStore()
    actor = Actor(actor_id="emp-1")

    first = import_clients(upload_bytes, actor, store)
    created_id = store.find_by_phone("5550001").id
    second = import_clients(upload_bytes, actor, store)

    assert len(store) == 1
    assert store.find_by_phone("5550001").id == created_id
    assert [outcome.action for outcome in first.report.outcomes] == ["created"]
    assert [outcome.action for outcome in second.report.outcomes] == ["updated"]


def test_duplicate_phones_in_one_batch_keep_the_last_row() -> None:
    rows = [
        {"Phone": "111", "Name": "First", "Notes": "old"},
        {"Phone": "222", "Name": "Other"},
        {"Phone": "(111)", "Name": "Second", "Notes": "new"},
    ]
    store = InMemoryClientStore()

    summary = import_rows(rows, Actor(actor_id="emp-1"), store)

    assert summary.duplicates == 1
    assert summary.success_count == 2
    assert [outcome.phone for outcome in summary.report.outcomes] == ["111", "222"]
    assert summary.report.outcomes[0].row_number == 4
    client = store.find_by_phone("111")
    assert client.name == "Second"
    assert client.notes == "new"


def test_admin_upload_assigns_clients_to_chosen_employee() -> None:
    store = InMemoryClientStore()
    admin = Actor(actor_id="admin-1", role=Role.ADMIN, assigned_employee_id="emp-7")

    import_rows([{"Phone": "333"}], admin, store)

    client = store.find_by_phone("333")
    assert client.created_by == "admin-1"
    assert client.assigned_employee_id == "emp-7"


@pytest.mark.parametrize(
    "policy, expected",
    [
        (ProspectHandlingPolicy.NULL_ON_PROSPECT, [None, None, "COLD"]),
        (ProspectHandlingPolicy.DEFAULT_TO_PROSPECT, ["PROSPECT", "PROSPECT", "COLD"]),
    ],
)
def test_prospect_policy_controls_persisted_status(policy, expected) -> None:
    rows = [
        {"Phone": "1", "PROSPECT": "yes"},
        {"Phone": "2"},
        {"Phone": "3", "Status": "cold"},
    ]
    store = InMemoryClientStore()

    import_rows(rows, Actor(actor_id="emp-1"), store, settings=ImportSettings(prospect_policy=policy))

    assert [store.find_by_phone(phone).status for phone in ("1", "2", "3")] == expected


def test_soft_errors_do_not_block_persistence() -> None:
    store = InMemoryClientStore()

    summary = import_rows([{"Phone": "444", "Call Response": "maybe later"}], Actor(actor_id="emp-1"), store)

    assert summary.success_count == 1
    assert len(summary.errors) == 1
    assert store.find_by_phone("444").call_response is None


def test_error_rows_match_the_sheet_when_it_has_blank_rows(tmp_path) -> None:
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Phone", "Name", "Call Response"])
    sheet.append(["555-0001", "Jane", None])
    sheet.append([])
    sheet.append([])
    sheet.append([None, "No phone", None])
    sheet.append(["555-0002", "Bob", "shouting"])
    path = tmp_path / "gaps.xlsx"
    workbook.save(path)

    summary = import_clients(path, Actor(actor_id="emp-1"), InMemoryClientStore())

    assert [(error.row, error.message) for error in summary.errors] == [
        (5, "Missing phone"),
        (6, 'Invalid call response: "shouting", defaulted to null.'),
    ]
    assert [outcome.row_number for outcome in summary.report.outcomes] == [2, 6]


def test_explicit_row_numbers_are_used_for_errors() -> None:
    summary = import_rows(
        [{"Phone": "1"}, {"Name": "No phone"}],
        Actor(actor_id="emp-1"),
        InMemoryClientStore(),
        row_numbers=[2, 7],
    )

    assert [error.row for error in summary.errors] == [7]
