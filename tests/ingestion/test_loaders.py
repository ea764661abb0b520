import pandas as pd
import pytest
from openpyxl import Workbook

from lead_importer.ingestion.loaders import (
    SpreadsheetReadError,
    UnsupportedFileTypeError,
    read_first_sheet,
    read_numbered_rows,
)


@pytest.fixture()
def sample_dataframe():
    return pd.DataFrame(
        [
            {"Full Name": "Ada Lovelace", "Phone": "555-1111", "Course Fee": 1000, "HOT": "yes"},
            {"Full Name": "Grace Hopper", "Phone": "555-2222", "Course Fee": None, "HOT": ""},
        ]
    )


def test_read_first_sheet_from_excel_path(sample_dataframe, tmp_path):
    excel_path = tmp_path / "clients.xlsx"
    sample_dataframe.to_excel(excel_path, index=False)

    rows = read_first_sheet(excel_path)

    assert len(rows) == 2
    assert rows[0]["Full Name"] == "Ada Lovelace"
    assert rows[0]["Phone"] == "555-1111"
    assert rows[0]["Course Fee"] == 1000
    assert rows[1]["Course Fee"] is None


def test_read_first_sheet_ignores_later_worksheets(sample_dataframe, tmp_path):
    excel_path = tmp_path / "clients.xlsx"
    with pd.ExcelWriter(excel_path, engine="openpyxl") as writer:
        sample_dataframe.to_excel(writer, sheet_name="Leads", index=False)
        pd.DataFrame([{"Phone": "999"}]).to_excel(writer, sheet_name="Archive", index=False)

    rows = read_first_sheet(excel_path)

    assert [row["Phone"] for row in rows] == ["555-1111", "555-2222"]


def test_read_first_sheet_from_uploaded_bytes(sample_dataframe, tmp_path):
    excel_path = tmp_path / "upload.xlsx"
    sample_dataframe.to_excel(excel_path, index=False)
    payload = excel_path.read_bytes()

    sniffed = read_first_sheet(payload)
    named = read_first_sheet(payload, filename="Clients March.xlsx")

    assert sniffed == named
    assert sniffed[1]["Full Name"] == "Grace Hopper"


def test_read_first_sheet_from_csv_bytes_skips_blank_rows():
    payload = b" Phone ,Name\n555-0001,Jane\n,\n555-0002,\n"

    rows = read_first_sheet(payload)

    assert rows == [
        {"Phone": "555-0001", "Name": "Jane"},
        {"Phone": "555-0002", "Name": None},
    ]


def test_csv_keeps_phone_numbers_as_text(tmp_path):
    csv_path = tmp_path / "clients.csv"
    csv_path.write_text("Phone,Name\n0044123,Ada\n", encoding="utf-8")

    rows = read_first_sheet(csv_path)

    assert rows[0]["Phone"] == "0044123"


def test_empty_csv_yields_no_rows():
    assert read_first_sheet(b"", filename="empty.csv") == []


def test_unsupported_file_extension(tmp_path):
    bad_path = tmp_path / "clients.json"
    bad_path.write_text("{}", encoding="utf-8")

    with pytest.raises(UnsupportedFileTypeError):
        read_first_sheet(bad_path)


def test_legacy_excel_is_rejected():
    with pytest.raises(UnsupportedFileTypeError):
        read_first_sheet(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 32)


def test_corrupt_workbook_raises_read_error():
    with pytest.raises(SpreadsheetReadError):
        read_first_sheet(b"PK\x03\x04 not really a zip", filename="broken.xlsx")


def test_missing_file_raises_read_error(tmp_path):
    with pytest.raises(SpreadsheetReadError):
        read_first_sheet(tmp_path / "missing.xlsx")


def test_numbered_rows_count_blank_rows_inside_a_workbook(tmp_path):
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["Phone", "Name"])
    sheet.append(["555-0001", "Jane"])
    sheet.append([])
    sheet.append([None, "No phone"])
    path = tmp_path / "gaps.xlsx"
    workbook.save(path)

    numbered = read_numbered_rows(path)

    assert [number for number, _ in numbered] == [2, 4]
    assert numbered[1][1] == {"Phone": None, "Name": "No phone"}
    assert read_first_sheet(path) == [row for _, row in numbered]


def test_numbered_rows_count_blank_lines_in_csv():
    payload = b"Phone,Name\n555-0001,Jane\n\n,\n555-0002,Bob\n"

    numbered = read_numbered_rows(payload, filename="clients.csv")

    assert [number for number, _ in numbered] == [2, 5]
