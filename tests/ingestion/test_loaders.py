import pandas as pd
import pytest

from leadboard.errors import FileValidationError
from leadboard.ingestion.loaders import read_rows, validate_upload


@pytest.fixture()
def sample_dataframe():
    return pd.DataFrame(
        [
            {"Contact Name": "Ada Lovelace", "Email": "ada@example.com", "Phone": "0044 1111", "Status": "New Lead"},
            {"Contact Name": "", "Email": "", "Phone": "", "Status": ""},
            {"Contact Name": "Grace Hopper", "Email": "", "Phone": "555 3333", "Status": "Contacted"},
        ]
    )


def test_read_rows_from_csv_keeps_text_and_skips_blank_rows(sample_dataframe, tmp_path):
    csv_path = tmp_path / "leads.csv"
    sample_dataframe.to_csv(csv_path, index=False)

    rows = read_rows(csv_path)

    assert len(rows) == 2
    assert rows[0]["Phone"] == "0044 1111"
    assert rows[1]["Contact Name"] == "Grace Hopper"


def test_read_rows_trims_headers(tmp_path):
    csv_path = tmp_path / "leads.csv"
    csv_path.write_text(" Contact Name , Email \nAda,ada@example.com\n\n", encoding="utf-8")

    rows = read_rows(csv_path)

    assert rows == [{"Contact Name": "Ada", "Email": "ada@example.com"}]


def test_read_rows_from_first_excel_sheet(sample_dataframe, tmp_path):
    excel_path = tmp_path / "leads.xlsx"
    with pd.ExcelWriter(excel_path, engine="openpyxl") as writer:
        sample_dataframe.to_excel(writer, index=False, sheet_name="Leads")
        pd.DataFrame([{"Other": "x"}]).to_excel(writer, index=False, sheet_name="Other")

    rows = read_rows(excel_path)

    assert [row["Contact Name"] for row in rows] == ["Ada Lovelace", "Grace Hopper"]


def test_header_only_file_has_no_data(tmp_path):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("Contact Name,Email\n", encoding="utf-8")

    with pytest.raises(FileValidationError, match="No data found in the file"):
        read_rows(csv_path)


def test_completely_empty_file_has_no_data(tmp_path):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("", encoding="utf-8")

    with pytest.raises(FileValidationError, match="No data found in the file"):
        read_rows(csv_path)


def test_corrupt_workbook_is_a_parse_error(tmp_path):
    bogus = tmp_path / "leads.xlsx"
    bogus.write_bytes(b"not a zip archive")

    with pytest.raises(FileValidationError, match="Error parsing file"):
        read_rows(bogus)


def test_validate_upload_rejects_other_types(tmp_path):
    path = tmp_path / "leads.txt"
    path.write_text("hello", encoding="utf-8")

    with pytest.raises(FileValidationError, match=r"Please upload a CSV or Excel file \(\.csv, \.xlsx, \.xls\)"):
        validate_upload(path)


def test_validate_upload_enforces_size_limit(tmp_path):
    path = tmp_path / "big.csv"
    path.write_bytes(b"x" * (2 * 1024 * 1024 + 1))

    with pytest.raises(FileValidationError, match="smaller than 2MB"):
        validate_upload(path, max_bytes=2 * 1024 * 1024)

    assert validate_upload(path) == path


def test_validate_upload_missing_file(tmp_path):
    with pytest.raises(FileValidationError):
        validate_upload(tmp_path / "absent.xlsx")
