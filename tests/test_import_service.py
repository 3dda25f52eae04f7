"""
Unit tests for spreadsheet parsing, column mapping and row coercion.
"""
import io
from datetime import date, datetime

import pytest
from openpyxl import Workbook

from watchtracker.services.import_service import (
    ImportFileError,
    ParsedSheet,
    apply_mapping_overrides,
    auto_map_column,
    auto_map_columns,
    normalize_watch_set,
    parse_date,
    parse_numeric,
    parse_upload,
    process_rows,
)


@pytest.mark.parametrize("header, field, confidence", [
    ("Brand", "brand", 0.95),
    ("Watch Brand", "brand", 0.8),
    ("Ref #", "reference_number", 0.95),
    ("Price Sold", "price_sold", 0.95),
    ("Sale Price (USD)", "price_sold", 0.8),
    ("Liquidation Price", "liquidation_price", 0.95),
    ("Accessories Cost", "accessories_cost", 0.95),
    ("Platform Sold", "platform_sold", 0.95),
    ("Purchase Date", "in_date", 0.95),
    ("Paid", "purchase_price", 0.95),
    ("Warranty Card", "ignore", 0),
    ("", "ignore", 0),
])
def test_auto_map_column(header, field, confidence):
    mapping = auto_map_column(header)

    assert mapping.csvColumn == header
    assert mapping.watchField == field
    assert mapping.confidence == confidence


def test_apply_mapping_overrides():
    mappings = auto_map_columns(["Brand", "Misc"])

    result = apply_mapping_overrides(mappings, {"Misc": "notes"})

    assert result[1].watchField == "notes"
    assert result[1].confidence == 1.0


def test_apply_mapping_overrides_rejects_unknown_names():
    with pytest.raises(ImportFileError):
        apply_mapping_overrides(auto_map_columns(["Brand"]), {"Nope": "brand"})

    with pytest.raises(ImportFileError):
        apply_mapping_overrides(auto_map_columns(["Brand"]), {"Brand": "colour"})


@pytest.mark.parametrize("raw, expected", [
    ("2024-03-15", date(2024, 3, 15)),
    ("2024-03-15T10:30:00", date(2024, 3, 15)),
    ("03/15/2024", date(2024, 3, 15)),
    ("15/03/2024", date(2024, 3, 15)),
    ("15.03.2024", date(2024, 3, 15)),
    ("Mar 15, 2024", date(2024, 3, 15)),
    ("15 March 2024", date(2024, 3, 15)),
    (datetime(2024, 3, 15, 9, 0), date(2024, 3, 15)),
    ("1899-12-31", None),
    ("2024-02-30", None),
    ("yesterday", None),
    ("", None),
    (None, None),
])
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("$9,500.00", 9500.0),
    ("€ 1 250", 1250.0),
    ("(300)", 300.0),
    ("-25", -25.0),
    (42, 42.0),
    (12.5, 12.5),
    ("abc", None),
    ("1.2.3", None),
    (True, None),
    (float("inf"), None),
    ("1" + "0" * 400, None),
])
def test_parse_numeric(raw, expected):
    assert parse_numeric(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("Full Set", "Full Set"),
    ("box and papers", "Full Set"),
    ("Head Only", "Watch Only"),
    ("watch & box", "Watch & Box"),
    ("mint", None),
    ("  ", None),
])
def test_normalize_watch_set(raw, expected):
    assert normalize_watch_set(raw) == expected


def test_parse_csv_upload():
    content = "\ufeffBrand;Model;Ref\nRolex;GMT;126710BLRO\n\n".encode("utf-8")

    sheet = parse_upload("stock.CSV", content)

    assert sheet.headers == ["Brand", "Model", "Ref"]
    assert sheet.rows == [["Rolex", "GMT", "126710BLRO"]]


def test_parse_xlsx_upload():
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.append(["Brand", "Model", "Reference", "In Date", "Purchase Price"])
    worksheet.append(["Rolex", "Datejust", "126300", datetime(2024, 4, 2), 8100])
    buffer = io.BytesIO()
    workbook.save(buffer)

    sheet = parse_upload("stock.xlsx", buffer.getvalue())

    assert sheet.headers == ["Brand", "Model", "Reference", "In Date", "Purchase Price"]
    assert sheet.rows[0][0] == "Rolex"
    assert parse_date(sheet.rows[0][3]) == date(2024, 4, 2)


@pytest.mark.parametrize("name, content, message", [
    ("stock.xls", b"data", "Legacy .xls files are not supported"),
    ("stock.pdf", b"data", "Invalid file type"),
    ("stock.csv", b"", "File is empty"),
    ("stock.csv", b"Brand,Model\n", "File contains no data rows"),
])
def test_parse_upload_rejects(name, content, message):
    with pytest.raises(ImportFileError, match=message):
        parse_upload(name, content)


def test_parse_upload_rejects_too_many_rows():
    content = "Brand,Model,Ref\n" + "Rolex,GMT,1\n" * 1001

    with pytest.raises(ImportFileError, match="too many rows"):
        parse_upload("big.csv", content.encode("utf-8"))


def test_process_rows_coerces_and_flags():
    sheet = ParsedSheet(
        file_name="stock.csv",
        headers=["Brand", "Model", "Reference", "Purchase Price", "Notes", "Set"],
        rows=[
            ["Rolex", "GMT", "126710BLRO", "12,000", "<b>clean</b>", "complete"],
            ["Tudor", "Pelagos", "25600TN", "cheap", "", "mystery"],
            ["Omega", "", "210.30", "", "", ""],
        ],
    )
    mappings = auto_map_columns(sheet.headers)

    result = process_rows(sheet, mappings, existing_refs={"126710blro": 7})

    assert [row.row for row in result.valid_rows] == [2, 3]
    first = result.valid_rows[0]
    assert first.values["purchase_price"] == 12000.0
    assert first.values["notes"] == "bclean/b"
    assert first.values["watch_set"] == "Full Set"
    assert first.duplicate_of == 7

    second = result.valid_rows[1]
    assert "purchase_price" not in second.values
    assert "watch_set" not in second.values

    warnings = [issue for issue in result.errors if issue.severity == "warning"]
    assert {issue.field for issue in warnings} == {"reference_number", "purchase_price", "watch_set"}

    errors = [issue for issue in result.errors if issue.severity == "error"]
    assert all(issue.row == 4 for issue in errors)
    assert result.summary(3) == {
        "totalRows": 3,
        "validRows": 2,
        "errorCount": 2,
        "warningCount": 3,
        "duplicateCount": 1,
    }


def test_negative_numbers_are_dropped_with_warning():
    sheet = ParsedSheet(
        file_name="stock.csv",
        headers=["Brand", "Model", "Ref", "Fees"],
        rows=[["Rolex", "GMT", "1", "-10"]],
    )

    result = process_rows(sheet, auto_map_columns(sheet.headers), existing_refs={})

    assert "fees" not in result.valid_rows[0].values
    assert result.errors[0].message == "fees must be a valid positive number"
