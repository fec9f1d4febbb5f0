from __future__ import annotations

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from sheetstore.services.errors import ParseError
from sheetstore.services.workbook import CSV_SHEET_NAME, build_headers, parse_workbook, rows_to_records
from tests.fixtures.sheet_sources.factory import (
    DEFAULT_SHEETS,
    EMPTY_SHEET,
    SheetDefinition,
    csv_bytes,
    workbook_bytes,
)


def test_parse_workbook_preserves_sheet_and_row_order() -> None:
    parsed = parse_workbook(workbook_bytes(), "team.xlsx")

    assert list(parsed) == ["Team Members", "Summary"]
    assert parsed["Team Members"][0] == {"name": "Alice", "age": "30", "joined": "2023-01-05"}
    assert [row["name"] for row in parsed["Team Members"]] == ["Alice", "Bob", "Chandra"]
    assert parsed["Summary"][1] == {"region": "south", "revenue": 98_500, "margin": 0.18}


def test_parse_workbook_skips_sheets_without_data_rows() -> None:
    parsed = parse_workbook(workbook_bytes([*DEFAULT_SHEETS, EMPTY_SHEET]), "team.xlsx")

    assert EMPTY_SHEET.name not in parsed


def test_parse_workbook_omits_empty_cells_and_blank_rows() -> None:
    sheet = SheetDefinition(
        name="Sparse",
        headers=("name", None, "city"),
        rows=(
            ("Alice", "ignored", None),
            (None, None, None),
            ("", "  ", "Paris"),
        ),
    )

    parsed = parse_workbook(workbook_bytes([sheet]), "sparse.xlsx")

    assert parsed["Sparse"] == [{"name": "Alice"}, {"city": "Paris"}]


def test_parse_workbook_returns_native_cell_values() -> None:
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = "Dates"
    worksheet.append(["when", "count"])
    worksheet.append([datetime(2023, 1, 5), 3])
    parsed = parse_workbook(_save(workbook), "dates.xlsx")

    assert parsed["Dates"] == [{"when": datetime(2023, 1, 5), "count": 3}]


def test_parse_csv_reads_single_sheet_as_strings() -> None:
    parsed = parse_workbook(csv_bytes(), "budget.csv")

    assert list(parsed) == [CSV_SHEET_NAME]
    assert parsed[CSV_SHEET_NAME][0] == {"region": "north", "budget": "150000", "owner": "Finance"}
    assert len(parsed[CSV_SHEET_NAME]) == 3


def test_parse_csv_header_only_is_empty() -> None:
    assert parse_workbook(b"region,budget\n", "empty.csv") == {}
    assert parse_workbook(b"", "blank.csv") == {}


@pytest.mark.parametrize(
    ("content", "filename"),
    [
        (b"not a zip archive", "broken.xlsx"),
        (b"PK\x03\x04garbage", "broken.xlsm"),
        (b"anything", "notes.txt"),
        (b"anything", "no_extension"),
    ],
)
def test_malformed_or_unsupported_input_raises_parse_error(content: bytes, filename: str) -> None:
    with pytest.raises(ParseError):
        parse_workbook(content, filename)


def test_build_headers_suffixes_repeats_and_drops_blanks() -> None:
    assert build_headers(["name", "name", None, " ", "name_1", "name"]) == [
        "name",
        "name_1",
        None,
        None,
        "name_1_1",
        "name_2",
    ]


def test_rows_to_records_uses_first_non_blank_row_as_header() -> None:
    rows = [(None, None), ("a", "b"), (1, 2)]

    assert rows_to_records(rows) == [{"a": 1, "b": 2}]


def _save(workbook: Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()
