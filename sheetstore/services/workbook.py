from __future__ import annotations

import io
import zipfile
from collections.abc import Iterable, Sequence
from pathlib import Path

import pandas as pd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from sheetstore.services.errors import ParseError
from sheetstore.utils.logging import get_logger

LOGGER = get_logger(__name__)

EXCEL_SUFFIXES = frozenset({".xlsx", ".xlsm"})
CSV_SUFFIX = ".csv"
CSV_SHEET_NAME = "Sheet1"

_EXCEL_READ_ERRORS = (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError, TypeError)
_CSV_READ_ERRORS = (pd.errors.ParserError, UnicodeDecodeError, ValueError)

ParsedWorkbook = dict[str, list[dict[str, object]]]


def parse_workbook(content: bytes, filename: str) -> ParsedWorkbook:
    """
    Read every sheet of an uploaded workbook into row mappings.

    Args:
        content: Raw bytes of the upload.
        filename: Original file name; its suffix selects the reader.

    Returns:
        Sheet name -> rows, in the workbook's sheet order. Each row maps header
        to cell value and omits empty cells. Sheets without data rows are left out.

    Raises:
        ParseError: If the file type is unsupported or the content is malformed.
    """
    suffix = Path(filename).suffix.lower()
    if suffix in EXCEL_SUFFIXES:
        parsed = _parse_excel(content)
    elif suffix == CSV_SUFFIX:
        parsed = _parse_csv(content)
    else:
        raise ParseError(f"Unsupported workbook type for {filename}")

    LOGGER.debug("Parsed %s: %s", filename, {name: len(rows) for name, rows in parsed.items()})
    return parsed


def _parse_excel(content: bytes) -> ParsedWorkbook:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except _EXCEL_READ_ERRORS as error:
        raise ParseError(f"Could not open workbook: {error}") from error

    parsed: ParsedWorkbook = {}
    try:
        for worksheet in workbook.worksheets:
            rows = rows_to_records(worksheet.iter_rows(values_only=True))
            if rows:
                parsed[worksheet.title] = rows
    except _EXCEL_READ_ERRORS as error:
        raise ParseError(f"Could not read workbook: {error}") from error
    finally:
        workbook.close()
    return parsed


def _parse_csv(content: bytes) -> ParsedWorkbook:
    try:
        frame = pd.read_csv(
            io.BytesIO(content),
            header=None,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
        )
    except pd.errors.EmptyDataError:
        return {}
    except _CSV_READ_ERRORS as error:
        raise ParseError(f"Could not read CSV file: {error}") from error

    rows = rows_to_records(frame.itertuples(index=False, name=None))
    return {CSV_SHEET_NAME: rows} if rows else {}


def _is_blank(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def build_headers(header_row: Sequence[object]) -> list[str | None]:
    """Name each column from the header row; blank cells yield ``None`` and repeats get a suffix."""
    headers: list[str | None] = []
    used: set[str] = set()
    for cell in header_row:
        if _is_blank(cell):
            headers.append(None)
            continue
        name = str(cell).strip()
        candidate = name
        suffix = 0
        while candidate in used:
            suffix += 1
            candidate = f"{name}_{suffix}"
        used.add(candidate)
        headers.append(candidate)
    return headers


def rows_to_records(rows: Iterable[Sequence[object] | None]) -> list[dict[str, object]]:
    headers: list[str | None] | None = None
    records: list[dict[str, object]] = []
    for values in rows:
        if values is None or all(_is_blank(value) for value in values):
            continue
        if headers is None:
            headers = build_headers(values)
            continue
        record: dict[str, object] = {}
        for header, value in zip(headers, values):
            if header is None or _is_blank(value):
                continue
            record[header] = value
        if record:
            records.append(record)
    return records
