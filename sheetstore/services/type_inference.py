from __future__ import annotations

import enum
import math
import re
from collections.abc import Mapping
from datetime import date, datetime

from sqlalchemy import Date, Float, Integer, String
from sqlalchemy.types import TypeDecorator, TypeEngine

from sheetstore.utils.logging import get_logger

LOGGER = get_logger(__name__)

TEXT_MAX_LENGTH = 255
_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


class LenientDate(TypeDecorator):
    """
    ``DATE`` column that stores non-date values as given.

    Sheet cells in a date column are not always dates. Values that are not
    ``date`` objects are bound unchanged and stored values that do not parse
    as dates are returned as stored.
    """

    impl = Date
    cache_ok = True

    def bind_processor(self, dialect):
        process = self.impl_instance.dialect_impl(dialect).bind_processor(dialect)
        if process is None:
            return None

        def _process(value):
            return process(value) if isinstance(value, date) else value

        return _process

    def result_processor(self, dialect, coltype):
        process = self.impl_instance.dialect_impl(dialect).result_processor(dialect, coltype)
        if process is None:
            return None

        def _process(value):
            try:
                return process(value)
            except (TypeError, ValueError):
                return value

        return _process


class ColumnType(str, enum.Enum):
    INTEGER = "integer"
    FLOAT = "float"
    DATE = "date"
    TEXT = "text"

    def sql_type(self) -> TypeEngine:
        if self is ColumnType.INTEGER:
            return Integer()
        if self is ColumnType.FLOAT:
            return Float()
        if self is ColumnType.DATE:
            return LenientDate()
        return String(TEXT_MAX_LENGTH)


def _as_number(value: object) -> int | float | None:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    # float() accepts digit separators and nan/inf spellings; neither counts as a number here.
    if not text or "_" in text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _is_integral(number: int | float) -> bool:
    return isinstance(number, int) or number.is_integer()


def infer_column_type(value: object) -> ColumnType:
    """Pick a storage type for a single sample value.

    Precedence is integer, float, date (any ``YYYY-MM-DD`` shaped substring),
    then bounded text.
    """
    number = _as_number(value)
    if number is not None:
        return ColumnType.INTEGER if _is_integral(number) else ColumnType.FLOAT
    if value is not None and _DATE_PATTERN.search(str(value)):
        return ColumnType.DATE
    return ColumnType.TEXT


def infer_schema(sample_row: Mapping[str, object]) -> dict[str, ColumnType]:
    return {column: infer_column_type(value) for column, value in sample_row.items()}


def coerce_value(column_type: ColumnType, value: object) -> object:
    """Convert ``value`` into what a ``column_type`` column stores.

    Values that cannot be converted are returned unchanged and left to the
    database to coerce or reject.
    """
    if value is None:
        return None

    if column_type is ColumnType.INTEGER or column_type is ColumnType.FLOAT:
        number = _as_number(value)
        if number is None:
            return value
        if column_type is ColumnType.FLOAT:
            return float(number)
        return int(number) if _is_integral(number) else number

    if column_type is ColumnType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        text = str(value).strip()
        if not _DATE_PATTERN.fullmatch(text):
            return value
        try:
            return date.fromisoformat(text)
        except ValueError:
            return value

    text = value if isinstance(value, str) else str(value)
    if len(text) > TEXT_MAX_LENGTH:
        LOGGER.warning(
            "Text value of %d characters exceeds the %d character column limit",
            len(text),
            TEXT_MAX_LENGTH,
        )
    return text
