"""
Dynamic per-sheet tables.

One table exists per normalized sheet name and is shared by every project that
uploads a sheet with that name. Columns are fixed when the table is first
created from the sheet's first data row; later uploads never alter them.

Identifiers always pass through SQLAlchemy's quoting and the checks in
``validate_sheet``; nothing here interpolates user-supplied names into SQL.

Deduplication is check-then-insert without locking: two concurrent uploads of
the same row may both observe it as absent and both insert it.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from sqlalchemy import Column, Integer, MetaData, Table, and_, func, inspect, insert, literal, select
from sqlalchemy.exc import NoSuchTableError
from sqlalchemy.orm import Session
from sqlalchemy.sql import sqltypes

from sheetstore.db.schema import REGISTRY_TABLES
from sheetstore.services.errors import EmptyRowError, NotFoundError, ValidationError
from sheetstore.services.type_inference import ColumnType, LenientDate, coerce_value, infer_schema
from sheetstore.utils.logging import get_logger, log_event

LOGGER = get_logger(__name__)

IDENTITY_COLUMN = "id"
MAX_IDENTIFIER_LENGTH = 64
_WHITESPACE = re.compile(r"\s+")


def normalize_table_name(sheet_name: str) -> str:
    return _WHITESPACE.sub("_", sheet_name).lower()


def validate_sheet(sheet_name: str, sample_row: Mapping[str, object]) -> str:
    """Check that a sheet can be stored and return its table name."""
    table_name = normalize_table_name(sheet_name)
    if not table_name.strip("_"):
        raise ValidationError("Sheet name must not be blank.")
    if len(table_name) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"Sheet name '{sheet_name}' is longer than {MAX_IDENTIFIER_LENGTH} characters."
        )
    if table_name in REGISTRY_TABLES or table_name.startswith("sqlite_"):
        raise ValidationError(f"Sheet name '{sheet_name}' is reserved.")

    if not sample_row:
        raise ValidationError(f"Sheet '{sheet_name}' has no columns.")
    seen: set[str] = set()
    for column in sample_row:
        key = column.strip().lower()
        if not key:
            raise ValidationError(f"Sheet '{sheet_name}' has a blank column name.")
        if len(column) > MAX_IDENTIFIER_LENGTH:
            raise ValidationError(
                f"Column '{column}' in sheet '{sheet_name}' is longer than "
                f"{MAX_IDENTIFIER_LENGTH} characters."
            )
        if key == IDENTITY_COLUMN:
            raise ValidationError(
                f"Column name '{column}' in sheet '{sheet_name}' is reserved."
            )
        if key in seen:
            raise ValidationError(
                f"Column '{column}' appears more than once in sheet '{sheet_name}'."
            )
        seen.add(key)
    return table_name


def _column_type_of(column: Column) -> ColumnType:
    column_type = column.type
    if isinstance(column_type, LenientDate):
        return ColumnType.DATE
    if isinstance(column_type, sqltypes.Integer):
        return ColumnType.INTEGER
    if isinstance(column_type, (sqltypes.Float, sqltypes.Numeric)):
        return ColumnType.FLOAT
    if isinstance(column_type, sqltypes.Date) and not isinstance(column_type, sqltypes.DateTime):
        return ColumnType.DATE
    return ColumnType.TEXT


def _reflect_lenient_dates(_inspector, _table, column_info) -> None:
    # Reflected DATE columns must keep accepting cells that are not dates.
    if isinstance(column_info["type"], sqltypes.Date):
        column_info["type"] = LenientDate()


class DynamicTableStore:
    """Create, fill and read the per-sheet data tables through a session."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self.metadata = MetaData()

    def table_exists(self, table_name: str) -> bool:
        return inspect(self.session.connection()).has_table(table_name)

    def get_table(self, table_name: str) -> Table:
        table = self.metadata.tables.get(table_name)
        if table is not None:
            return table
        try:
            return Table(
                table_name,
                self.metadata,
                autoload_with=self.session.connection(),
                listeners=[("column_reflect", _reflect_lenient_dates)],
            )
        except NoSuchTableError as error:
            raise NotFoundError(f"Table '{table_name}' does not exist.") from error

    def ensure_table(self, sheet_name: str, sample_row: Mapping[str, object]) -> Table:
        """Create the table for ``sheet_name`` when missing; existing tables are left untouched."""
        table_name = validate_sheet(sheet_name, sample_row)
        if self.table_exists(table_name):
            return self.get_table(table_name)

        schema = infer_schema(sample_row)
        table = Table(
            table_name,
            self.metadata,
            Column(IDENTITY_COLUMN, Integer, primary_key=True, autoincrement=True),
            *(Column(name, column_type.sql_type()) for name, column_type in schema.items()),
        )
        table.create(self.session.connection(), checkfirst=True)
        log_event(
            LOGGER,
            "dynamic_table.created",
            table=table_name,
            columns={name: column_type.value for name, column_type in schema.items()},
        )
        return table

    def upsert_row(self, table_name: str, row: Mapping[str, object]) -> bool:
        """Insert ``row`` unless an identical row is already stored.

        Keys that are not columns of the table are dropped. Returns ``True``
        when the row was inserted and ``False`` when it was a duplicate.
        """
        table = self.get_table(table_name)
        values: dict[str, object] = {}
        for column_name, value in row.items():
            if column_name == IDENTITY_COLUMN or column_name not in table.c:
                continue
            column = table.c[column_name]
            values[column_name] = coerce_value(_column_type_of(column), value)
        if not values:
            raise EmptyRowError(f"Row has no values for any column of '{table_name}'.")

        predicate = and_(*(table.c[name] == value for name, value in values.items()))
        match = self.session.execute(
            select(literal(1)).select_from(table).where(predicate).limit(1)
        ).first()
        if match is not None:
            return False

        self.session.execute(insert(table).values(values))
        return True

    def count_rows(self, table_name: str) -> int:
        table = self.get_table(table_name)
        return self.session.execute(select(func.count()).select_from(table)).scalar_one()

    def fetch_rows(self, table_name: str) -> list[dict[str, object]]:
        """Return stored rows in insertion order without the identity column."""
        table = self.get_table(table_name)
        result = self.session.execute(select(table).order_by(table.c[IDENTITY_COLUMN]))
        return [
            {key: value for key, value in row.items() if key != IDENTITY_COLUMN}
            for row in result.mappings()
        ]
