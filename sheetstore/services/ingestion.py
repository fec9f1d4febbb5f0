from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sheetstore.db.metadata import DuplicateProjectError, MetadataRepository
from sheetstore.db.schema import Project, Sheet
from sheetstore.services.dynamic_tables import DynamicTableStore, normalize_table_name, validate_sheet
from sheetstore.services.errors import (
    ConflictError,
    EmptyRowError,
    IngestionError,
    NotFoundError,
    ValidationError,
)
from sheetstore.services.file_store import FileStore
from sheetstore.services.workbook import parse_workbook
from sheetstore.utils.logging import get_logger, log_event, log_timing, log_warning_event

LOGGER = get_logger(__name__)


@dataclass
class SheetIngestionResult:
    sheet_name: str
    table_name: str
    sheet_id: int
    inserted_rows: int = 0
    duplicate_rows: int = 0
    skipped_rows: int = 0
    registered: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "sheet_id": self.sheet_id,
            "sheet_name": self.sheet_name,
            "table_name": self.table_name,
            "inserted_rows": self.inserted_rows,
            "duplicate_rows": self.duplicate_rows,
            "skipped_rows": self.skipped_rows,
        }


@dataclass
class IngestionResult:
    project_id: int
    file_name: str
    sheets: list[SheetIngestionResult] = field(default_factory=list)

    @property
    def inserted_rows(self) -> int:
        return sum(sheet.inserted_rows for sheet in self.sheets)


def parse_identifier(value: object, label: str) -> int:
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"{label} is required")
    try:
        return int(text)
    except ValueError as error:
        raise ValidationError(f"{label} must be an integer") from error


class IngestionService:
    """Drive workbook uploads into dynamic tables and keep the project/sheet registry."""

    def __init__(
        self,
        *,
        metadata_repository: MetadataRepository,
        file_store: FileStore,
        table_store: DynamicTableStore | None = None,
    ) -> None:
        self.metadata_repository = metadata_repository
        self.file_store = file_store
        self.table_store = table_store or DynamicTableStore(metadata_repository.session)

    @property
    def session(self) -> Session:
        return self.metadata_repository.session

    # Projects ------------------------------------------------------------
    def create_project(self, project_name: str | None) -> Project:
        name = (project_name or "").strip()
        if not name:
            raise ValidationError("Project name is required")
        if self.metadata_repository.get_project_by_name(name) is not None:
            raise ConflictError(f"Project '{name}' already exists")
        try:
            project = self.metadata_repository.create_project(project_name=name)
        except DuplicateProjectError as error:
            raise ConflictError(f"Project '{name}' already exists") from error
        self.session.commit()
        log_event(LOGGER, "project.created", project_id=project.id, project_name=name)
        return project

    def list_projects(self) -> Sequence[Project]:
        return self.metadata_repository.list_projects()

    # Sheets --------------------------------------------------------------
    def list_sheets(self) -> Sequence[Sheet]:
        return self.metadata_repository.list_sheets()

    def list_sheets_for_project(self, project_id: object) -> Sequence[Sheet]:
        resolved = parse_identifier(project_id, "Project ID")
        return self.metadata_repository.list_sheets_for_project(resolved)

    def read_sheet_rows(self, sheet_id: object) -> list[dict[str, object]]:
        """Return the stored rows for a registered sheet, without the identity column."""
        resolved = parse_identifier(sheet_id, "Sheet ID")
        sheet = self.metadata_repository.get_sheet(resolved)
        if sheet is None:
            raise NotFoundError("Sheet not found")
        table_name = normalize_table_name(sheet.sheet_name)
        if not self.table_store.table_exists(table_name):
            raise NotFoundError("Sheet not found")
        return self.table_store.fetch_rows(table_name)

    # Ingestion -----------------------------------------------------------
    def ingest(self, project_id: object, *, filename: str | None, content: bytes) -> IngestionResult:
        """
        Store an uploaded workbook and load every non-empty sheet into its table.

        Sheets are processed in workbook order. Each row and each registry entry
        is committed as soon as it is written, so a storage failure leaves the
        work done so far in place and aborts everything after it.

        Raises:
            ValidationError: Missing/unknown project, or an unusable file or sheet layout.
            ParseError: The workbook content is malformed.
            IngestionError: Storage failed partway through.
        """
        project = self._require_project(project_id)
        stored = self.file_store.save(filename, content)
        workbook = parse_workbook(content, stored.file_name)
        for sheet_name, rows in workbook.items():
            validate_sheet(sheet_name, rows[0])

        result = IngestionResult(project_id=project.id, file_name=stored.file_name)
        with log_timing(
            LOGGER, "ingestion.workbook", project_id=project.id, file_name=stored.file_name
        ) as outcome:
            try:
                for sheet_name, rows in workbook.items():
                    result.sheets.append(self._ingest_sheet(project.id, sheet_name, rows))
                    outcome["sheets"] = len(result.sheets)
                    outcome["inserted_rows"] = result.inserted_rows
                self.metadata_repository.update_project_file_name(project, file_name=stored.file_name)
                self.session.commit()
            except SQLAlchemyError as error:
                self.session.rollback()
                raise IngestionError("Failed to ingest workbook") from error
        return result

    def _require_project(self, project_id: object) -> Project:
        resolved = parse_identifier(project_id, "Project ID")
        project = self.metadata_repository.get_project(resolved)
        if project is None:
            raise ValidationError(f"Project {resolved} does not exist")
        return project

    def _ingest_sheet(
        self,
        project_id: int,
        sheet_name: str,
        rows: Sequence[dict[str, object]],
    ) -> SheetIngestionResult:
        table = self.table_store.ensure_table(sheet_name, rows[0])
        self.session.commit()

        inserted = duplicates = skipped = 0
        for position, row in enumerate(rows, start=1):
            try:
                created = self.table_store.upsert_row(table.name, row)
            except EmptyRowError:
                skipped += 1
                log_warning_event(LOGGER, "ingestion.row_skipped", table=table.name, row=position)
                continue
            self.session.commit()
            if created:
                inserted += 1
            else:
                duplicates += 1

        sheet, registered = self.metadata_repository.register_sheet(
            sheet_name=sheet_name, project_id=project_id
        )
        self.session.commit()

        log_event(
            LOGGER,
            "ingestion.sheet",
            project_id=project_id,
            sheet_name=sheet_name,
            table=table.name,
            inserted=inserted,
            duplicates=duplicates,
            skipped=skipped,
            registered=registered,
        )
        return SheetIngestionResult(
            sheet_name=sheet_name,
            table_name=table.name,
            sheet_id=sheet.sheet_id,
            inserted_rows=inserted,
            duplicate_rows=duplicates,
            skipped_rows=skipped,
            registered=registered,
        )
