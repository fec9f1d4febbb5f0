from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from sheetstore.api.dependencies import get_ingestion_service, http_errors
from sheetstore.services.ingestion import IngestionService

router = APIRouter(tags=["sheets"])

EMPTY_SHEET_MESSAGE = "No data found in this sheet."


@router.get("/sheets")
def list_sheets(
    service: Annotated[IngestionService, Depends(get_ingestion_service)],
) -> list[dict[str, object]]:
    with http_errors("fetching sheets"):
        return [sheet.to_dict() for sheet in service.list_sheets()]


@router.get("/sheets/{project_id}")
def list_project_sheets(
    project_id: str,
    service: Annotated[IngestionService, Depends(get_ingestion_service)],
) -> list[dict[str, object]]:
    with http_errors("fetching project sheets"):
        return [sheet.to_dict() for sheet in service.list_sheets_for_project(project_id)]


@router.get("/sheet/{sheet_id}")
def read_sheet(
    sheet_id: str,
    service: Annotated[IngestionService, Depends(get_ingestion_service)],
) -> list[dict[str, object]] | dict[str, str]:
    with http_errors("fetching sheet data"):
        rows = service.read_sheet_rows(sheet_id)
    if not rows:
        return {"message": EMPTY_SHEET_MESSAGE}
    return rows
