from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from sheetstore.api.dependencies import get_file_store, get_ingestion_service, http_errors
from sheetstore.services.file_store import FileStore, media_type_for
from sheetstore.services.ingestion import IngestionService
from sheetstore.utils.audit import record_audit

router = APIRouter(tags=["files"])


@router.post("/upload")
def upload_without_project() -> None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Project ID is required")


@router.post("/upload/{project_id}")
def upload_workbook(
    project_id: str,
    service: Annotated[IngestionService, Depends(get_ingestion_service)],
    file: Annotated[UploadFile | None, File()] = None,
) -> dict[str, object]:
    if file is None or not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    content = file.file.read()
    details = {"project_id": project_id, "file": file.filename, "size_bytes": len(content)}
    try:
        with http_errors("processing file"):
            result = service.ingest(project_id, filename=file.filename, content=content)
    except HTTPException:
        record_audit("workbook.upload", "failure", details=details)
        raise
    record_audit("workbook.upload", "success", details={**details, "sheets": len(result.sheets)})
    return {
        "message": "File uploaded and data inserted successfully",
        "file_name": result.file_name,
        "sheets": [sheet.to_dict() for sheet in result.sheets],
    }


@router.get("/excel/{file_name}")
def download_workbook(
    file_name: str,
    file_store: Annotated[FileStore, Depends(get_file_store)],
) -> FileResponse:
    with http_errors("fetching file"):
        path = file_store.resolve(file_name)
    return FileResponse(
        path,
        media_type=media_type_for(path.name),
        filename=path.name,
        headers={"Access-Control-Expose-Headers": "Content-Disposition"},
    )
