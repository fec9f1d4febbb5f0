from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Body, Depends, status
from pydantic import BaseModel

from sheetstore.api.dependencies import get_ingestion_service, http_errors
from sheetstore.services.ingestion import IngestionService
from sheetstore.utils.audit import record_audit

router = APIRouter(tags=["projects"])


class CreateProjectRequest(BaseModel):
    project_name: str | None = None


@router.post("/projects", status_code=status.HTTP_200_OK)
def create_project(
    service: Annotated[IngestionService, Depends(get_ingestion_service)],
    payload: Annotated[CreateProjectRequest | None, Body()] = None,
) -> dict[str, object]:
    project_name = payload.project_name if payload is not None else None
    with http_errors("creating project"):
        project = service.create_project(project_name)
    record_audit(
        "project.create",
        "success",
        details={"project_id": project.id, "project_name": project.project_name},
    )
    return {"message": "Project created successfully", "project": project.to_dict()}


@router.get("/projects")
def list_projects(
    service: Annotated[IngestionService, Depends(get_ingestion_service)],
) -> list[dict[str, object]]:
    with http_errors("fetching projects"):
        return [project.to_dict() for project in service.list_projects()]
