from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from sheetstore.db.metadata import MetadataRepository, session_scope
from sheetstore.services.errors import (
    ConflictError,
    NotFoundError,
    UploadTooLargeError,
    ValidationError,
)
from sheetstore.services.file_store import FileStore
from sheetstore.services.ingestion import IngestionService
from sheetstore.utils.logging import get_logger

LOGGER = get_logger(__name__)

INTERNAL_ERROR_DETAIL = "Internal Server Error"


def get_repository(request: Request) -> Iterator[MetadataRepository]:
    with session_scope(request.app.state.session_factory) as session:
        yield MetadataRepository(session)


def get_file_store(request: Request) -> FileStore:
    return request.app.state.file_store


def get_ingestion_service(
    repo: Annotated[MetadataRepository, Depends(get_repository)],
    file_store: Annotated[FileStore, Depends(get_file_store)],
) -> IngestionService:
    return IngestionService(metadata_repository=repo, file_store=file_store)


@contextmanager
def http_errors(action: str) -> Iterator[None]:
    """Translate service errors raised inside the block into HTTP responses."""
    try:
        yield
    except HTTPException:
        raise
    except UploadTooLargeError as error:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(error)) from error
    except ValidationError as error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error)) from error
    except NotFoundError as error:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error)) from error
    except ConflictError as error:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error)) from error
    except Exception as error:
        LOGGER.exception("Error %s", action)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=INTERNAL_ERROR_DETAIL
        ) from error
