from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sheetstore.api.routes.files import router as files_router
from sheetstore.api.routes.projects import router as projects_router
from sheetstore.api.routes.sheets import router as sheets_router
from sheetstore.db.metadata import build_engine, create_session_factory, init_database
from sheetstore.services.file_store import FileStore
from sheetstore.utils.config import UploadConfig, get_api_prefix, get_cors_origins, load_upload_config
from sheetstore.utils.logging import get_logger, log_event

LOGGER = get_logger(__name__)


def create_app(
    *,
    database_url: str | None = None,
    upload_config: UploadConfig | None = None,
) -> FastAPI:
    """Create a FastAPI instance exposing project, sheet and upload endpoints."""
    engine = build_engine(database_url)
    init_database(engine)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            engine.dispose()

    app = FastAPI(
        title="Sheetstore API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.file_store = FileStore(upload_config or load_upload_config())

    origins = get_cors_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    prefix = get_api_prefix()
    app.include_router(projects_router, prefix=prefix)
    app.include_router(sheets_router, prefix=prefix)
    app.include_router(files_router, prefix=prefix)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    log_event(
        LOGGER,
        "app.created",
        database=engine.url.render_as_string(hide_password=True),
        upload_root=app.state.file_store.storage_root,
        cors_origins=list(origins),
        api_prefix=prefix,
    )
    return app
