from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from sheetstore.api.router import create_app
from sheetstore.db.metadata import (
    MetadataRepository,
    build_engine,
    create_session_factory,
    init_database,
    session_scope,
)
from sheetstore.services.dynamic_tables import DynamicTableStore
from sheetstore.services.file_store import FileStore
from sheetstore.services.ingestion import IngestionService
from sheetstore.utils.config import UploadConfig
from tests.fixtures.sheet_sources.factory import SheetDefinition, build_workbook


@pytest.fixture
def temp_data_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data_root = tmp_path / "data"
    data_root.mkdir()
    monkeypatch.setenv("DATA_ROOT", str(data_root))
    return data_root


@pytest.fixture
def database_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    db_path = tmp_path / "sheetstore.db"
    url = f"sqlite:///{db_path}"
    monkeypatch.setenv("DATABASE_URL", url)
    return url


@pytest.fixture
def session_factory(database_url: str) -> Iterator[sessionmaker[Session]]:
    engine = build_engine(database_url)
    init_database(engine)
    factory = create_session_factory(engine)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    with session_scope(session_factory) as session:
        yield session


@pytest.fixture
def metadata_repository(db_session: Session) -> MetadataRepository:
    return MetadataRepository(db_session)


@pytest.fixture
def table_store(db_session: Session) -> DynamicTableStore:
    return DynamicTableStore(db_session)


@pytest.fixture
def upload_config(tmp_path: Path) -> UploadConfig:
    return UploadConfig(
        storage_root=tmp_path / "uploads",
        max_bytes=10 * 1024 * 1024,
        allowed_types=("xlsx", "xlsm", "csv"),
    )


@pytest.fixture
def file_store(upload_config: UploadConfig) -> FileStore:
    return FileStore(upload_config)


@pytest.fixture
def ingestion_service(
    metadata_repository: MetadataRepository,
    file_store: FileStore,
    table_store: DynamicTableStore,
) -> IngestionService:
    return IngestionService(
        metadata_repository=metadata_repository,
        file_store=file_store,
        table_store=table_store,
    )


@pytest.fixture
def client(
    temp_data_root: Path,
    database_url: str,
    upload_config: UploadConfig,
    monkeypatch: pytest.MonkeyPatch,
) -> TestClient:
    for name in ("API_PREFIX", "CORS_ORIGINS", "ORIGIN"):
        monkeypatch.delenv(name, raising=False)
    app = create_app(database_url=database_url, upload_config=upload_config)
    return TestClient(app)


@pytest.fixture
def sheet_fixture_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "sheet_sources"
    directory.mkdir(parents=True, exist_ok=True)
    return directory


@pytest.fixture
def workbook_builder(sheet_fixture_dir: Path):
    def _builder(
        *,
        sheets: Sequence[SheetDefinition] | None = None,
        filename: str = "team.xlsx",
    ) -> Path:
        return build_workbook(sheet_fixture_dir / filename, sheets=sheets)

    return _builder
