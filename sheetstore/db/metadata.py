from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Select, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from sheetstore.utils.config import get_database_url

from .migrations import run_migrations
from .schema import Base, Project, Sheet


class DuplicateProjectError(Exception):
    """Raised when a project name is already registered."""


def _resolve_database_url(url: str | None = None) -> str:
    resolved = url or get_database_url()
    if resolved.startswith("sqlite:///") and resolved != "sqlite:///:memory:":
        db_path = Path(resolved.replace("sqlite:///", "", 1))
        db_path.parent.mkdir(parents=True, exist_ok=True)
    return resolved


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str | None = None) -> Engine:
    resolved = _resolve_database_url(url)
    is_sqlite = resolved.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(resolved, future=True, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False, future=True)


def init_database(engine: Engine) -> None:
    Base.metadata.create_all(engine)
    run_migrations(engine)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class MetadataRepository:
    """Data access helpers for the project and sheet registry."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # Project helpers -----------------------------------------------------
    def list_projects(self) -> Sequence[Project]:
        stmt: Select[tuple[Project]] = select(Project).order_by(Project.id)
        return self.session.execute(stmt).scalars().all()

    def get_project(self, project_id: int) -> Project | None:
        return self.session.get(Project, project_id)

    def get_project_by_name(self, project_name: str) -> Project | None:
        stmt: Select[tuple[Project]] = select(Project).where(Project.project_name == project_name)
        return self.session.execute(stmt).scalars().first()

    def create_project(self, *, project_name: str) -> Project:
        project = Project(project_name=project_name)
        self.session.add(project)
        try:
            self.session.flush()
        except IntegrityError as error:
            self.session.rollback()
            raise DuplicateProjectError(project_name) from error
        return project

    def update_project_file_name(self, project: Project, *, file_name: str) -> Project:
        project.file_name = file_name
        return project

    # Sheet registry helpers ----------------------------------------------
    def list_sheets(self) -> Sequence[Sheet]:
        stmt: Select[tuple[Sheet]] = select(Sheet).order_by(Sheet.sheet_id)
        return self.session.execute(stmt).scalars().all()

    def list_sheets_for_project(self, project_id: int) -> Sequence[Sheet]:
        stmt: Select[tuple[Sheet]] = (
            select(Sheet).where(Sheet.project_id == project_id).order_by(Sheet.sheet_id)
        )
        return self.session.execute(stmt).scalars().all()

    def get_sheet(self, sheet_id: int) -> Sheet | None:
        return self.session.get(Sheet, sheet_id)

    def find_sheet(self, *, sheet_name: str, project_id: int) -> Sheet | None:
        stmt: Select[tuple[Sheet]] = select(Sheet).where(
            Sheet.sheet_name == sheet_name,
            Sheet.project_id == project_id,
        )
        return self.session.execute(stmt).scalars().first()

    def register_sheet(self, *, sheet_name: str, project_id: int) -> tuple[Sheet, bool]:
        """Return the registry row for ``(sheet_name, project_id)``, creating it when absent."""
        existing = self.find_sheet(sheet_name=sheet_name, project_id=project_id)
        if existing is not None:
            return existing, False
        sheet = Sheet(sheet_name=sheet_name, project_id=project_id)
        self.session.add(sheet)
        self.session.flush()
        return sheet, True
