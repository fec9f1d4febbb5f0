from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for the project and sheet registry."""


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "project_name": self.project_name,
            "created_at": self.created_at,
            "file_name": self.file_name,
        }


class Sheet(Base):
    __tablename__ = "sheets"

    sheet_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sheet_name: Mapped[str] = mapped_column(String(255), nullable=False)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    def to_dict(self) -> dict[str, object]:
        return {
            "sheet_id": self.sheet_id,
            "sheet_name": self.sheet_name,
            "project_id": self.project_id,
            "created_at": self.created_at,
        }


REGISTRY_TABLES: frozenset[str] = frozenset(Base.metadata.tables)
