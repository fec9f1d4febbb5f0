from __future__ import annotations

from sqlalchemy import String, inspect, text
from sqlalchemy.engine import Engine

from sheetstore.db.schema import Project


def run(engine: Engine) -> None:
    """
    002_project_file_name: Add the nullable ``file_name`` column to ``projects``.

    Databases created before uploads recorded their file name lack the column.
    The migration is idempotent and only alters the table when it is missing.
    """

    inspector = inspect(engine)
    if not inspector.has_table(Project.__tablename__):
        return

    existing = {column["name"] for column in inspector.get_columns(Project.__tablename__)}
    if "file_name" in existing:
        return

    preparer = engine.dialect.identifier_preparer
    column_type = String(255).compile(dialect=engine.dialect)
    statement = (
        f"ALTER TABLE {preparer.quote(Project.__tablename__)} "
        f"ADD COLUMN {preparer.quote('file_name')} {column_type}"
    )
    with engine.begin() as connection:
        connection.execute(text(statement))
