from __future__ import annotations

import importlib

from sqlalchemy.engine import Engine


def run_migrations(engine: Engine) -> None:
    """Apply idempotent registry migrations in sequence."""
    project_file_name = importlib.import_module(".002_project_file_name", package=__name__)
    project_file_name.run(engine)
