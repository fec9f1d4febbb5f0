from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_DATA_ROOT = Path("./data")
DEFAULT_UPLOAD_SUBDIR = "uploads"
DEFAULT_DATABASE_FILE = "sheetstore.db"
DEFAULT_CORS_ORIGINS = ("http://localhost:5173",)
DATABASE_URL_ENV = "DATABASE_URL"
LEGACY_DATABASE_URL_ENV = "SQLITE_URL"
UPLOAD_DIR_ENV = "UPLOAD_DIR"
UPLOAD_MAX_BYTES_ENV = "UPLOAD_MAX_BYTES"
UPLOAD_ALLOWED_TYPES_ENV = "UPLOAD_ALLOWED_TYPES"
CORS_ORIGINS_ENV = "CORS_ORIGINS"
ORIGIN_ENV = "ORIGIN"
API_PREFIX_ENV = "API_PREFIX"


@dataclass(frozen=True)
class UploadConfig:
    storage_root: Path
    max_bytes: int
    allowed_types: tuple[str, ...]


@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int


def get_data_root() -> Path:
    return Path(os.getenv("DATA_ROOT", DEFAULT_DATA_ROOT)).expanduser()


def get_database_url() -> str:
    explicit = os.getenv(DATABASE_URL_ENV) or os.getenv(LEGACY_DATABASE_URL_ENV)
    if explicit:
        return explicit
    return f"sqlite:///{get_data_root() / DEFAULT_DATABASE_FILE}"


def get_upload_root(data_root: Path | None = None) -> Path:
    explicit = os.getenv(UPLOAD_DIR_ENV)
    if explicit:
        return Path(explicit).expanduser()
    root = data_root if data_root is not None else get_data_root()
    return (root / DEFAULT_UPLOAD_SUBDIR).expanduser()


def load_upload_config(data_root: Path | None = None) -> UploadConfig:
    max_bytes_default = 10 * 1024 * 1024
    max_bytes = int(os.getenv(UPLOAD_MAX_BYTES_ENV, max_bytes_default))
    allowed_env = os.getenv(UPLOAD_ALLOWED_TYPES_ENV)
    if allowed_env:
        allowed_types = tuple(
            part.strip().lower().lstrip(".") for part in allowed_env.split(",") if part.strip()
        )
    else:
        allowed_types = ("xlsx", "xlsm", "csv")
    return UploadConfig(
        storage_root=get_upload_root(data_root),
        max_bytes=max_bytes,
        allowed_types=allowed_types,
    )


def get_cors_origins() -> tuple[str, ...]:
    explicit = os.getenv(CORS_ORIGINS_ENV)
    if explicit:
        origins = [part.strip() for part in explicit.split(",") if part.strip()]
    else:
        origins = list(DEFAULT_CORS_ORIGINS)
    extra = os.getenv(ORIGIN_ENV)
    if extra and extra not in origins:
        origins.append(extra)
    return tuple(origins)


def load_server_config() -> ServerConfig:
    return ServerConfig(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", 8000)),
    )


def get_api_prefix() -> str:
    prefix = os.getenv(API_PREFIX_ENV, "").strip().rstrip("/")
    if prefix and not prefix.startswith("/"):
        prefix = "/" + prefix
    return prefix
