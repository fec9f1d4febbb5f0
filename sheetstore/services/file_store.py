from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PureWindowsPath

from sheetstore.services.errors import NotFoundError, UploadTooLargeError, ValidationError
from sheetstore.utils.config import UploadConfig, load_upload_config
from sheetstore.utils.logging import get_logger

LOGGER = get_logger(__name__)

XLSX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
_MIME_TYPES = {
    ".xlsx": XLSX_MIME_TYPE,
    ".xlsm": "application/vnd.ms-excel.sheet.macroEnabled.12",
    ".csv": "text/csv",
}


@dataclass(frozen=True)
class StoredFile:
    file_name: str
    path: Path
    size_bytes: int


def media_type_for(file_name: str) -> str:
    return _MIME_TYPES.get(Path(file_name).suffix.lower(), XLSX_MIME_TYPE)


class FileStore:
    """Keep uploaded workbooks on disk, addressed by their original file name.

    Saving a file whose name is already stored overwrites it.
    """

    def __init__(self, config: UploadConfig | None = None) -> None:
        self.config = config or load_upload_config()
        self.storage_root = self.config.storage_root
        self.storage_root.mkdir(parents=True, exist_ok=True)

    # ---- validation / naming ----
    @staticmethod
    def _base_name(filename: str | None) -> str:
        # Client file names may carry either separator; only the last component is kept.
        name = PureWindowsPath(filename or "").name.strip()
        if name in {"", ".", ".."}:
            raise ValidationError("A file name is required.")
        return name

    def _allowed_extension(self, name: str) -> bool:
        lower = name.lower()
        return any(lower.endswith(f".{ext}") for ext in self.config.allowed_types)

    def validate(self, filename: str | None, size: int) -> str:
        if size > self.config.max_bytes:
            raise UploadTooLargeError(f"File too large: {size} > {self.config.max_bytes}")
        name = self._base_name(filename)
        if not self._allowed_extension(name):
            raise ValidationError(f"Unsupported file type for {name}")
        return name

    # ---- public API ----
    def save(self, filename: str | None, content: bytes) -> StoredFile:
        name = self.validate(filename, len(content))
        target = self.storage_root / name
        target.write_bytes(content)
        LOGGER.info("Stored upload %s (%d bytes)", name, len(content))
        return StoredFile(file_name=name, path=target, size_bytes=len(content))

    def resolve(self, file_name: str) -> Path:
        try:
            name = self._base_name(file_name)
        except ValidationError as error:
            raise NotFoundError("File not found") from error
        path = self.storage_root / name
        if name != file_name or not path.is_file():
            raise NotFoundError("File not found")
        return path
