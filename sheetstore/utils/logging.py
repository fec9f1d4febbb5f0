from __future__ import annotations

import json
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

DEFAULT_LOG_LEVEL = os.getenv("SHEETSTORE_LOG_LEVEL", "INFO")
DEFAULT_LOG_DIR = Path(os.getenv("SHEETSTORE_LOG_DIR", "data/logs"))
LOG_FILE_NAME = "sheetstore.log"

# Libraries that log per request or per statement at INFO and below.
_NOISY_LOGGERS = ("multipart", "python_multipart", "sqlalchemy.engine")


def configure_logging(log_level: str | None = None, log_path: Path | None = None) -> None:
    """Send readable lines to stdout and JSON lines to ``log_path``."""
    level = getattr(logging, (log_level or DEFAULT_LOG_LEVEL).upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter())

    destination = log_path or DEFAULT_LOG_DIR / LOG_FILE_NAME
    destination.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(destination, encoding="utf-8")
    file_handler.setFormatter(JsonFormatter())

    logging.basicConfig(level=level, handlers=[console_handler, file_handler])
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


def _split_event(record: logging.LogRecord) -> tuple[str | None, dict[str, Any], str]:
    """Return ``(event, fields, message)``; plain messages have no event and no fields."""
    message = record.getMessage()
    try:
        payload = json.loads(message)
    except json.JSONDecodeError:
        return None, {}, message
    if not isinstance(payload, dict):
        return None, {}, message
    event = payload.pop("event", None)
    return event, payload, message


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "logger": record.name,
            "severity": record.levelname,
        }
        event, fields, message = _split_event(record)
        if event is None and not fields:
            data["message"] = message
        else:
            if event is not None:
                data["event"] = event
            data.update(fields)
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class ConsoleFormatter(logging.Formatter):
    """One line per record; structured events print as ``event key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = time.strftime("%H:%M:%S", time.localtime(record.created))
        event, fields, message = _split_event(record)
        text = event or message
        if fields:
            text += " " + " ".join(f"{key}={fields[key]}" for key in sorted(fields))
        output = f"{timestamp} | {record.levelname:<8} | {record.name} | {text}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


def _format_event(event: str, fields: dict[str, Any]) -> str:
    return json.dumps({"event": event, **fields}, default=str)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    logger.log(level, _format_event(event, fields))


def log_warning_event(logger: logging.Logger, event: str, **fields: Any) -> None:
    log_event(logger, event, level=logging.WARNING, **fields)


@contextmanager
def log_timing(logger: logging.Logger, event: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """
    Log ``<event>.start`` and then ``<event>.complete`` or ``<event>.error`` with ``elapsed_ms``.

    Yields a dict; keys added to it inside the block are reported on the
    closing event, so callers can attach outcome counts:

        with log_timing(LOGGER, "ingestion.workbook", file_name=name) as outcome:
            outcome["sheets"] = len(sheets)
    """
    outcome: dict[str, Any] = {}
    start = time.perf_counter()
    log_event(logger, event + ".start", **fields)
    try:
        yield outcome
    except Exception:
        elapsed = round((time.perf_counter() - start) * 1000.0, 2)
        logger.exception(_format_event(event + ".error", {**fields, **outcome, "elapsed_ms": elapsed}))
        raise
    elapsed = round((time.perf_counter() - start) * 1000.0, 2)
    log_event(logger, event + ".complete", **{**fields, **outcome, "elapsed_ms": elapsed})
