from __future__ import annotations

import logging
import os
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.contextvars import merge_contextvars

_REDACT_REPLACEMENT = "***REDACTED***"
_DEFAULT_REDACT_FIELDS = {"authorization", "access_token", "token", "jwt_secret"}
_LOG_FILENAME = "grimoire.log"

EventProcessor = Callable[[Any, str, dict[str, Any]], dict[str, Any]]


def _env_level() -> int:
    name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def _env_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw.isdigit() or int(raw) == 0:
        return default
    return int(raw)


def _redacted_fields() -> set[str]:
    extra = {item.strip().lower() for item in os.getenv("LOG_REDACT_FIELDS", "").split(",")}
    return _DEFAULT_REDACT_FIELDS | {item for item in extra if item}


def redact(fields: set[str]) -> EventProcessor:
    """Return a processor masking values of the given keys (case-insensitive)."""

    lowered = {field.lower() for field in fields}

    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        for key in event_dict:
            if isinstance(key, str) and key.lower() in lowered:
                event_dict[key] = _REDACT_REPLACEMENT
        return event_dict

    return processor


def _file_destination() -> Path | None:
    explicit = os.getenv("LOG_FILE", "").strip()
    if explicit:
        return None if explicit.lower() == "stdout" else Path(explicit)
    directory = os.getenv("LOG_DIR", "").strip()
    return Path(directory) / _LOG_FILENAME if directory else None


def _handlers(level: int) -> list[logging.Handler]:
    formatter = logging.Formatter("%(message)s")
    stream = logging.StreamHandler()
    handlers: list[logging.Handler] = [stream]

    destination = _file_destination()
    if destination is not None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    destination,
                    maxBytes=_env_positive_int("LOG_FILE_MAX_BYTES", 10_000_000),
                    backupCount=_env_positive_int("LOG_FILE_BACKUP_COUNT", 5),
                    encoding="utf-8",
                )
            )
        except OSError:
            # stdout only when the log directory is not writable
            pass

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def configure_logging() -> None:
    """Configure structlog with JSON output, contextvars, and redaction."""

    level = _env_level()
    logging.basicConfig(level=level, format="%(message)s", handlers=_handlers(level), force=True)

    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact(_redacted_fields()),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


__all__ = ["configure_logging", "redact"]
