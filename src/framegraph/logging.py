"""Logging helpers for framegraph.

Modules log through :func:`get_logger`, which accepts structured fields as a
``data=`` keyword::

    logger.debug("found chain", data={"from": "a", "to": "b", "length": 2})

The fields end up in the ``fields`` attribute of the log record. The library
never installs handlers by itself; applications call :func:`setup_logging`.
"""

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

PACKAGE_LOGGER = "framegraph"


def _format_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value!r}" for key, value in fields.items())


class ConsoleFormatter(logging.Formatter):
    """Human readable lines, structured fields appended as ``key=value``."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s", datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "fields", None)
        if fields:
            line = f"{line} [{_format_fields(fields)}]"
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the structured fields under ``fields``."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if fields:
            entry["fields"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=repr)


class FieldsAdapter(logging.LoggerAdapter):
    """Logger adapter moving the ``data=`` keyword into the record's ``fields``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        data = kwargs.pop("data", None)
        if data:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "fields": dict(data)}
        return msg, kwargs


def get_logger(name: str) -> FieldsAdapter:
    """Get the logger of a module (``name`` is usually ``__name__``)."""
    return FieldsAdapter(logging.getLogger(name), {})


def setup_logging(level: int | str = logging.INFO, log_path: str | Path | None = None) -> logging.Logger:
    """Send the package logs to stderr and, optionally, to a JSON lines file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Logging level, as a number or a name such as ``"DEBUG"``.
        log_path: Optional path of a JSON lines log file. Parent directories
            are created.

    Returns:
        The package logger.

    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {level}")

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ConsoleFormatter())
    logger.addHandler(console)

    if log_path is not None:
        log_path = Path(log_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)
    return logger


__all__ = [
    "ConsoleFormatter",
    "FieldsAdapter",
    "JSONFormatter",
    "get_logger",
    "setup_logging",
]
