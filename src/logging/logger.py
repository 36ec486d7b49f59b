# src/logging/logger.py - v2
"""Logger setup with JSON and text formatters."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from tinyshrink.logging.context import get_context


class JsonFormatter(logging.Formatter):
    """Structured JSON log lines, one object per record."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context_dict = ctx.as_dict()
        if context_dict:
            log_entry["context"] = context_dict

        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable console lines."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:7s}]",
        ]
        if ctx.batch is not None:
            parts.append(f"[batch {ctx.batch + 1}]")
        if ctx.file:
            parts.append(f"({ctx.file})")
        parts.append(record.getMessage())
        line = " ".join(parts)
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "text": TextFormatter,
}


def get_logger(name: str) -> logging.Logger:
    """Get a named logger under the package root logger."""
    return logging.getLogger(f"tinyshrink.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 5,
) -> None:
    """Configure the root ``tinyshrink`` logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        log_format: Output format ("json" or "text").
        log_file: Path to log file (None = stdout only).
        rotation: Max file size before rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
    """
    package_logger = logging.getLogger("tinyshrink")
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = _FORMATTERS.get(log_format, TextFormatter)()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        from tinyshrink.logging.handlers import create_rotating_handler

        handlers.append(
            create_rotating_handler(log_file, rotation=rotation, retention=retention)
        )

    # Re-init must not stack handlers
    package_logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
