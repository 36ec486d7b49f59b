# src/logging/handlers.py - v2
"""Size-rotated file handler for run logs."""

from __future__ import annotations

import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


def parse_size(size_str: str) -> int:
    """Parse '512KB', '10MB', '1GB' or a bare byte count into bytes."""
    match = re.match(r"^(\d+)\s*(B|KB|MB|GB)?$", size_str.strip(), re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    unit = (match.group(2) or "B").upper()
    return int(match.group(1)) * _SIZE_UNITS[unit]


def create_rotating_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 5,
) -> RotatingFileHandler:
    """Create a UTF-8 rotating handler, making the log directory if needed."""
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
