# src/logging/context.py - v2
"""Contextual logging support: attach run_id, batch and file to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per run / per batch by the scheduler, per file by each worker task.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_batch: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "batch", default=None
)
_file: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "file", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    run_id: str | None = None
    batch: int | None = None
    file: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        batch=_batch.get(),
        file=_file.get(),
    )


def set_run_context(run_id: str) -> None:
    """Set run-level context (once per compress_directory call)."""
    _run_id.set(run_id)


def set_batch_context(batch: int | None) -> None:
    """Set the 0-based index of the batch being processed."""
    _batch.set(batch)


def set_file_context(path: str | None) -> None:
    """Set the file a worker task is handling.

    Each asyncio task runs in a copy of the context, so concurrent workers
    do not see each other's file.
    """
    _file.set(path)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _batch.set(None)
    _file.set(None)
