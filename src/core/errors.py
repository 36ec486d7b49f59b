# src/core/errors.py - v1
"""Error taxonomy for the compression pipeline.

Worker failures (upstream rejection, transport failure, local file I/O)
all fail the current batch and are handed to the backoff controller.
Policy violations are not failures: the scanner reports them as values
and moves on.
"""

from __future__ import annotations

from dataclasses import dataclass


class TinyshrinkError(Exception):
    """Base class for all pipeline errors."""


class CompressionFailed(TinyshrinkError):
    """A single file could not be compressed. Fails the whole batch."""

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.message = message
        super().__init__(f"[{path}] {message}")


class UpstreamRejected(CompressionFailed):
    """The compression service answered with an error payload."""


class NetworkError(CompressionFailed):
    """Transport failure while uploading or downloading."""


class LocalFileError(CompressionFailed):
    """Reading the source image or replacing it on disk failed."""


class RetryExhausted(TinyshrinkError):
    """A batch kept failing past the configured retry ceiling."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Batch failed after {attempts} attempts: {last_error}"
        )


@dataclass(frozen=True)
class PolicyViolation:
    """A file excluded by the scan policy (too large or wrong extension)."""

    path: str
    reason: str
