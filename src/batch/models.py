# src/batch/models.py - v2
"""Batch processing models: FileRecord, CompressionResult, ScanPolicy, RunState."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FileRecord(BaseModel):
    """A candidate image discovered during the directory scan."""

    model_config = ConfigDict(frozen=True)

    path: str
    size_bytes: int = Field(ge=0)
    name: str


class CompressionResult(FileRecord):
    """A FileRecord after a successful round trip through the service."""

    compressed_size_bytes: int = Field(ge=0)
    ratio: float

    @property
    def saved_fraction(self) -> float:
        """1 - ratio, the share of bytes removed."""
        return 1 - self.ratio


class ScanPolicy(BaseModel):
    """Which files are safe to send for compression."""

    model_config = ConfigDict(frozen=True)

    max_size_bytes: int = 5 * 1024 * 1024
    allowed_extensions: tuple[str, ...] = (".jpg", ".png", ".webp")

    def extension_allowed(self, suffix: str) -> bool:
        return suffix.lower() in self.allowed_extensions

    def size_allowed(self, size: int) -> bool:
        return size < self.max_size_bytes


class SchedulerState(str, Enum):
    IDLE = "idle"
    SCHEDULING = "scheduling"
    AWAITING_BATCH = "awaiting_batch"
    BACKOFF = "backoff"
    DONE = "done"


class RunState(BaseModel):
    """Mutable progress of one run. Only the BatchScheduler writes to it."""

    candidate_queue: list[FileRecord] = Field(default_factory=list)
    results_collected: list[CompressionResult] = Field(default_factory=list)
    cursor: int = 0
    backoff_seconds: int = 0
    attempts: int = 0
    failures: int = 0
    completed: bool = False
    state: SchedulerState = SchedulerState.IDLE

    @property
    def is_complete(self) -> bool:
        return len(self.results_collected) >= len(self.candidate_queue)


class BatchOutcome(BaseModel):
    """What happened to one attempt at one batch."""

    index: int
    cursor: int
    paths: list[str]
    succeeded: bool
    errors: list[str] = Field(default_factory=list)

