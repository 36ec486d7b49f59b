# src/api/models.py - v2
"""API-level models: RunRequest, RunSummary."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel


class RunRequest(BaseModel):
    """Where to read images from and where to write artifacts.

    Relative ``input_dir`` / ``output_dir`` are resolved against ``work_dir``.
    FileRecord paths (and therefore fingerprint keys) are relative to
    ``work_dir`` too.
    """

    input_dir: Path = Path("src")
    output_dir: Path = Path("")
    work_dir: Path | None = None


class RunSummary(BaseModel):
    """Return value of facade.compress_directory()."""

    run_id: str
    input_dir: str
    candidates: int = 0
    compressed: int = 0
    batches: int = 0
    attempts: int = 0
    total_original_bytes: int = 0
    total_compressed_bytes: int = 0
    fingerprint_path: str | None = None
    report_path: str | None = None
    duration_seconds: float = 0.0
