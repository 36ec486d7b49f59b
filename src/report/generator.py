# src/report/generator.py - v1
"""Report generator: final fingerprint store plus the appended Markdown report."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel

from tinyshrink.batch.models import CompressionResult
from tinyshrink.cache.fingerprint import compute_key, merge_fingerprints
from tinyshrink.cache.json_store import JsonFingerprintStore
from tinyshrink.report.markdown import render_report

logger = logging.getLogger(__name__)

DEFAULT_REPORT_NAME = "图片压缩比.md"


class ReportArtifacts(BaseModel):
    """Where generate() wrote its two outputs."""

    fingerprint_path: str
    report_path: str
    fingerprints: dict[str, str]


def post_compression_fingerprints(
    results: Sequence[CompressionResult],
) -> dict[str, str]:
    """Fingerprints keyed on the compressed size, so the next scan skips these files."""
    return {r.path: compute_key(r.path, r.compressed_size_bytes) for r in results}


class ReportGenerator:
    """Write the run's artifacts into ``output_dir``.

    Args:
        output_dir: Directory receiving both files.
        fingerprint_store: Store to persist into (default: ``output_dir/image.json``).
        report_name: Markdown file name.
        clock: Source of the report timestamp.
    """

    def __init__(
        self,
        output_dir: Path,
        fingerprint_store: JsonFingerprintStore | None = None,
        report_name: str = DEFAULT_REPORT_NAME,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._output_dir = Path(output_dir)
        self._store = fingerprint_store or JsonFingerprintStore(self._output_dir)
        self._report_path = self._output_dir / report_name
        self._clock = clock

    @property
    def report_path(self) -> Path:
        return self._report_path

    def generate(
        self,
        results: Sequence[CompressionResult],
        fingerprints: Mapping[str, str],
    ) -> ReportArtifacts:
        """Persist merged fingerprints and append this run's report section."""
        merged = merge_fingerprints(fingerprints, post_compression_fingerprints(results))
        self._store.persist(merged)

        self._output_dir.mkdir(parents=True, exist_ok=True)
        section = render_report(results, self._clock())
        with self._report_path.open("a", encoding="utf-8") as f:
            f.write(section)
        logger.info("Compression report appended to %s", self._report_path)

        return ReportArtifacts(
            fingerprint_path=str(self._store.path),
            report_path=str(self._report_path),
            fingerprints=merged,
        )
