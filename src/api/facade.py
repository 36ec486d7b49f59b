# src/api/facade.py - v2
"""Public API facade: one call compresses a directory tree incrementally.

Usage:
    from tinyshrink.api.facade import compress_directory
    summary = await compress_directory(settings, RunRequest(input_dir=Path("src")))
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path

import httpx

from tinyshrink.api.models import RunRequest, RunSummary
from tinyshrink.batch.backoff import BackoffController
from tinyshrink.batch.models import CompressionResult, ScanPolicy
from tinyshrink.batch.scanner import contains_files, scan
from tinyshrink.batch.scheduler import BatchScheduler
from tinyshrink.cache.json_store import JsonFingerprintStore
from tinyshrink.compression.client import TinifyClient
from tinyshrink.compression.worker import CompressionWorker
from tinyshrink.config.settings import Settings
from tinyshrink.logging.context import set_run_context
from tinyshrink.report.generator import ReportArtifacts, ReportGenerator

logger = logging.getLogger(__name__)


async def compress_directory(
    settings: Settings,
    request: RunRequest | None = None,
    http_client: httpx.AsyncClient | None = None,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    clock: Callable[[], datetime] = datetime.now,
) -> RunSummary:
    """Scan, compress in batches, then write the fingerprint store and report.

    Args:
        settings: Run configuration (keys, policy, batch size, backoff).
        request: Input / output / working directories.
        http_client: Pre-built httpx client (tests pass a MockTransport).
        sleep: Backoff sleep function.
        clock: Report timestamp source.

    Returns:
        RunSummary. Nothing is written when there is nothing to compress.

    Raises:
        ConfigurationError: No API keys configured while there is work to do.
        RetryExhausted: A batch kept failing past ``settings.max_retries``.
    """
    request = request or RunRequest()
    work_dir = Path(request.work_dir) if request.work_dir else Path.cwd()
    input_dir = work_dir / request.input_dir
    output_dir = work_dir / request.output_dir

    run_id = uuid.uuid4().hex[:8]
    set_run_context(run_id)
    t0 = time.perf_counter()
    summary = RunSummary(run_id=run_id, input_dir=str(input_dir))

    if not contains_files(input_dir):
        logger.error("No files found under %s, choose another input directory", input_dir)
        return summary

    store = JsonFingerprintStore(output_dir, settings.fingerprint_filename)
    fingerprints = store.load()

    policy = ScanPolicy(
        max_size_bytes=settings.max_size_bytes,
        allowed_extensions=tuple(settings.file_extension_list),
    )
    candidates = scan(input_dir, fingerprints, policy, base_dir=work_dir)
    if not candidates:
        logger.info("No new images to compress")
        return summary.model_copy(
            update={"duration_seconds": round(time.perf_counter() - t0, 2)}
        )

    logger.info("%d images queued for compression", len(candidates))

    generator = ReportGenerator(
        output_dir,
        fingerprint_store=store,
        report_name=settings.report_filename,
        clock=clock,
    )
    artifacts: list[ReportArtifacts] = []

    def _on_complete(results: list[CompressionResult]) -> None:
        artifacts.append(generator.generate(results, fingerprints))

    backoff = BackoffController(
        initial=settings.backoff_initial_s,
        step=settings.backoff_step_s,
        cap=settings.backoff_cap_s,
        max_retries=settings.max_retries,
        sleep=sleep,
    )

    async with TinifyClient.from_settings(settings, http_client=http_client) as client:
        scheduler = BatchScheduler(
            worker=CompressionWorker(client, work_dir=work_dir),
            backoff=backoff,
            batch_size=settings.batch_size,
            on_complete=_on_complete,
        )
        state = await scheduler.run(candidates)

    results = state.results_collected
    duration = round(time.perf_counter() - t0, 2)
    logger.info(
        "Run %s complete: %d files compressed in %d batch attempts (%.1fs)",
        run_id, len(results), state.attempts, duration,
    )

    return summary.model_copy(
        update={
            "candidates": len(candidates),
            "compressed": len(results),
            "batches": math.ceil(len(candidates) / settings.batch_size),
            "attempts": state.attempts,
            "total_original_bytes": sum(r.size_bytes for r in results),
            "total_compressed_bytes": sum(r.compressed_size_bytes for r in results),
            "fingerprint_path": artifacts[0].fingerprint_path if artifacts else None,
            "report_path": artifacts[0].report_path if artifacts else None,
            "duration_seconds": duration,
        }
    )
