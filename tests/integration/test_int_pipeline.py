# tests/integration/test_int_pipeline.py - v1
"""End-to-end runs of compress_directory against the in-process shrink service.

Covers the full scan -> batches -> store -> report flow on a real temp
directory, incremental re-runs, retry after a transport failure and the
retry ceiling.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from tinyshrink.api.facade import compress_directory
from tinyshrink.api.models import RunRequest
from tinyshrink.cache.fingerprint import compute_key
from tinyshrink.core.errors import RetryExhausted
from tinyshrink.report.markdown import REPORT_TITLE

REPORT_NAME = "图片压缩比.md"


def _clock() -> datetime:
    return datetime(2026, 5, 4, 12, 0, 0)


async def _run(settings, work_dir, http_client, sleep, **request):
    return await compress_directory(
        settings,
        RunRequest(work_dir=work_dir, **request),
        http_client=http_client,
        sleep=sleep,
        clock=_clock,
    )


class TestFullRun:
    @pytest.mark.asyncio
    async def test_compresses_and_writes_artifacts(
        self, image_tree, settings, http_client, fake_tinify, sleep,
    ):
        summary = await _run(settings, image_tree, http_client, sleep)

        assert summary.candidates == 3
        assert summary.compressed == 3
        assert summary.batches == 1
        assert summary.attempts == 1
        assert summary.total_original_bytes == 600
        assert summary.total_compressed_bytes == 300
        assert len(fake_tinify.uploads) == 3
        assert sleep.calls == []

        src = image_tree / "src"
        assert (src / "a.png").read_bytes() == b"A" * 50
        assert (src / "b.jpg").read_bytes() == b"B" * 100
        assert (src / "icons" / "c.webp").read_bytes() == b"C" * 150
        assert (src / "notes.txt").read_bytes() == b"N" * 10

        store = json.loads((image_tree / "image.json").read_text(encoding="utf-8"))
        assert store["fingerprintMap"] == {
            "src/a.png": compute_key("src/a.png", 50),
            "src/b.jpg": compute_key("src/b.jpg", 100),
            "src/icons/c.webp": compute_key("src/icons/c.webp", 150),
        }

        report = (image_tree / REPORT_NAME).read_text(encoding="utf-8")
        assert "## 图片压缩信息 2026-05-04 12:00:00" in report
        assert "| a.png | 100B | 50B | 50% | src/a.png |" in report
        assert "| c.webp | 300B | 150B | 50% | src/icons/c.webp |" in report
        assert "| 600B | 300B | 150% |" in report
        assert summary.report_path == str(image_tree / REPORT_NAME)

    @pytest.mark.asyncio
    async def test_output_dir(self, image_tree, settings, http_client, sleep):
        summary = await _run(
            settings, image_tree, http_client, sleep, output_dir=Path("out/meta"),
        )
        assert (image_tree / "out" / "meta" / "image.json").is_file()
        assert (image_tree / "out" / "meta" / REPORT_NAME).is_file()
        assert summary.fingerprint_path == str(image_tree / "out" / "meta" / "image.json")

    @pytest.mark.asyncio
    async def test_batches_of_configured_size(
        self, image_tree, settings, http_client, sleep,
    ):
        settings = settings.model_copy(update={"batch_size": 2})
        summary = await _run(settings, image_tree, http_client, sleep)
        assert summary.batches == 2
        assert summary.attempts == 2

    @pytest.mark.asyncio
    async def test_policy_excluded_file_untouched(
        self, image_tree, settings, http_client, fake_tinify, sleep,
    ):
        settings = settings.model_copy(update={"max_size_bytes": 250})
        summary = await _run(settings, image_tree, http_client, sleep)
        assert summary.compressed == 2
        assert (image_tree / "src" / "icons" / "c.webp").read_bytes() == b"C" * 300
        assert all(r.content != b"C" * 300 for r in fake_tinify.uploads)


class TestIncremental:
    @pytest.mark.asyncio
    async def test_rerun_does_nothing(
        self, image_tree, settings, http_client, fake_tinify, sleep,
    ):
        await _run(settings, image_tree, http_client, sleep)
        report_before = (image_tree / REPORT_NAME).read_text(encoding="utf-8")

        summary = await _run(settings, image_tree, http_client, sleep)

        assert summary.candidates == 0
        assert len(fake_tinify.uploads) == 3
        assert (image_tree / REPORT_NAME).read_text(encoding="utf-8") == report_before

    @pytest.mark.asyncio
    async def test_changed_and_new_files_only(
        self, image_tree, settings, http_client, fake_tinify, sleep,
    ):
        await _run(settings, image_tree, http_client, sleep)
        (image_tree / "src" / "a.png").write_bytes(b"Z" * 80)
        (image_tree / "src" / "icons" / "d.png").write_bytes(b"D" * 40)

        summary = await _run(settings, image_tree, http_client, sleep)

        assert summary.compressed == 2
        assert [r.content for r in fake_tinify.uploads[3:]] in (
            [b"Z" * 80, b"D" * 40],
            [b"D" * 40, b"Z" * 80],
        )
        report = (image_tree / REPORT_NAME).read_text(encoding="utf-8")
        assert report.count(REPORT_TITLE) == 2

        store = json.loads((image_tree / "image.json").read_text(encoding="utf-8"))
        assert len(store["fingerprintMap"]) == 4
        assert store["fingerprintMap"]["src/a.png"] == compute_key("src/a.png", 40)

    @pytest.mark.asyncio
    async def test_stale_entries_survive(self, image_tree, settings, http_client, sleep):
        (image_tree / "image.json").write_text(
            json.dumps({"fingerprintMap": {"src/deleted.png": "x"}}), encoding="utf-8",
        )
        await _run(settings, image_tree, http_client, sleep)
        store = json.loads((image_tree / "image.json").read_text(encoding="utf-8"))
        assert store["fingerprintMap"]["src/deleted.png"] == "x"


class TestRetry:
    @pytest.mark.asyncio
    async def test_transport_failure_retried(
        self, image_tree, settings, http_client, fake_tinify, sleep,
    ):
        settings = settings.model_copy(update={"batch_size": 2})
        fake_tinify.fail_next_uploads = 1

        summary = await _run(settings, image_tree, http_client, sleep)

        assert summary.compressed == 3
        assert summary.batches == 2
        assert summary.attempts == 3
        assert sleep.total == 1
        assert (image_tree / REPORT_NAME).read_text(encoding="utf-8").count(REPORT_TITLE) == 1

        # Whatever got compressed twice, the store matches what is on disk
        again = await _run(settings, image_tree, http_client, sleep)
        assert again.candidates == 0

    @pytest.mark.asyncio
    async def test_retry_ceiling_writes_nothing(
        self, image_tree, settings, http_client, fake_tinify, sleep,
    ):
        settings = settings.model_copy(update={"max_retries": 2})
        fake_tinify.reject.add(b"A" * 100)

        with pytest.raises(RetryExhausted) as exc_info:
            await _run(settings, image_tree, http_client, sleep)

        assert exc_info.value.attempts == 3
        assert "File type is not supported" in str(exc_info.value)
        assert not (image_tree / "image.json").exists()
        assert not (image_tree / REPORT_NAME).exists()
        # 1s then 2s of backoff before giving up
        assert sleep.total == 3
