# src/compression/worker.py - v2
"""Compression worker: one file through upload, download and in-place replace.

The original bytes are not kept. The replacement is written to a temporary
file next to the original and moved over it with os.replace, so a failure
mid-write leaves the original untouched.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path

from tinyshrink.batch.models import CompressionResult, FileRecord
from tinyshrink.compression.client import TinifyClient
from tinyshrink.core.errors import LocalFileError
from tinyshrink.logging.context import set_file_context

logger = logging.getLogger(__name__)


def replace_atomically(target: Path, data: bytes) -> None:
    """Replace ``target``'s content with ``data`` all at once or not at all.

    A symlinked ``target`` is resolved first, so the link stays in place and
    the file it points to receives the new content.
    """
    target = Path(target).resolve()
    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent, prefix=f".{target.name}.", suffix=".tmp",
    )
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        shutil.copymode(target, tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class CompressionWorker:
    """Turns a FileRecord into a CompressionResult, rewriting the file on disk.

    Args:
        client: Shrink API client shared by all workers of a run.
        work_dir: Directory FileRecord paths are relative to.
    """

    def __init__(self, client: TinifyClient, work_dir: Path | None = None) -> None:
        self._client = client
        self._work_dir = Path(work_dir) if work_dir is not None else Path.cwd()

    async def process(self, record: FileRecord) -> CompressionResult:
        """Compress one file.

        Raises:
            LocalFileError: Reading or replacing the file failed.
            UpstreamRejected: The service refused the image.
            NetworkError: Upload or download transport failure.
        """
        set_file_context(record.path)
        source = self._work_dir / record.path
        logger.info("Compressing %s", record.path)

        try:
            data = await asyncio.to_thread(source.read_bytes)
        except OSError as e:
            raise LocalFileError(record.path, f"cannot read file: {e}") from e

        output = await self._client.shrink(data, record.path)
        compressed = await self._client.download(output.url, record.path)

        try:
            await asyncio.to_thread(replace_atomically, source, compressed)
        except OSError as e:
            raise LocalFileError(record.path, f"cannot write file: {e}") from e

        logger.info(
            "Compressed %s: %d -> %d bytes", record.path, record.size_bytes, output.size,
        )
        return CompressionResult(
            **record.model_dump(),
            compressed_size_bytes=output.size,
            ratio=output.ratio,
        )
