# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Provides a fake shrink service behind httpx.MockTransport, a small image
tree in a temp working directory, and settings that never read a .env file.
No network access: every HTTP call is answered in-process.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from tinyshrink.config.settings import Settings
from tinyshrink.logging.context import clear_context


class FakeTinify:
    """In-process stand-in for the shrink API.

    Uploads are "compressed" by keeping the first half of the bytes. The
    output is served back under ``/output/<token>``.

    Attributes:
        fail_next_uploads: Number of upcoming uploads answered with a
            connection error.
        reject: Upload bodies answered with an error payload.
    """

    def __init__(self) -> None:
        self.uploads: list[httpx.Request] = []
        self.downloads: list[httpx.Request] = []
        self.outputs: dict[str, bytes] = {}
        self.fail_next_uploads = 0
        self.reject: set[bytes] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return self._shrink(request)
        return self._output(request)

    def _shrink(self, request: httpx.Request) -> httpx.Response:
        self.uploads.append(request)
        if self.fail_next_uploads > 0:
            self.fail_next_uploads -= 1
            raise httpx.ConnectError("connection refused", request=request)

        data = request.content
        if data in self.reject:
            return httpx.Response(
                400,
                json={
                    "error": "Unsupported media type",
                    "message": "File type is not supported",
                },
            )

        token = f"out{len(self.uploads)}"
        compressed = data[: max(1, len(data) // 2)]
        self.outputs[token] = compressed
        return httpx.Response(
            201,
            json={
                "input": {"size": len(data), "type": "image/png"},
                "output": {
                    "size": len(compressed),
                    "type": "image/png",
                    "ratio": round(len(compressed) / len(data), 4),
                    "url": f"https://api.tinify.com/output/{token}",
                },
            },
        )

    def _output(self, request: httpx.Request) -> httpx.Response:
        self.downloads.append(request)
        token = request.url.path.rsplit("/", 1)[-1]
        if token not in self.outputs:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(200, content=self.outputs[token])


# === FIXTURES: Remote service ===


@pytest.fixture
def fake_tinify() -> FakeTinify:
    return FakeTinify()


@pytest.fixture
def http_client(fake_tinify: FakeTinify) -> httpx.AsyncClient:
    """AsyncClient wired to the fake service."""
    return httpx.AsyncClient(transport=httpx.MockTransport(fake_tinify.handler))


# === FIXTURES: Configuration ===


@pytest.fixture
def settings() -> Settings:
    """Settings with one key and a fast backoff, ignoring any .env file."""
    return Settings(
        _env_file=None,
        api_keys="test-key",
        backoff_initial_s=1,
        backoff_step_s=1,
        backoff_cap_s=3,
    )


# === FIXTURES: Filesystem ===


@pytest.fixture
def image_tree(tmp_path: Path) -> Path:
    """Working directory holding ``src/`` with three images and a text file.

    Layout (sizes in bytes)::

        src/a.png           100
        src/b.jpg           200
        src/icons/c.webp    300
        src/notes.txt        10
    """
    src = tmp_path / "src"
    (src / "icons").mkdir(parents=True)
    (src / "a.png").write_bytes(b"A" * 100)
    (src / "b.jpg").write_bytes(b"B" * 200)
    (src / "icons" / "c.webp").write_bytes(b"C" * 300)
    (src / "notes.txt").write_bytes(b"N" * 10)
    return tmp_path


class SleepRecorder:
    """Drop-in for asyncio.sleep that returns at once and records each call."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()
