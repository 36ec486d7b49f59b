# src/compression/client.py - v1
"""Async client for the tinify shrink API.

Each upload goes to a host and key drawn at random from the configured
pools, which spreads monthly quota across several keys. Requests also carry
a random X-Forwarded-For address and a browser User-Agent, like the web
uploader does.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any

import httpx
from pydantic import ValidationError

from tinyshrink.compression.models import ShrinkOutput
from tinyshrink.config.settings import ConfigurationError, Settings
from tinyshrink.core.errors import NetworkError, UpstreamRejected

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/83.0.4103.116 Safari/537.36"
)


def random_ip(rng: random.Random) -> str:
    """Random dotted IPv4 string, each octet in [0, 254]."""
    return ".".join(str(rng.randint(0, 254)) for _ in range(4))


class TinifyClient:
    """Upload images to ``POST /shrink`` and fetch the compressed result.

    Args:
        api_keys: Key pool; one is picked per upload.
        hosts: Host pool; one is picked per upload.
        shrink_path: Path of the shrink endpoint.
        timeout: Request timeout in seconds (None = no timeout).
        verify_tls: Verify server certificates.
        http_client: Pre-built client (tests inject a MockTransport here).
        rng: Random source for host/key/IP selection.
    """

    def __init__(
        self,
        api_keys: list[str],
        hosts: list[str],
        shrink_path: str = "/shrink",
        timeout: float | None = 60.0,
        verify_tls: bool = True,
        http_client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not api_keys:
            raise ConfigurationError(
                "No API keys configured (set TINYSHRINK_API_KEYS or pass --secret)"
            )
        if not hosts:
            raise ConfigurationError("No API hosts configured")
        self._keys = list(api_keys)
        self._hosts = list(hosts)
        self._shrink_path = shrink_path
        self._rng = rng or random.Random()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=timeout, verify=verify_tls,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None,
    ) -> TinifyClient:
        return cls(
            api_keys=settings.api_key_list,
            hosts=settings.api_host_list,
            shrink_path=settings.shrink_path,
            timeout=settings.request_timeout_s,
            verify_tls=settings.verify_tls,
            http_client=http_client,
        )

    async def __aenter__(self) -> TinifyClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def pick_endpoint(self) -> tuple[str, str]:
        """Pseudo-random (host, key) pair."""
        return self._rng.choice(self._hosts), self._rng.choice(self._keys)

    def build_headers(self) -> dict[str, str]:
        return {
            "Cache-Control": "no-cache",
            "Content-Type": "application/x-www-form-urlencoded",
            "Postman-Token": str(int(time.time() * 1000)),
            "User-Agent": USER_AGENT,
            "X-Forwarded-For": random_ip(self._rng),
        }

    async def shrink(self, data: bytes, path: str) -> ShrinkOutput:
        """Upload raw image bytes and return the service's result descriptor.

        Raises:
            UpstreamRejected: Error payload or unusable response body.
            NetworkError: Transport failure.
        """
        host, key = self.pick_endpoint()
        url = f"https://{host}{self._shrink_path}"
        try:
            response = await self._http.post(
                url,
                content=data,
                headers=self.build_headers(),
                auth=("api", key),
            )
        except httpx.HTTPError as e:
            raise NetworkError(path, f"upload request failed: {e}") from e

        payload = _decode_json(response, path)
        if "error" in payload:
            message = payload.get("message") or payload["error"]
            raise UpstreamRejected(path, f"compression failed: {message}")

        try:
            output = ShrinkOutput.model_validate(payload.get("output"))
        except ValidationError as e:
            raise UpstreamRejected(
                path, f"unexpected shrink response (HTTP {response.status_code})"
            ) from e

        logger.debug(
            "Shrunk %s on %s: %d bytes, ratio %.4f",
            path, host, output.size, output.ratio,
        )
        return output

    async def download(self, url: str, path: str) -> bytes:
        """Fetch the compressed image.

        Raises:
            NetworkError: Transport failure or HTTP error status.
            UpstreamRejected: Empty body.
        """
        try:
            response = await self._http.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkError(path, f"download failed: {e}") from e

        if not response.content:
            raise UpstreamRejected(path, "download returned an empty body")
        return response.content


def _decode_json(response: httpx.Response, path: str) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as e:
        raise UpstreamRejected(
            path, f"non-JSON shrink response (HTTP {response.status_code})"
        ) from e
    if not isinstance(payload, dict):
        raise UpstreamRejected(path, "shrink response is not a JSON object")
    return payload
