# src/cache/json_store.py - v3
"""JSON file-backed fingerprint store (``<output>/image.json``).

Loading never fails: a missing or unreadable store simply means a first run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from pathlib import Path

from pydantic import ValidationError

from tinyshrink.cache.models import FingerprintDocument

logger = logging.getLogger(__name__)

DEFAULT_STORE_NAME = "image.json"


def load_fingerprints(store_path: Path) -> dict[str, str]:
    """Read the fingerprint mapping, or an empty one if there is none."""
    path = Path(store_path)
    if not path.is_file():
        logger.debug("No fingerprint store at %s, starting fresh", path)
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        document = FingerprintDocument.model_validate(data)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Ignoring unreadable fingerprint store %s: %s", path, e)
        return {}

    logger.info("Loaded %d fingerprints from %s", len(document.fingerprint_map), path)
    return dict(document.fingerprint_map)


def persist_fingerprints(store_path: Path, mapping: Mapping[str, str]) -> None:
    """Write the mapping as tab-indented JSON, creating parent directories."""
    path = Path(store_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    document = FingerprintDocument(fingerprint_map=dict(mapping))
    payload = document.model_dump(by_alias=True)
    path.write_text(
        json.dumps(payload, indent="\t", ensure_ascii=False),
        encoding="utf-8",
    )


class JsonFingerprintStore:
    """Fingerprint store bound to one output directory."""

    def __init__(self, output_dir: Path, filename: str = DEFAULT_STORE_NAME) -> None:
        self._path = Path(output_dir) / filename

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, str]:
        return load_fingerprints(self._path)

    def persist(self, mapping: Mapping[str, str]) -> None:
        persist_fingerprints(self._path, mapping)
        logger.info("Fingerprint store written to %s", self._path)
