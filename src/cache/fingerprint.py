# src/cache/fingerprint.py - v3
"""Path + size fingerprints used for change detection.

A fingerprint is md5(path + str(size)). Before compression the size is the
on-disk size; after compression it is the size the service reported, so the
next scan sees a matching key and skips the file. MD5 keeps stores written
by earlier versions of the tool valid; collision resistance is irrelevant.
"""

from __future__ import annotations

import hashlib
from collections.abc import Mapping


def compute_key(path: str, size: int) -> str:
    """Deterministic fingerprint of (path, size)."""
    return hashlib.md5(f"{path}{size}".encode("utf-8")).hexdigest()  # noqa: S324


def merge_fingerprints(
    old: Mapping[str, str],
    updates: Mapping[str, str],
) -> dict[str, str]:
    """Right-biased union: ``updates`` wins, unrelated old keys survive."""
    return {**old, **updates}


def needs_processing(
    fingerprints: Mapping[str, str],
    path: str,
    size: int,
) -> bool:
    """True if ``path`` has no stored fingerprint or its size changed."""
    stored = fingerprints.get(path)
    return stored is None or stored != compute_key(path, size)
