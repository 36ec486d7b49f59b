# src/batch/scanner.py - v3
"""Directory scanner: recursive image discovery cross-checked against fingerprints.

The walk is depth-first. Each directory's entries are visited in sorted
name order, and sub-directories are descended into where they appear in
that listing, so the candidate order (and therefore batch partitioning)
is deterministic. Symlinked files and directories are followed; a link
back to a directory on the current path is skipped.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path

from tinyshrink.batch.models import FileRecord, ScanPolicy
from tinyshrink.cache.fingerprint import needs_processing
from tinyshrink.core.errors import PolicyViolation

logger = logging.getLogger(__name__)


def _relative_path(path: Path, base_dir: Path) -> str:
    """Project-relative POSIX path used as the fingerprint key."""
    try:
        return path.relative_to(base_dir).as_posix()
    except ValueError:
        return path.as_posix()


def _sorted_entries(directory: Path) -> list[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def iter_candidates(
    root_dir: Path,
    fingerprints: Mapping[str, str],
    policy: ScanPolicy,
    base_dir: Path | None = None,
    on_skip: Callable[[PolicyViolation], None] | None = None,
) -> Iterator[FileRecord]:
    """Yield files under ``root_dir`` that need compressing.

    Args:
        root_dir: Directory to walk.
        fingerprints: Stored path -> fingerprint mapping.
        policy: Size and extension policy.
        base_dir: Paths are reported relative to this (default: the current
            working directory).
        on_skip: Called with a PolicyViolation for every excluded file.

    Yields:
        FileRecord per file that satisfies the policy and whose fingerprint
        is missing or stale.
    """
    root = Path(root_dir)
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    if not root.is_dir():
        msg = f"Scan root is not a directory: {root}"
        raise ValueError(msg)

    # Each level keeps its directory's real path; a link back to one of them is a cycle
    stack: list[tuple[Iterator[os.DirEntry], str]] = [
        (iter(_sorted_entries(root)), os.path.realpath(root)),
    ]
    while stack:
        entry = next(stack[-1][0], None)
        if entry is None:
            stack.pop()
            continue

        if entry.is_dir():
            real_dir = os.path.realpath(entry.path)
            if any(real_dir == ancestor for _it, ancestor in stack):
                logger.warning("Skipping %s: link back to a parent directory", entry.path)
                continue
            try:
                stack.append((iter(_sorted_entries(Path(entry.path))), real_dir))
            except OSError as e:
                logger.warning("Cannot list %s: %s", entry.path, e)
            continue
        if not entry.is_file():
            continue

        full_path = Path(entry.path)
        rel_path = _relative_path(full_path, base)
        try:
            size = entry.stat().st_size
        except OSError as e:
            logger.warning("Cannot stat %s: %s", entry.path, e)
            continue

        violations: list[str] = []
        if not policy.size_allowed(size):
            violations.append(
                f"exceeds the {policy.max_size_bytes // (1024 * 1024)}MB size limit"
            )
        if not policy.extension_allowed(full_path.suffix):
            violations.append(
                f"unsupported extension (allowed: {', '.join(policy.allowed_extensions)})"
            )
        if violations:
            for reason in violations:
                logger.warning("Skipping %s: %s", entry.name, reason)
                if on_skip is not None:
                    on_skip(PolicyViolation(path=rel_path, reason=reason))
            continue

        if not needs_processing(fingerprints, rel_path, size):
            logger.debug("Unchanged since last run: %s", rel_path)
            continue

        yield FileRecord(path=rel_path, size_bytes=size, name=entry.name)


def scan(
    root_dir: Path,
    fingerprints: Mapping[str, str],
    policy: ScanPolicy,
    base_dir: Path | None = None,
    on_skip: Callable[[PolicyViolation], None] | None = None,
) -> list[FileRecord]:
    """Materialize iter_candidates() into a list."""
    records = list(iter_candidates(root_dir, fingerprints, policy, base_dir, on_skip))
    logger.info("Scanned %s: %d files need compressing", root_dir, len(records))
    return records


def contains_files(root_dir: Path) -> bool:
    """True if there is at least one regular file anywhere under ``root_dir``."""
    seen: set[str] = set()
    for dirpath, dirnames, filenames in os.walk(root_dir, followlinks=True):
        if filenames:
            return True
        real_dir = os.path.realpath(dirpath)
        if real_dir in seen:
            dirnames[:] = []
            continue
        seen.add(real_dir)
    return False
