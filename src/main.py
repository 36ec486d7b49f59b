# src/main.py - v2
"""CLI entry point.

Usage:
    tinyshrink [--input DIR] [--output DIR] [--secret KEYS.json] [options]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from tinyshrink.version import __version__

if TYPE_CHECKING:
    from tinyshrink.config.settings import Settings

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    from pydantic import ValidationError

    from tinyshrink.config.settings import ConfigurationError

    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _load_settings(args)
    except (ConfigurationError, ValidationError) as exc:
        _setup_logging(verbose=args.verbose)
        logger.error("Configuration error: %s", exc)
        return 1

    _setup_logging(verbose=args.verbose, settings=settings)

    try:
        return asyncio.run(_cmd_compress(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


def cli() -> None:
    sys.exit(main())


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="tinyshrink",
        description=(
            f"tinyshrink v{__version__}: compress the images of a directory "
            "tree through the TinyPNG API, skipping files already compressed"
        ),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-i", "--input", type=Path, default=Path("src"),
        help="Directory to compress, relative to the working directory (default: src)",
    )
    parser.add_argument(
        "-o", "--output", type=Path, default=Path(""),
        help="Directory for image.json and the report (default: working directory)",
    )
    parser.add_argument(
        "--secret", type=Path, default=None,
        help="JSON file with an array of extra API keys",
    )
    parser.add_argument(
        "--batch-size", type=int, default=None,
        help="Images compressed concurrently per batch",
    )
    parser.add_argument(
        "--max-retries", type=int, default=None,
        help="Give up after this many consecutive failed attempts of a batch "
             "(default: retry forever)",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    """Settings from the environment, CLI overrides and the secret file."""
    from tinyshrink.config.settings import load_secret_keys, load_settings

    overrides: dict[str, object] = {}
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size
    if args.max_retries is not None:
        overrides["max_retries"] = args.max_retries

    settings = load_settings(**overrides)
    if args.secret is not None:
        settings = settings.with_extra_keys(load_secret_keys(args.secret))
    return settings


async def _cmd_compress(args: argparse.Namespace, settings: Settings) -> int:
    """Run the incremental compression pipeline."""
    from tinyshrink.api.facade import compress_directory
    from tinyshrink.api.models import RunRequest
    from tinyshrink.config.settings import ConfigurationError
    from tinyshrink.core.errors import RetryExhausted

    request = RunRequest(input_dir=args.input, output_dir=args.output)
    try:
        summary = await compress_directory(settings, request)
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 1
    except RetryExhausted as exc:
        logger.error("Giving up: %s", exc)
        return 1

    if summary.compressed:
        print("\nCompression complete:")
        print(f"  Images:       {summary.compressed}")
        print(f"  Batches:      {summary.batches} ({summary.attempts} attempts)")
        print(f"  Before:       {summary.total_original_bytes} bytes")
        print(f"  After:        {summary.total_compressed_bytes} bytes")
        print(f"  Report:       {summary.report_path}")
        print(f"  Duration:     {summary.duration_seconds:.1f}s")
    return 0


def _setup_logging(verbose: bool, settings: Settings | None = None) -> None:
    """Configure logging for CLI usage."""
    from tinyshrink.logging.logger import setup_logging

    if settings is None:
        setup_logging(level="DEBUG" if verbose else "INFO")
        return
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
