# src/report/markdown.py - v1
"""Markdown rendering of the compression ratio report.

The total ratio is the plain sum of every row's (1 - ratio), not a weighted
average, so it can exceed 100% on large runs. Existing reports are built
from that arithmetic and it is kept as is.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from tinyshrink.batch.models import CompressionResult

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

REPORT_TITLE = "# 项目原始图片对比"
FILES_HEADING = "## 图片压缩信息"
FILES_HEADER = "| 文件名 | 文件体积 | 压缩后体积 | 压缩比 | 文件路径 |\n| -- | -- | -- | -- | -- |"
TOTALS_HEADING = "## 总体积变化信息"
TOTALS_HEADER = "| 原始总大小 | 压缩后总大小 | 总压缩比 |\n| -- | -- | -- |"


def format_size(size: int) -> str:
    """``1536 -> '1.50KB'``, ``512 -> '512B'``."""
    if size > 1024:
        return f"{size / 1024:.2f}KB"
    return f"{size}B"


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def row_percentage(result: CompressionResult) -> int:
    """Bytes saved on one file, in whole percent."""
    return round((1 - result.ratio) * 100)


def total_percentage(results: Sequence[CompressionResult]) -> int:
    """Sum of per-file savings, in whole percent."""
    return round(sum(1 - r.ratio for r in results) * 100)


def render_file_row(result: CompressionResult) -> str:
    return (
        f"| {result.name} | {format_size(result.size_bytes)} "
        f"| {format_size(result.compressed_size_bytes)} "
        f"| {row_percentage(result)}% | {result.path} |"
    )


def render_totals_row(results: Sequence[CompressionResult]) -> str:
    original = sum(r.size_bytes for r in results)
    compressed = sum(r.compressed_size_bytes for r in results)
    return (
        f"| {format_size(original)} | {format_size(compressed)} "
        f"| {total_percentage(results)}% |"
    )


def render_report(results: Sequence[CompressionResult], moment: datetime) -> str:
    """One run's section: per-file table followed by the totals table."""
    stamp = format_timestamp(moment)
    lines = [
        REPORT_TITLE,
        "",
        f"{FILES_HEADING} {stamp}",
        "",
        FILES_HEADER,
        *(render_file_row(r) for r in results),
        "",
        f"{TOTALS_HEADING} {stamp}",
        "",
        TOTALS_HEADER,
        render_totals_row(results),
    ]
    # Trailing blank line keeps the next appended run from gluing onto the table
    return "\n".join(lines) + "\n\n"
