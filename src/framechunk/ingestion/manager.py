"""
Source tree scanning.

Walks a target directory, pruning ignored directories early, and yields the
files whose extension is in the run's supported list. Output is sorted so
repeated runs see files in the same order.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from ..logger import get_logger

log = get_logger(__name__)

DEFAULT_IGNORE_PATTERNS: Sequence[str] = (
    ".*",
    ".git",
    ".svelte-kit",
    ".vercel",
    ".netlify",
    ".idea",
    ".vscode",
    ".DS_Store",
    "node_modules",
    "bower_components",
    "build",
    "dist",
    "coverage",
    "tmp",
)


@dataclass
class ScanReport:
    """What a scan saw, for progress reporting."""

    root: Path
    files: List[Path] = field(default_factory=list)
    skipped_unsupported: int = 0


def _should_ignore(name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch(name, pattern) for pattern in patterns)


def relative_posix(path: Path, root: Path) -> str:
    return path.relative_to(root).as_posix()


def iter_source_files(
    root: Path,
    extensions: Sequence[str],
    ignore_patterns: Optional[Sequence[str]] = None,
    report: Optional[ScanReport] = None,
) -> Iterator[Path]:
    """
    Yield supported files under ``root`` in sorted, deterministic order.

    Files dropped by the extension filter are counted on ``report``.
    """
    patterns = tuple(dict.fromkeys(tuple(DEFAULT_IGNORE_PATTERNS) + tuple(ignore_patterns or ())))
    suffixes = {ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in extensions}

    if root.is_file():
        if root.suffix.lower() in suffixes:
            yield root
        elif report is not None:
            report.skipped_unsupported += 1
        return

    for current, dirs, filenames in os.walk(root):
        dirs[:] = sorted(d for d in dirs if not _should_ignore(d, patterns))
        current_path = Path(current)
        for filename in sorted(filenames):
            if _should_ignore(filename, patterns):
                continue
            candidate = current_path / filename
            if candidate.suffix.lower() not in suffixes:
                if report is not None:
                    report.skipped_unsupported += 1
                continue
            yield candidate


def scan_directory(
    root: Path,
    extensions: Sequence[str],
    ignore_patterns: Optional[Sequence[str]] = None,
) -> ScanReport:
    if not root.exists():
        raise FileNotFoundError(f"Target path not found: {root}")
    report = ScanReport(root=root)
    report.files = list(iter_source_files(root, extensions, ignore_patterns, report))
    log.info(
        "scan_completed",
        root=str(root),
        files=len(report.files),
        skipped_unsupported=report.skipped_unsupported,
    )
    return report
