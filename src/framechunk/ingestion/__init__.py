"""
File discovery and routing.

Scans a source tree and routes each file to the framework pattern that owns
it before any chunking happens.
"""
from .dispatcher import (
    DispatchMatch,
    Dispatcher,
    FrameworkParser,
    PatternConfig,
    PatternRegistry,
    PatternSet,
    Registration,
)
from .manager import DEFAULT_IGNORE_PATTERNS, ScanReport, iter_source_files, scan_directory

__all__ = [
    "DEFAULT_IGNORE_PATTERNS",
    "DispatchMatch",
    "Dispatcher",
    "FrameworkParser",
    "PatternConfig",
    "PatternRegistry",
    "PatternSet",
    "Registration",
    "ScanReport",
    "iter_source_files",
    "scan_directory",
]
