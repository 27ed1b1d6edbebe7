"""
Framework pattern tables and their file parsers.
"""
from pathlib import Path
from typing import Iterable

from ..ingestion.dispatcher import PatternRegistry
from .sveltekit import SVELTEKIT_EXCLUDE, SVELTEKIT_PATTERNS, SvelteKitParser, sveltekit_pattern_set
from .typescript import TYPESCRIPT_EXCLUDE, TYPESCRIPT_PATTERNS, TypeScriptParser, typescript_pattern_set


def build_default_registry(knowledge: Iterable[Path] = ()) -> PatternRegistry:
    """SvelteKit first, generic TypeScript second, so route files keep their route semantics."""
    registry = PatternRegistry()
    registry.register(sveltekit_pattern_set(), SvelteKitParser(), exclude=SVELTEKIT_EXCLUDE, knowledge=knowledge)
    registry.register(typescript_pattern_set(), TypeScriptParser(), exclude=TYPESCRIPT_EXCLUDE)
    return registry


__all__ = [
    "SVELTEKIT_EXCLUDE",
    "SVELTEKIT_PATTERNS",
    "SvelteKitParser",
    "TYPESCRIPT_EXCLUDE",
    "TYPESCRIPT_PATTERNS",
    "TypeScriptParser",
    "build_default_registry",
    "sveltekit_pattern_set",
    "typescript_pattern_set",
]
