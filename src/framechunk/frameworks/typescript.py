"""
Generic TypeScript / JavaScript module support.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from ..chunking.assembler import assemble_construct_chunks
from ..chunking.models import ChunkFactory, FileChunks
from ..chunking.typescript import TypeScriptExtractor, dialect_for_path
from ..ingestion.dispatcher import PatternConfig, PatternSet
from ..settings import ChunkingContext

TYPESCRIPT_PATTERNS: Dict[str, Dict[str, Any]] = {
    "tests": {
        "pattern": "**/*.{test,spec}.{ts,tsx,js,jsx,mjs,cjs}",
        "semantic": "test",
        "type": "script",
        "description": "Unit or integration test module",
        "priority": 8,
        "metadata": {"runtime": "test"},
    },
    "configs": {
        "pattern": "**/*.config.{ts,js,mjs,cjs}",
        "semantic": "config",
        "type": "script",
        "description": "Tooling configuration module",
        "priority": 7,
        "metadata": {"runtime": "build"},
    },
    "libModules": {
        "pattern": "**/lib/**/*.{ts,js,mjs,cjs}",
        "semantic": "util",
        "type": "script",
        "description": "Shared library module",
        "priority": 5,
        "metadata": {"runtime": "universal"},
    },
    "components": {
        "pattern": "**/*.{tsx,jsx}",
        "semantic": "component",
        "type": "component",
        "description": "JSX component module",
        "priority": 3,
        "metadata": {"runtime": "client"},
    },
    "modules": {
        "pattern": "**/*.{ts,js,mjs,cjs,mts,cts}",
        "semantic": "module",
        "type": "script",
        "description": "TypeScript or JavaScript module",
        "priority": 1,
        "metadata": {"runtime": "universal"},
    },
}

TYPESCRIPT_EXCLUDE = ("**/node_modules/**", "**/*.d.ts")


def typescript_pattern_set() -> PatternSet:
    return PatternSet.from_mapping("typescript", TYPESCRIPT_PATTERNS)


class ExtractorPool:
    """One extractor per variable policy, shared by all files of a parser."""

    def __init__(self) -> None:
        self._extractors: Dict[bool, TypeScriptExtractor] = {}

    def get(self, context: ChunkingContext) -> TypeScriptExtractor:
        key = context.include_plain_variables
        extractor = self._extractors.get(key)
        if extractor is None:
            extractor = self._extractors.setdefault(key, TypeScriptExtractor(include_plain_variables=key))
        return extractor


def chunk_module(
    text: str,
    dialect: str,
    factory: ChunkFactory,
    context: ChunkingContext,
    extractor: TypeScriptExtractor,
    line_offset: int = 0,
    **extra: Any,
) -> FileChunks:
    """Extract constructs from ``text`` and batch them under the construct budget."""
    result = extractor.extract(text, dialect=dialect, line_offset=line_offset, source=factory.source)
    outcome = FileChunks(warnings=list(result.warnings))

    if not result.constructs:
        # Side-effect-only modules (imports, top-level calls) still get indexed.
        if text.strip():
            outcome.chunks.append(factory.whole_file(text, reason="no_constructs"))
        return outcome

    outcome.chunks.extend(
        assemble_construct_chunks(
            result.constructs,
            context.construct_budget,
            factory,
            granularity="file" if result.opaque else "function",
            imports=result.imports,
            exports=result.exports,
            opaque=result.opaque,
            **extra,
        )
    )
    return outcome


class TypeScriptParser:
    """Chunks plain modules claimed by the generic TypeScript patterns."""

    framework = "typescript"

    def __init__(self) -> None:
        self._pool = ExtractorPool()

    def parse_file(
        self,
        path: Path,
        relative_path: str,
        pattern: PatternConfig,
        context: ChunkingContext,
    ) -> FileChunks:
        text = path.read_text(encoding="utf-8")
        factory = ChunkFactory(relative_path, self.framework, pattern.semantic, pattern.chunk_metadata(relative_path))
        dialect: Optional[str] = dialect_for_path(path)
        return chunk_module(text, dialect or "typescript", factory, context, self._pool.get(context))
