"""
Core value types shared by the extractors, splitters and storage layer.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> float:
    """Deterministic size proxy used for every budget decision."""
    return len(text) / CHARS_PER_TOKEN


class ConstructKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    VARIABLE = "variable"
    EXPORT = "export"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class Construct:
    """A top-level declaration lifted out of a parsed module."""

    kind: ConstructKind
    name: str
    start_line: int
    end_line: int
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> float:
        return estimate_tokens(self.content)

    def tagged(self, **flags: Any) -> "Construct":
        """Return a copy with extra metadata flags."""
        return Construct(
            kind=self.kind,
            name=self.name,
            start_line=self.start_line,
            end_line=self.end_line,
            content=self.content,
            metadata={**self.metadata, **flags},
        )


@dataclass
class Chunk:
    """Size-bounded unit of content handed to the storage collaborator."""

    id: str
    type: str
    granularity: str
    framework: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> float:
        return estimate_tokens(self.content)

    def to_record(self) -> Dict[str, Any]:
        """Flatten into the metadata mapping stored next to the vector."""
        return {
            **self.metadata,
            "id": self.id,
            "type": self.type,
            "granularity": self.granularity,
            "framework": self.framework,
        }


def make_chunk_id(source: str, ordinal: int, content: str) -> str:
    digest = hashlib.md5(f"{source}\x00{ordinal}\x00{content}".encode("utf-8"))
    return digest.hexdigest()


class ChunkFactory:
    """Builds chunks for one source, numbering them in emission order."""

    def __init__(self, source: str, framework: str, semantic: str, base_metadata: Dict[str, Any]) -> None:
        self.source = source
        self.framework = framework
        self.semantic = semantic
        self.base_metadata = dict(base_metadata)
        self._ordinal = 0

    def build(self, content: str, granularity: str, **metadata: Any) -> Chunk:
        chunk = Chunk(
            id=make_chunk_id(self.source, self._ordinal, content),
            type=self.semantic,
            granularity=granularity,
            framework=self.framework,
            content=content,
            metadata={**self.base_metadata, **metadata, "chunkIndex": self._ordinal},
        )
        self._ordinal += 1
        return chunk

    def whole_file(self, content: str, reason: str) -> Chunk:
        return self.build(content, "file", fallback=reason)


@dataclass
class FileChunks:
    """Chunks produced for one file plus the non-fatal warnings raised."""

    chunks: List[Chunk] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def extend(self, other: "FileChunks") -> None:
        self.chunks.extend(other.chunks)
        self.warnings.extend(other.warnings)
