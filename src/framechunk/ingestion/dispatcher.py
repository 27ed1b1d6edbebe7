"""
Pattern registry and file dispatch.

Frameworks register ordered pattern sets together with the parser that owns
matching files. The dispatcher hands every file to exactly one pattern: the
first registration wins, and within a registration the highest priority
pattern wins. A claimed file is never offered to another pattern, so one
file is never embedded twice under two different semantics.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from ..chunking.models import FileChunks
from ..logger import get_logger
from ..settings import ChunkingContext
from .globbing import glob_match, matches_any

log = get_logger(__name__)


@dataclass(frozen=True)
class PatternConfig:
    """One glob rule and the semantics attached to files it claims."""

    name: str
    glob: str
    semantic: str
    type: str
    description: str = ""
    priority: int = 0
    metadata: Mapping[str, Any] = field(default_factory=dict)
    exclude: Tuple[str, ...] = ()

    def chunk_metadata(self, relative_path: str) -> Dict[str, Any]:
        """Metadata carried by every chunk of a file this pattern claimed."""
        return {
            **dict(self.metadata),
            "filePath": relative_path,
            "pattern": self.name,
            "patternType": self.type,
            "description": self.description,
        }


@dataclass(frozen=True)
class PatternSet:
    framework: str
    patterns: Tuple[PatternConfig, ...]

    @classmethod
    def from_mapping(cls, framework: str, table: Mapping[str, Mapping[str, Any]]) -> "PatternSet":
        """Build a set from ``{name: {pattern, semantic, type, ...}}`` tables."""
        patterns = []
        for name, entry in table.items():
            patterns.append(
                PatternConfig(
                    name=name,
                    glob=entry["pattern"],
                    semantic=entry.get("semantic", entry.get("type", name)),
                    type=entry.get("type", "unknown"),
                    description=entry.get("description", ""),
                    priority=int(entry.get("priority", 0)),
                    metadata=dict(entry.get("metadata", {})),
                    exclude=tuple(entry.get("exclude", ())),
                )
            )
        return cls(framework=framework, patterns=tuple(patterns))

    def ordered(self) -> List[PatternConfig]:
        # sorted() is stable, so equal priorities keep declaration order.
        return sorted(self.patterns, key=lambda pattern: -pattern.priority)


class FrameworkParser(Protocol):
    """Turns one claimed file into chunks."""

    def parse_file(
        self,
        path: Path,
        relative_path: str,
        pattern: PatternConfig,
        context: ChunkingContext,
    ) -> FileChunks:
        ...


@dataclass(frozen=True)
class Registration:
    pattern_set: PatternSet
    parser: FrameworkParser
    exclude: Tuple[str, ...] = ()
    knowledge: Tuple[Path, ...] = ()

    @property
    def framework(self) -> str:
        return self.pattern_set.framework


class PatternRegistry:
    """Ordered list of framework registrations."""

    def __init__(self) -> None:
        self._registrations: List[Registration] = []

    def register(
        self,
        pattern_set: PatternSet,
        parser: FrameworkParser,
        exclude: Sequence[str] = (),
        knowledge: Iterable[Path] = (),
    ) -> None:
        self._registrations.append(
            Registration(
                pattern_set=pattern_set,
                parser=parser,
                exclude=tuple(exclude),
                knowledge=tuple(Path(doc) for doc in knowledge),
            )
        )
        log.debug(
            "pattern_set_registered",
            framework=pattern_set.framework,
            patterns=len(pattern_set.patterns),
        )

    @property
    def registrations(self) -> Tuple[Registration, ...]:
        return tuple(self._registrations)

    def __len__(self) -> int:
        return len(self._registrations)

    def describe(self) -> List[Dict[str, Any]]:
        """Flat view of every pattern in dispatch order."""
        rows: List[Dict[str, Any]] = []
        for registration in self._registrations:
            for pattern in registration.pattern_set.ordered():
                rows.append(
                    {
                        "framework": registration.framework,
                        "name": pattern.name,
                        "glob": pattern.glob,
                        "semantic": pattern.semantic,
                        "type": pattern.type,
                        "priority": pattern.priority,
                        "exclude": list(pattern.exclude + registration.exclude),
                    }
                )
        return rows


@dataclass(frozen=True)
class DispatchMatch:
    relative_path: str
    pattern: PatternConfig
    registration: Registration

    @property
    def framework(self) -> str:
        return self.registration.framework

    @property
    def parser(self) -> FrameworkParser:
        return self.registration.parser


def normalize_path(path: str) -> str:
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


class Dispatcher:
    """Routes relative paths to their owning pattern, once per path."""

    def __init__(self, registry: PatternRegistry) -> None:
        self.registry = registry
        self._claimed: set[str] = set()
        self._lock = threading.Lock()

    def dispatch(self, relative_path: str) -> Optional[DispatchMatch]:
        key = normalize_path(relative_path)
        with self._lock:
            if key in self._claimed:
                log.debug("dispatch_already_claimed", path=key)
                return None
            for registration in self.registry.registrations:
                for pattern in registration.pattern_set.ordered():
                    if not glob_match(key, pattern.glob):
                        continue
                    if matches_any(key, pattern.exclude + registration.exclude):
                        continue
                    self._claimed.add(key)
                    return DispatchMatch(relative_path=key, pattern=pattern, registration=registration)
        return None

    def is_claimed(self, relative_path: str) -> bool:
        with self._lock:
            return normalize_path(relative_path) in self._claimed

    @property
    def claimed(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._claimed)
