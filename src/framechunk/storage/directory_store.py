"""
Plain directory storage for chunks.

Each chunk's content is written to ``<id>.txt`` and its record to a shared
``schema.json`` catalogue. The integrity check compares the two.
"""
from __future__ import annotations

import json
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from ..chunking.models import Chunk
from ..logger import get_logger

log = get_logger(__name__)

SCHEMA_FILE = "schema.json"
CONTENT_SUFFIX = ".txt"


@dataclass
class IntegrityReport:
    valid: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing


class DirectoryChunkStore:
    """Writes chunks under ``root`` and keeps ``schema.json`` in sync."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.schema_path = self.root / SCHEMA_FILE
        self._records: Dict[str, Dict[str, Any]] = {}
        self._loaded = False

    def _load(self) -> None:
        if self._loaded:
            return
        self._records = {record["id"]: record for record in self._read_schema()}
        self._loaded = True

    def _read_schema(self) -> List[Dict[str, Any]]:
        if not self.schema_path.exists():
            return []
        try:
            data = json.loads(self.schema_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Chunk schema is not valid JSON: {self.schema_path}") from exc
        if not isinstance(data, list):
            raise ValueError(f"Chunk schema must be a JSON list: {self.schema_path}")
        return data

    def _write_schema(self) -> None:
        tmp_path = self.schema_path.with_suffix(".json.tmp")
        tmp_path.write_text(json.dumps(list(self._records.values()), indent=2), encoding="utf-8")
        tmp_path.replace(self.schema_path)

    def content_path(self, chunk_id: str) -> Path:
        return self.root / f"{chunk_id}{CONTENT_SUFFIX}"

    def upsert_chunks(self, chunks: Sequence[Chunk]) -> None:
        if not chunks:
            return
        self.root.mkdir(parents=True, exist_ok=True)
        self._load()
        for chunk in chunks:
            self.content_path(chunk.id).write_text(chunk.content, encoding="utf-8")
            self._records[chunk.id] = chunk.to_record()
        self._write_schema()
        log.info("chunks_written", root=str(self.root), count=len(chunks), total=len(self._records))

    def records(self) -> List[Dict[str, Any]]:
        self._load()
        return list(self._records.values())

    def read_content(self, chunk_id: str) -> str:
        return self.content_path(chunk_id).read_text(encoding="utf-8")

    def clear(self) -> None:
        if self.root.exists():
            shutil.rmtree(self.root)
        self._records = {}
        self._loaded = True
        log.info("chunk_store_cleared", root=str(self.root))

    def check_integrity(self) -> IntegrityReport:
        """Compare schema entries against the content files on disk."""
        if not self.schema_path.exists():
            log.warning("chunk_schema_missing", path=str(self.schema_path))
        schema_ids = [record["id"] for record in self._read_schema()]
        on_disk = (
            {path.name[: -len(CONTENT_SUFFIX)] for path in self.root.rglob(f"*{CONTENT_SUFFIX}")}
            if self.root.exists()
            else set()
        )

        report = IntegrityReport()
        for chunk_id in schema_ids:
            if chunk_id in on_disk:
                report.valid.append(chunk_id)
            else:
                report.missing.append(chunk_id)
        known = set(schema_ids)
        report.orphaned = sorted(name for name in on_disk if name not in known)

        log.info(
            "integrity_checked",
            root=str(self.root),
            valid=len(report.valid),
            missing=len(report.missing),
            orphaned=len(report.orphaned),
        )
        return report
