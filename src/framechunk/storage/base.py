"""
The contract between the chunking run and whatever stores its output.
"""
from __future__ import annotations

from typing import Protocol, Sequence

from ..chunking.models import Chunk


class ChunkSink(Protocol):
    """Receives emitted chunks in order, one batch at a time."""

    def upsert_chunks(self, chunks: Sequence[Chunk]) -> None:
        ...
