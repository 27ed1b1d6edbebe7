"""
Storage collaborators that receive emitted chunks.
"""

from .base import ChunkSink
from .directory_store import DirectoryChunkStore, IntegrityReport
from .milvus_store import MilvusChunkStore

__all__ = ["ChunkSink", "DirectoryChunkStore", "IntegrityReport", "MilvusChunkStore"]
