"""
Service layer orchestrating scanning, chunking and storage.
"""

from .indexer import ChunkEmitter, IndexerService, IndexingCallbacks, IndexingResult

__all__ = ["ChunkEmitter", "IndexerService", "IndexingCallbacks", "IndexingResult"]
