"""
Embedding providers used when chunks are stored in a vector database.
"""

from .providers import EmbeddingPayload, EmbeddingProviderFactory

__all__ = ["EmbeddingPayload", "EmbeddingProviderFactory"]
