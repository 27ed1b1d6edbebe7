"""
Chunking primitives: construct extraction, template splitting, budget
batching and knowledge section splitting.
"""

from .assembler import assemble_construct_chunks, batch_by_budget, batch_texts
from .knowledge import split_knowledge
from .models import Chunk, ChunkFactory, Construct, ConstructKind, FileChunks, estimate_tokens
from .template_splitter import TemplateCandidate, TemplateSplitter
from .typescript import ExtractionResult, TypeScriptExtractor

__all__ = [
    "Chunk",
    "ChunkFactory",
    "Construct",
    "ConstructKind",
    "ExtractionResult",
    "FileChunks",
    "TemplateCandidate",
    "TemplateSplitter",
    "TypeScriptExtractor",
    "assemble_construct_chunks",
    "batch_by_budget",
    "batch_texts",
    "estimate_tokens",
    "split_knowledge",
]
