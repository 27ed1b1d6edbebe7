"""
Greedy budget batching for constructs and paragraphs.

Items are merged in source order while they fit; anything larger than the
budget on its own is emitted alone. This is intentionally not bin packing:
each chunk maps back to a contiguous run of declarations.
"""
from __future__ import annotations

from typing import Any, Callable, List, Sequence, TypeVar

from ..logger import get_logger
from .models import Chunk, ChunkFactory, Construct, estimate_tokens

log = get_logger(__name__)

T = TypeVar("T")

CONSTRUCT_SEPARATOR = "\n\n"


def batch_by_budget(
    items: Sequence[T],
    size_of: Callable[[T], float],
    budget: float,
    separator_size: float = 0.0,
) -> List[List[T]]:
    """
    Group ``items`` into consecutive batches whose joined size fits ``budget``.

    ``separator_size`` is charged once for every item after the first in a
    batch, so the joined text is measured rather than the sum of its parts.
    """
    batches: List[List[T]] = []
    buffer: List[T] = []
    buffer_size = 0.0

    for item in items:
        size = size_of(item)
        if size > budget:
            if buffer:
                batches.append(buffer)
                buffer, buffer_size = [], 0.0
            batches.append([item])
        elif buffer and buffer_size + separator_size + size > budget:
            batches.append(buffer)
            buffer, buffer_size = [item], size
        elif buffer:
            buffer.append(item)
            buffer_size += separator_size + size
        else:
            buffer, buffer_size = [item], size

    if buffer:
        batches.append(buffer)
    return batches


def batch_texts(texts: Sequence[str], budget: float, separator: str = CONSTRUCT_SEPARATOR) -> List[str]:
    """Batch plain strings and join each batch with ``separator``."""
    batches = batch_by_budget(texts, estimate_tokens, budget, separator_size=estimate_tokens(separator))
    return [separator.join(batch) for batch in batches]


def assemble_construct_chunks(
    constructs: Sequence[Construct],
    budget: float,
    factory: ChunkFactory,
    granularity: str = "function",
    **extra: Any,
) -> List[Chunk]:
    """Turn ordered constructs into budget-sized chunks."""
    chunks: List[Chunk] = []
    separator_size = estimate_tokens(CONSTRUCT_SEPARATOR)
    for batch in batch_by_budget(constructs, lambda construct: construct.size, budget, separator_size):
        content = CONSTRUCT_SEPARATOR.join(construct.content for construct in batch)
        oversized = len(batch) == 1 and batch[0].size > budget
        if oversized:
            log.info(
                "construct_chunk_oversized",
                source=factory.source,
                construct=batch[0].name,
                size=batch[0].size,
                budget=budget,
            )
        chunks.append(
            factory.build(
                content,
                granularity,
                constructs=[construct.name for construct in batch],
                constructKinds=[construct.kind.value for construct in batch],
                startLine=batch[0].start_line,
                endLine=max(construct.end_line for construct in batch),
                exported=any(construct.metadata.get("isExported") for construct in batch),
                oversized=oversized,
                **extra,
            )
        )
    return chunks
