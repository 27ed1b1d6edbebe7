from framechunk.chunking.assembler import assemble_construct_chunks, batch_by_budget, batch_texts
from framechunk.chunking.models import ChunkFactory, Construct, ConstructKind, estimate_tokens


def _construct(name: str, size_chars: int, line: int) -> Construct:
    return Construct(
        kind=ConstructKind.FUNCTION,
        name=name,
        start_line=line,
        end_line=line,
        content="x" * size_chars,
    )


def test_batches_preserve_order_and_budget() -> None:
    sizes = [3, 4, 2, 5, 1, 1]
    batches = batch_by_budget(sizes, float, budget=6)

    assert [item for batch in batches for item in batch] == sizes
    assert batches == [[3], [4, 2], [5, 1], [1]]
    assert all(sum(batch) <= 6 for batch in batches)


def test_oversized_item_flushes_buffer_and_stands_alone() -> None:
    batches = batch_by_budget([2, 2, 50, 1], float, budget=10)
    assert batches == [[2, 2], [50], [1]]


def test_batch_texts_joins_with_blank_line() -> None:
    texts = ["a" * 8, "b" * 8, "c" * 40]
    assert batch_texts(texts, budget=5) == ["a" * 8 + "\n\n" + "b" * 8, "c" * 40]


def test_assembled_chunks_reconstruct_construct_order() -> None:
    constructs = [
        _construct("first", 400, 1),
        _construct("second", 400, 3),
        _construct("huge", 8000, 5),
        _construct("third", 400, 9),
    ]
    factory = ChunkFactory("src/lib/api.ts", "typescript", "util", {"filePath": "src/lib/api.ts"})

    chunks = assemble_construct_chunks(constructs, budget=250, factory=factory)

    assert [chunk.metadata["constructs"] for chunk in chunks] == [["first", "second"], ["huge"], ["third"]]
    assert "\n\n".join(chunk.content for chunk in chunks) == "\n\n".join(c.content for c in constructs)
    assert chunks[1].metadata["oversized"] is True
    assert chunks[0].metadata["oversized"] is False
    assert chunks[0].metadata["startLine"] == 1
    assert chunks[0].metadata["endLine"] == 3
    assert [chunk.metadata["chunkIndex"] for chunk in chunks] == [0, 1, 2]
    assert len({chunk.id for chunk in chunks}) == 3


def test_separator_counts_towards_the_budget() -> None:
    assert batch_by_budget([3, 3], float, budget=6, separator_size=0.5) == [[3], [3]]
    assert batch_by_budget([3, 2, 1], float, budget=6, separator_size=0.5) == [[3, 2], [1]]


def test_merged_chunks_stay_within_budget() -> None:
    constructs = [_construct(f"fn{index}", 400, index + 1) for index in range(6)]
    factory = ChunkFactory("src/lib/math.ts", "typescript", "util", {})

    chunks = assemble_construct_chunks(constructs, budget=200, factory=factory)

    assert len(chunks) == 6
    assert all(estimate_tokens(chunk.content) <= 200 for chunk in chunks)
    assert not any(chunk.metadata["oversized"] for chunk in chunks)

    merged = assemble_construct_chunks(constructs, budget=250, factory=factory)
    assert all(len(chunk.metadata["constructs"]) == 2 for chunk in merged)
    assert all(estimate_tokens(chunk.content) <= 250 for chunk in merged)
