import json
from pathlib import Path

import pytest

from framechunk.chunking.models import ChunkFactory
from framechunk.storage.directory_store import DirectoryChunkStore


def _chunks(count: int = 3):
    factory = ChunkFactory("src/routes/+page.svelte", "sveltekit", "page", {"filePath": "src/routes/+page.svelte"})
    return [factory.build(f"<p>chunk {index}</p>", "element") for index in range(count)]


def test_upsert_writes_content_and_schema(tmp_path: Path) -> None:
    store = DirectoryChunkStore(tmp_path / "chunks")
    chunks = _chunks()

    store.upsert_chunks(chunks)

    schema = json.loads((tmp_path / "chunks" / "schema.json").read_text())
    assert [record["id"] for record in schema] == [chunk.id for chunk in chunks]
    assert schema[0]["framework"] == "sveltekit"
    assert schema[0]["type"] == "page"
    assert schema[0]["granularity"] == "element"
    assert store.read_content(chunks[1].id) == "<p>chunk 1</p>"


def test_repeated_upserts_are_keyed_by_id(tmp_path: Path) -> None:
    store = DirectoryChunkStore(tmp_path)
    chunks = _chunks()
    store.upsert_chunks(chunks[:2])
    store.upsert_chunks(chunks[1:])

    reopened = DirectoryChunkStore(tmp_path)
    assert [record["id"] for record in reopened.records()] == [chunk.id for chunk in chunks]


def test_integrity_reports_missing_and_orphaned(tmp_path: Path) -> None:
    store = DirectoryChunkStore(tmp_path)
    chunks = _chunks()
    store.upsert_chunks(chunks)
    store.content_path(chunks[0].id).unlink()
    (tmp_path / "stray.txt").write_text("left over")

    report = store.check_integrity()

    assert report.valid == [chunks[1].id, chunks[2].id]
    assert report.missing == [chunks[0].id]
    assert report.orphaned == ["stray"]
    assert not report.is_valid


def test_integrity_of_consistent_store(tmp_path: Path) -> None:
    store = DirectoryChunkStore(tmp_path)
    store.upsert_chunks(_chunks())
    assert store.check_integrity().is_valid


def test_clear_removes_everything(tmp_path: Path) -> None:
    store = DirectoryChunkStore(tmp_path / "chunks")
    store.upsert_chunks(_chunks())
    store.clear()

    assert not (tmp_path / "chunks").exists()
    assert store.records() == []


def test_corrupt_schema_is_reported(tmp_path: Path) -> None:
    (tmp_path / "schema.json").write_text("{not json")
    with pytest.raises(ValueError):
        DirectoryChunkStore(tmp_path).check_integrity()
