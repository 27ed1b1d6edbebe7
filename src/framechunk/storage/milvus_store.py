"""
Milvus storage for chunks.

Chunk contents are embedded through the configured provider and upserted
together with their records into one collection.
"""
from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from langchain_core.embeddings import Embeddings
from pymilvus import (  # type: ignore
    Collection,
    CollectionSchema,
    DataType,
    FieldSchema,
    connections,
    utility,
)

from ..chunking.models import Chunk
from ..embeddings import EmbeddingPayload, EmbeddingProviderFactory
from ..logger import get_logger
from ..settings import AppSettings

log = get_logger(__name__)

MAX_TEXT_BYTES = 65535


def _fit_text(text: str, limit: int = MAX_TEXT_BYTES) -> str:
    encoded = text.encode("utf-8")
    if len(encoded) <= limit:
        return text
    return encoded[:limit].decode("utf-8", errors="ignore")


class MilvusChunkStore:
    """Embeds chunk contents and upserts them into Milvus."""

    def __init__(
        self,
        app_settings: AppSettings,
        embeddings: Optional[Embeddings] = None,
        collection_name: Optional[str] = None,
    ) -> None:
        self.settings = app_settings
        self.collection_name = collection_name or app_settings.milvus_collection
        self.dim = app_settings.embedding_dimension
        self._embeddings = embeddings
        self._collection: Optional[Collection] = None

    @property
    def embeddings(self) -> Embeddings:
        if self._embeddings is None:
            self._embeddings = EmbeddingProviderFactory.create(self.settings)
        return self._embeddings

    def connect(self) -> None:
        """Establish connection to Milvus using the configured URI."""
        log.info("connecting_milvus", uri=self.settings.milvus_uri)
        connections.connect(
            alias="default",
            uri=self.settings.milvus_uri,
            user=self.settings.milvus_username,
            password=self.settings.milvus_password,
        )
        self._collection = self._ensure_collection()

    def _ensure_collection(self) -> Collection:
        if utility.has_collection(self.collection_name):
            collection = Collection(self.collection_name)
            collection.load()
            return collection

        log.info("creating_milvus_collection", collection=self.collection_name, dim=self.dim)
        schema = CollectionSchema(
            fields=[
                FieldSchema(name="id", dtype=DataType.VARCHAR, is_primary=True, max_length=64),
                FieldSchema(name="framework", dtype=DataType.VARCHAR, max_length=64),
                FieldSchema(name="type", dtype=DataType.VARCHAR, max_length=64),
                FieldSchema(name="granularity", dtype=DataType.VARCHAR, max_length=32),
                FieldSchema(name="path", dtype=DataType.VARCHAR, max_length=1024),
                FieldSchema(name="text", dtype=DataType.VARCHAR, max_length=MAX_TEXT_BYTES),
                FieldSchema(name="embedding", dtype=DataType.FLOAT_VECTOR, dim=self.dim),
                FieldSchema(name="metadata", dtype=DataType.JSON),
            ],
            description="Framework-aware code chunks",
        )
        collection = Collection(name=self.collection_name, schema=schema)
        collection.create_index(
            field_name="embedding",
            index_params={
                "metric_type": "IP",
                "index_type": "IVF_FLAT",
                "params": {"nlist": 128},
            },
        )
        collection.load()
        return collection

    def embed(
        self,
        chunks: Sequence[Chunk],
        progress: Optional[Callable[[int, int], None]] = None,
    ) -> List[EmbeddingPayload]:
        contents = [chunk.content for chunk in chunks]
        total = len(contents)
        vectors: List[List[float]] = []
        batch_size = max(1, self.settings.embedding_batch_size)
        for start in range(0, total, batch_size):
            vectors.extend(self.embeddings.embed_documents(contents[start : start + batch_size]))
            if progress:
                progress(len(vectors), total)
        return [
            EmbeddingPayload(id=chunk.id, text=chunk.content, vector=vector, metadata=chunk.to_record())
            for chunk, vector in zip(chunks, vectors)
        ]

    def upsert_chunks(self, chunks: Sequence[Chunk]) -> None:
        if self._collection is None:
            raise RuntimeError("Milvus collection is not initialized. Call connect() first.")
        if not chunks:
            return

        payloads = self.embed(chunks)
        log.info("upserting_embeddings", collection=self.collection_name, count=len(payloads))
        ids, frameworks, types, granularities, paths, texts, vectors, metadata = ([] for _ in range(8))
        for payload in payloads:
            text = _fit_text(payload.text)
            if len(text) != len(payload.text):
                log.warning("chunk_text_truncated", id=payload.id, chars=len(payload.text))
            ids.append(payload.id)
            frameworks.append(payload.metadata.get("framework", ""))
            types.append(payload.metadata.get("type", ""))
            granularities.append(payload.metadata.get("granularity", ""))
            paths.append(payload.metadata.get("filePath", ""))
            texts.append(text)
            vectors.append(payload.vector)
            metadata.append(payload.metadata)

        self._collection.upsert([ids, frameworks, types, granularities, paths, texts, vectors, metadata])

    def search(self, query: str, top_k: int = 5) -> list:
        """Embed ``query`` and run a vector search."""
        if self._collection is None:
            raise RuntimeError("Milvus collection is not initialized. Call connect() first.")
        return self._collection.search(
            data=[self.embeddings.embed_query(query)],
            anns_field="embedding",
            param={"metric_type": "IP", "params": {"nprobe": 16}},
            limit=top_k,
            output_fields=["framework", "type", "granularity", "path", "text", "metadata"],
        )
