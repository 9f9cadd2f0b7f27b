"""Vector store interface with in-memory and FAISS cosine-similarity backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from math import sqrt
from typing import Any

from langchain_core.embeddings import Embeddings

from orquel.errors import ConfigurationError
from orquel.types import Chunk, EmbeddedChunk, ScoredChunk


class VectorStore(ABC):
    """Minimal vector store contract for dense retrieval.

    `close` and `stats` are optional capabilities with no-op defaults, so the
    orchestrator can call them on any store.
    """

    name: str = "vector-store"

    @abstractmethod
    async def upsert(self, rows: list[EmbeddedChunk]) -> None:
        """Insert or replace chunk vectors, keyed by chunk id."""

    @abstractmethod
    async def search_by_vector(self, query: list[float], k: int) -> list[ScoredChunk]:
        """Return up to ``k`` chunks by descending similarity."""

    async def search_by_ids(self, ids: list[str]) -> list[ScoredChunk]:
        raise NotImplementedError(f"{self.name} does not support lookup by id")

    async def delete(self, ids: list[str]) -> None:
        raise NotImplementedError(f"{self.name} does not support deletion")

    async def clear(self) -> None:
        raise NotImplementedError(f"{self.name} does not support clearing")

    async def close(self) -> None:
        return None

    def stats(self) -> dict[str, Any]:
        return {"name": self.name}


@dataclass(slots=True)
class _StoredVector:
    chunk: Chunk
    embedding: list[float]


class InMemoryVectorStore(VectorStore):
    """Deterministic vector store used for tests and local prototyping.

    Search is exhaustive cosine similarity; equal scores keep insertion order.
    """

    name = "memory-store"

    def __init__(self) -> None:
        self._store: dict[str, _StoredVector] = {}

    async def upsert(self, rows: list[EmbeddedChunk]) -> None:
        for row in rows:
            self._store.pop(row.chunk.id, None)
            self._store[row.chunk.id] = _StoredVector(
                chunk=row.chunk, embedding=list(row.embedding)
            )

    async def search_by_vector(self, query: list[float], k: int) -> list[ScoredChunk]:
        ranked = sorted(
            (
                (record.chunk, cosine_similarity(query, record.embedding))
                for record in self._store.values()
            ),
            key=lambda pair: pair[1],
            reverse=True,
        )
        return [
            ScoredChunk(chunk=chunk, score=score, rank=i + 1)
            for i, (chunk, score) in enumerate(ranked[:k])
        ]

    async def search_by_ids(self, ids: list[str]) -> list[ScoredChunk]:
        wanted = set(ids)
        matches = [record.chunk for record in self._store.values() if record.chunk.id in wanted]
        return [
            ScoredChunk(chunk=chunk, score=1.0, rank=i + 1) for i, chunk in enumerate(matches)
        ]

    async def delete(self, ids: list[str]) -> None:
        for chunk_id in ids:
            self._store.pop(chunk_id, None)

    async def clear(self) -> None:
        self._store.clear()

    def stats(self) -> dict[str, Any]:
        dimensions = {len(record.embedding) for record in self._store.values()}
        return {
            "name": self.name,
            "chunk_count": len(self._store),
            "dimension": dimensions.pop() if len(dimensions) == 1 else None,
        }

    def __len__(self) -> int:
        return len(self._store)


class FaissVectorStore(VectorStore):
    """FAISS index via the LangChain community integration.

    Vectors are scaled to unit length and searched by inner product, so scores
    are cosine similarities like `InMemoryVectorStore`. Embeddings always arrive
    precomputed from the orchestrator; the index never embeds text itself.
    """

    name = "faiss"

    def __init__(self) -> None:
        try:
            from langchain_community.vectorstores import FAISS
            from langchain_community.vectorstores.utils import DistanceStrategy
        except ImportError as exc:
            raise ConfigurationError(
                "FAISS dependencies are not available. Install langchain-community/faiss-cpu."
            ) from exc

        self._faiss_cls = FAISS
        self._distance_strategy = DistanceStrategy.MAX_INNER_PRODUCT
        self._embeddings = _PrecomputedEmbeddings()
        self._index: Any | None = None
        self._chunks: dict[str, Chunk] = {}
        self._dimension: int | None = None

    async def upsert(self, rows: list[EmbeddedChunk]) -> None:
        # FAISS rejects duplicate ids, so the last row per id wins and stale
        # vectors are deleted before re-adding.
        latest = {row.chunk.id: row for row in rows}
        if not latest:
            return

        existing = [chunk_id for chunk_id in latest if chunk_id in self._chunks]
        if existing and self._index is not None:
            self._index.delete(existing)

        ids = list(latest)
        text_embeddings = [(row.chunk.text, unit_vector(row.embedding)) for row in latest.values()]
        metadatas = [{"chunk_id": chunk_id} for chunk_id in ids]
        if self._index is None:
            self._index = self._faiss_cls.from_embeddings(
                text_embeddings=text_embeddings,
                embedding=self._embeddings,
                metadatas=metadatas,
                ids=ids,
                distance_strategy=self._distance_strategy,
            )
            self._dimension = len(text_embeddings[0][1])
        else:
            self._index.add_embeddings(
                text_embeddings=text_embeddings, metadatas=metadatas, ids=ids
            )

        for chunk_id, row in latest.items():
            self._chunks.pop(chunk_id, None)
            self._chunks[chunk_id] = row.chunk

    async def search_by_vector(self, query: list[float], k: int) -> list[ScoredChunk]:
        if self._index is None or not self._chunks:
            return []
        docs_and_scores = self._index.similarity_search_with_score_by_vector(
            embedding=unit_vector(query), k=min(k, len(self._chunks))
        )
        return [
            ScoredChunk(
                chunk=self._chunks[doc.metadata["chunk_id"]], score=float(score), rank=rank
            )
            for rank, (doc, score) in enumerate(docs_and_scores, start=1)
        ]

    async def search_by_ids(self, ids: list[str]) -> list[ScoredChunk]:
        matches = [self._chunks[chunk_id] for chunk_id in ids if chunk_id in self._chunks]
        return [
            ScoredChunk(chunk=chunk, score=1.0, rank=i + 1) for i, chunk in enumerate(matches)
        ]

    async def delete(self, ids: list[str]) -> None:
        known = [chunk_id for chunk_id in dict.fromkeys(ids) if chunk_id in self._chunks]
        if not known or self._index is None:
            return
        self._index.delete(known)
        for chunk_id in known:
            del self._chunks[chunk_id]

    async def clear(self) -> None:
        self._index = None
        self._chunks.clear()
        self._dimension = None

    def stats(self) -> dict[str, Any]:
        return {"name": self.name, "chunk_count": len(self._chunks), "dimension": self._dimension}


class _PrecomputedEmbeddings(Embeddings):
    """Placeholder embedding function for an index fed precomputed vectors."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        raise NotImplementedError("FaissVectorStore only accepts precomputed embeddings")

    def embed_query(self, text: str) -> list[float]:
        raise NotImplementedError("FaissVectorStore only accepts precomputed embeddings")


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Dot product over vector norms; a zero vector has similarity 0."""

    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)


def unit_vector(vector: list[float]) -> list[float]:
    norm = sqrt(sum(x * x for x in vector))
    if norm == 0:
        return list(vector)
    return [x / norm for x in vector]
