import pytest

from orquel.ingest.chunker import make_chunk
from orquel.retrieval.vector_store import (
    FaissVectorStore,
    InMemoryVectorStore,
    VectorStore,
    cosine_similarity,
    unit_vector,
)
from orquel.types import EmbeddedChunk, ScoredChunk, SourceDescriptor

_SOURCE = SourceDescriptor(title="vectors")


def _row(index: int, embedding: list[float], text: str | None = None) -> EmbeddedChunk:
    return EmbeddedChunk(
        chunk=make_chunk(text or f"chunk {index}", _SOURCE, index), embedding=embedding
    )


class _SearchOnlyStore(VectorStore):
    name = "search-only"

    async def upsert(self, rows: list[EmbeddedChunk]) -> None:
        return None

    async def search_by_vector(self, query: list[float], k: int) -> list[ScoredChunk]:
        return []


@pytest.mark.anyio
async def test_search_orders_by_cosine_similarity() -> None:
    store = InMemoryVectorStore()
    await store.upsert(
        [_row(0, [1.0, 0.0]), _row(1, [0.0, 1.0]), _row(2, [0.7, 0.7])]
    )

    results = await store.search_by_vector([1.0, 0.1], k=2)

    assert [item.chunk.metadata.chunk_index for item in results] == [0, 2]
    assert [item.rank for item in results] == [1, 2]
    assert results[0].score > results[1].score


@pytest.mark.anyio
async def test_upsert_replaces_rows_with_same_id() -> None:
    store = InMemoryVectorStore()
    await store.upsert([_row(0, [1.0, 0.0])])
    await store.upsert([_row(0, [0.0, 1.0])])

    results = await store.search_by_vector([0.0, 1.0], k=5)

    assert len(store) == 1
    assert results[0].score == pytest.approx(1.0)


@pytest.mark.anyio
async def test_search_by_ids_delete_and_clear() -> None:
    store = InMemoryVectorStore()
    rows = [_row(0, [1.0, 0.0]), _row(1, [0.0, 1.0]), _row(2, [1.0, 1.0])]
    await store.upsert(rows)

    found = await store.search_by_ids([rows[2].chunk.id, "missing"])
    assert [item.chunk.id for item in found] == [rows[2].chunk.id]

    await store.delete([rows[0].chunk.id])
    assert store.stats() == {"name": "memory-store", "chunk_count": 2, "dimension": 2}

    await store.clear()
    assert await store.search_by_vector([1.0, 0.0], k=3) == []


@pytest.mark.anyio
async def test_optional_capabilities_have_explicit_defaults() -> None:
    store = _SearchOnlyStore()

    assert await store.close() is None
    assert store.stats() == {"name": "search-only"}
    with pytest.raises(NotImplementedError):
        await store.delete(["x"])
    with pytest.raises(NotImplementedError):
        await store.search_by_ids(["x"])


def test_cosine_similarity_edge_cases() -> None:
    assert cosine_similarity([1.0, 0.0], [2.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 0.0])


@pytest.mark.anyio
async def test_faiss_store_scores_by_cosine_similarity() -> None:
    store = FaissVectorStore()
    await store.upsert([_row(0, [2.0, 0.0]), _row(1, [0.0, 3.0]), _row(2, [1.0, 1.0])])

    results = await store.search_by_vector([1.0, 0.1], k=2)

    assert [item.chunk.metadata.chunk_index for item in results] == [0, 2]
    assert results[0].score == pytest.approx(cosine_similarity([1.0, 0.1], [2.0, 0.0]), rel=1e-5)
    assert [item.rank for item in results] == [1, 2]


@pytest.mark.anyio
async def test_faiss_store_upsert_replaces_and_delete_removes() -> None:
    store = FaissVectorStore()
    first = _row(0, [1.0, 0.0])
    await store.upsert([first, _row(1, [0.0, 1.0])])
    await store.upsert([_row(0, [0.0, 1.0])])

    assert store.stats() == {"name": "faiss", "chunk_count": 2, "dimension": 2}
    replaced = await store.search_by_vector([0.0, 1.0], k=5)
    assert [item.score for item in replaced] == pytest.approx([1.0, 1.0], rel=1e-5)

    await store.delete([first.chunk.id, "missing"])
    remaining = await store.search_by_ids([first.chunk.id, _row(1, [0.0]).chunk.id])
    assert [item.chunk.metadata.chunk_index for item in remaining] == [1]

    await store.clear()
    assert await store.search_by_vector([1.0, 0.0], k=3) == []


def test_unit_vector_keeps_zero_vectors() -> None:
    assert unit_vector([3.0, 4.0]) == pytest.approx([0.6, 0.8])
    assert unit_vector([0.0, 0.0]) == [0.0, 0.0]
