from dataclasses import replace

import pytest

from orquel.ingest.chunker import make_chunk
from orquel.retrieval.lexical import BM25LexicalStore
from orquel.types import SourceDescriptor

pytestmark = pytest.mark.anyio

_SOURCE = SourceDescriptor(title="kb")
_TEXTS = [
    "Employees must encrypt customer data at rest.",
    "Backups rotate weekly and are stored offsite.",
    "Encryption keys are rotated every quarter; keys live in the vault.",
]


async def _indexed_store() -> BM25LexicalStore:
    store = BM25LexicalStore()
    await store.index([make_chunk(text, _SOURCE, i) for i, text in enumerate(_TEXTS)])
    return store


async def test_search_returns_only_term_matches() -> None:
    store = await _indexed_store()

    results = await store.search("rotation of encryption keys", k=5)

    assert [item.chunk.metadata.chunk_index for item in results] == [2]
    assert results[0].score > 0
    assert results[0].rank == 1


async def test_search_ranks_by_bm25_and_truncates() -> None:
    store = await _indexed_store()

    results = await store.search("keys rotate weekly", k=1)

    assert len(results) == 1
    assert results[0].chunk.metadata.chunk_index in (1, 2)


async def test_empty_query_or_index_returns_nothing() -> None:
    store = await _indexed_store()

    assert await store.search("   ", k=3) == []
    assert await BM25LexicalStore().search("data", k=3) == []


async def test_clear_empties_the_index() -> None:
    store = await _indexed_store()

    await store.clear()

    assert store.stats() == {"name": "bm25-memory", "chunk_count": 0}
    assert await store.search("encrypt", k=3) == []


async def test_reindex_replaces_by_id_and_delete_removes() -> None:
    store = await _indexed_store()
    original = make_chunk(_TEXTS[0], _SOURCE, 0)
    rewritten = replace(original, text="Quarterly audits review vault access.")

    await store.index([rewritten])
    assert store.stats()["chunk_count"] == 3
    assert await store.search("customer", k=3) == []
    vault_hits = await store.search("vault", k=3)
    assert {item.chunk.id for item in vault_hits} == {
        original.id,
        make_chunk(_TEXTS[2], _SOURCE, 2).id,
    }

    await store.delete([original.id])
    assert store.stats()["chunk_count"] == 2
    assert await store.search("audits", k=3) == []
