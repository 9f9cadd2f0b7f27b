"""Keyword search over chunk text using BM25."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any

from rank_bm25 import BM25Plus

from orquel.types import Chunk, ScoredChunk

_TOKEN_PATTERN = re.compile(r"\w+", flags=re.UNICODE)


def tokenize(text: str) -> list[str]:
    return [token.lower() for token in _TOKEN_PATTERN.findall(text)]


class LexicalStore(ABC):
    """Lexical (term-matching) search contract."""

    name: str = "lexical-store"

    @abstractmethod
    async def index(self, chunks: list[Chunk]) -> None:
        """Add or replace chunks, keyed by chunk id."""

    @abstractmethod
    async def search(self, text: str, k: int) -> list[ScoredChunk]:
        """Return up to ``k`` chunks by descending relevance."""

    async def delete(self, ids: list[str]) -> None:
        raise NotImplementedError(f"{self.name} does not support deletion")

    async def clear(self) -> None:
        raise NotImplementedError(f"{self.name} does not support clearing")

    async def close(self) -> None:
        return None

    def stats(self) -> dict[str, Any]:
        return {"name": self.name}


class BM25LexicalStore(LexicalStore):
    """In-memory BM25+ index.

    BM25+ keeps every term weight positive regardless of corpus size, so
    scores stay comparable even for a handful of chunks. Only chunks sharing at
    least one term with the query are returned. The index is rebuilt lazily on
    the first search after a write.
    """

    name = "bm25-memory"

    def __init__(self, *, k1: float = 1.5, b: float = 0.75) -> None:
        self.k1 = k1
        self.b = b
        self._chunks: dict[str, Chunk] = {}
        self._tokens: dict[str, list[str]] = {}
        self._bm25: BM25Plus | None = None
        self._order: list[str] = []

    async def index(self, chunks: list[Chunk]) -> None:
        for chunk in chunks:
            self._chunks.pop(chunk.id, None)
            self._chunks[chunk.id] = chunk
            self._tokens[chunk.id] = tokenize(chunk.text)
        self._bm25 = None

    async def search(self, text: str, k: int) -> list[ScoredChunk]:
        query_tokens = tokenize(text)
        if not query_tokens or not self._chunks:
            return []

        bm25 = self._ensure_index()
        scores = bm25.get_scores(query_tokens)
        query_terms = set(query_tokens)

        matches = [
            (self._chunks[chunk_id], float(score))
            for chunk_id, score in zip(self._order, scores)
            if query_terms.intersection(self._tokens[chunk_id])
        ]
        matches.sort(key=lambda pair: pair[1], reverse=True)
        return [
            ScoredChunk(chunk=chunk, score=score, rank=i + 1)
            for i, (chunk, score) in enumerate(matches[:k])
        ]

    async def delete(self, ids: list[str]) -> None:
        for chunk_id in ids:
            self._chunks.pop(chunk_id, None)
            self._tokens.pop(chunk_id, None)
        self._bm25 = None

    async def clear(self) -> None:
        self._chunks.clear()
        self._tokens.clear()
        self._bm25 = None

    def stats(self) -> dict[str, Any]:
        return {"name": self.name, "chunk_count": len(self._chunks)}

    def _ensure_index(self) -> BM25Plus:
        if self._bm25 is None:
            self._order = list(self._chunks)
            # BM25 divides by average document length; keep every document non-empty.
            corpus = [self._tokens[chunk_id] or [""] for chunk_id in self._order]
            self._bm25 = BM25Plus(corpus, k1=self.k1, b=self.b)
        return self._bm25
