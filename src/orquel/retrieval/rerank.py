"""Second-pass relevance ordering over retrieved chunks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from orquel.errors import RerankError
from orquel.retrieval.lexical import tokenize
from orquel.types import Chunk


class Reranker(ABC):
    """Reranker interface applied after retrieval or fusion."""

    name: str = "reranker"

    @abstractmethod
    async def rerank(self, query: str, chunks: list[Chunk]) -> list[int]:
        """Return indices into ``chunks`` in new relevance order."""

    async def close(self) -> None:
        return None

    def stats(self) -> dict[str, Any]:
        return {"name": self.name}


class KeywordOverlapReranker(Reranker):
    """Lightweight reranker using query-chunk term overlap.

    Chunks with equal overlap keep their incoming order, so upstream ranking
    acts as the tie-break.
    """

    name = "keyword-overlap"

    async def rerank(self, query: str, chunks: list[Chunk]) -> list[int]:
        query_terms = set(tokenize(query))
        overlaps = []
        for chunk in chunks:
            chunk_terms = set(tokenize(chunk.text))
            overlaps.append(len(query_terms & chunk_terms) / max(1, len(query_terms)))
        return sorted(range(len(chunks)), key=lambda i: overlaps[i], reverse=True)


def validate_permutation(order: list[int], size: int) -> list[int]:
    """Ensure ``order`` is a bijection of ``int`` indices over ``range(size)``."""

    if (
        len(order) != size
        or not all(type(index) is int for index in order)
        or sorted(order) != list(range(size))
    ):
        raise RerankError(
            f"Reranker must return a permutation of range({size}), got {order!r}"
        )
    return order
