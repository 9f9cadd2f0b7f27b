"""Embedding abstractions, a deterministic baseline and a LangChain adapter."""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt
from typing import Any

from orquel.errors import ConfigurationError, EmbeddingError

logger = logging.getLogger(__name__)

_OPENAI_DIMENSIONS = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class Embedder(ABC):
    """Embedder interface used by indexing and query-time retrieval.

    ``embed`` must return exactly one vector per input text, in input order.
    """

    name: str = "embedder"
    dimension: int = 0

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts."""

    async def close(self) -> None:
        return None

    def stats(self) -> dict[str, Any]:
        return {"name": self.name, "dimension": self.dimension}


class HashingEmbedder(Embedder):
    """Deterministic sparse-like embedding without external model calls.

    Used for local runs and tests. In production, wrap a real provider with
    `LangChainEmbedder`.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.name = f"hashing-{dimension}"
        self.dimension = dimension

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]

    def _embed(self, text: str) -> list[float]:
        vector = [0.0 for _ in range(self.dimension)]
        tokens = text.lower().split()
        if not tokens:
            return vector

        for token in tokens:
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "little") % self.dimension
            sign = -1.0 if digest[4] % 2 else 1.0
            vector[idx] += sign

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


class LangChainEmbedder(Embedder):
    """Adapts any `langchain_core.embeddings.Embeddings` to the async contract."""

    def __init__(
        self,
        embeddings: Any,
        *,
        name: str | None = None,
        dimension: int = 0,
        batch_size: int = 100,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self._embeddings = embeddings
        self.name = name or type(embeddings).__name__
        self.dimension = dimension
        self.batch_size = batch_size

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        vectors: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                batch_vectors = await self._embeddings.aembed_documents(batch)
            except Exception as exc:
                raise EmbeddingError(
                    f"{self.name} failed to embed {len(batch)} texts"
                ) from exc
            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    f"{self.name} returned {len(batch_vectors)} vectors for {len(batch)} texts"
                )
            vectors.extend([float(value) for value in vector] for vector in batch_vectors)

        logger.debug("embedded %d texts with %s", len(texts), self.name)
        return vectors


def openai_embedder(
    model: str | None = None, *, batch_size: int = 100, max_retries: int = 3
) -> LangChainEmbedder:
    """Build an OpenAI embedder through `langchain_openai`.

    Raises:
        ConfigurationError: if ``OPENAI_API_KEY`` is not set.
    """

    if not os.getenv("OPENAI_API_KEY"):
        raise ConfigurationError(
            "OpenAI API key is required. Set the OPENAI_API_KEY environment variable."
        )

    from langchain_openai import OpenAIEmbeddings

    model_name = model or os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    return LangChainEmbedder(
        OpenAIEmbeddings(model=model_name, max_retries=max_retries),
        name=f"openai-{model_name}",
        dimension=_OPENAI_DIMENSIONS.get(model_name, 0),
        batch_size=batch_size,
    )
