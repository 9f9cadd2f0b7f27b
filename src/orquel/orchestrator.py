"""Ingest, index, query and answer over injected collaborators."""

from __future__ import annotations

import asyncio
import logging
from hashlib import sha256
from pathlib import Path
from typing import Any

from orquel.config import AnswerOptions, OrquelConfig, QueryOptions
from orquel.errors import (
    ConfigurationError,
    EmbeddingError,
    GenerationError,
    OrquelError,
    RerankError,
    StorageError,
)
from orquel.ingest.chunker import MarkdownAwareChunker
from orquel.ingest.parser import ParserRegistry
from orquel.obs.formatting import format_search_results, summarize_contexts, validate_chunk
from orquel.obs.tracing import Timer
from orquel.retrieval.fusion import fuse
from orquel.retrieval.rerank import validate_permutation
from orquel.types import (
    AnswerResult,
    Chunk,
    EmbeddedChunk,
    IngestResult,
    QueryResult,
    ScoredChunk,
    SourceDescriptor,
)

logger = logging.getLogger(__name__)


class Orquel:
    """Coordinates chunker, embedder, stores, reranker and answerer.

    The instance holds no per-call state, so one instance can be shared by
    concurrent requests as long as its collaborators allow it. Failures from
    collaborators are wrapped in the `OrquelError` subclass for their stage and
    re-raised; nothing is retried.
    """

    def __init__(self, config: OrquelConfig) -> None:
        self.config = config
        self._chunker = MarkdownAwareChunker(config.chunking)
        self._log_level = logging.INFO if config.debug else logging.DEBUG
        self._log(
            "orquel configured: embeddings=%s vector=%s lexical=%s reranker=%s answerer=%s",
            config.embeddings.name,
            config.vector.name,
            config.lexical.name if config.lexical else "none",
            config.reranker.name if config.reranker else "none",
            config.answerer.name if config.answerer else "none",
        )

    async def ingest(self, source: SourceDescriptor, content: str | bytes) -> IngestResult:
        """Chunk ``content`` and stamp every chunk with ``source``.

        ``source_id`` combines the title with a content digest, so re-ingesting
        different content under one title does not collide.
        """

        text = content.decode("utf-8") if isinstance(content, bytes) else content
        if self.config.chunker is not None:
            raw_chunks = self.config.chunker(text, source)
        else:
            raw_chunks = self._chunker.chunk(text, source)

        chunks = [
            chunk if chunk.metadata.source is source else chunk.with_source(source)
            for chunk in raw_chunks
        ]
        if self.config.debug:
            self._validate(chunks)
        source_id = f"{source.title}-{sha256(text.encode('utf-8')).hexdigest()[:12]}"

        if chunks:
            sizes = [len(chunk.text) for chunk in chunks]
            self._log(
                "ingested %r: %d chars -> %d chunks (%d-%d chars)",
                source.title,
                len(text),
                len(chunks),
                min(sizes),
                max(sizes),
            )
        return IngestResult(source_id=source_id, chunks=chunks)

    async def ingest_path(
        self, path: str | Path, *, title: str | None = None, registry: ParserRegistry | None = None
    ) -> IngestResult:
        parsed = (registry or ParserRegistry()).parse_path(path, title=title)
        return await self.ingest(parsed.source, parsed.text)

    async def index(self, chunks: list[Chunk]) -> None:
        """Embed all chunk texts in one batch and write both stores.

        The vector store is written before the lexical store; a lexical failure
        leaves the vector store updated.
        """

        if not chunks:
            return

        with Timer() as timer:
            embeddings = await self._embed([chunk.text for chunk in chunks])
            rows = [
                EmbeddedChunk(chunk=chunk, embedding=embedding)
                for chunk, embedding in zip(chunks, embeddings, strict=True)
            ]

            try:
                await self.config.vector.upsert(rows)
            except Exception as exc:
                raise StorageError(
                    f"{self.config.vector.name} upsert of {len(rows)} rows failed",
                    stage="vector",
                ) from exc

            if self.config.lexical is not None:
                try:
                    await self.config.lexical.index(chunks)
                except Exception as exc:
                    raise StorageError(
                        f"{self.config.lexical.name} indexing of {len(chunks)} chunks failed",
                        stage="lexical",
                    ) from exc

        self._log("indexed %d chunks in %.1fms", len(chunks), timer.elapsed_ms)

    async def query(self, q: str, options: QueryOptions | None = None) -> QueryResult:
        options = options or QueryOptions()
        lexical = self.config.lexical
        reranker = self.config.reranker
        use_hybrid = (lexical is not None) if options.hybrid is None else options.hybrid
        use_rerank = (reranker is not None) if options.rerank is None else options.rerank

        with Timer() as timer:
            [query_vector] = await self._embed([q])

            if use_hybrid and lexical is not None:
                dense, lexical_hits = await asyncio.gather(
                    self._dense_search(query_vector, options.k),
                    self._lexical_search(q, options.k),
                )
                results = fuse(dense, lexical_hits, options.k, self.config.hybrid)
                mode = "hybrid"
                self._log(
                    "hybrid search: %d dense + %d lexical -> %d fused",
                    len(dense),
                    len(lexical_hits),
                    len(results),
                )
            else:
                results = await self._dense_search(query_vector, options.k)
                mode = "dense"

            if use_rerank and reranker is not None and results:
                results = await self._rerank(q, results)
                mode += "+rerank"

        self._log("%s query returned %d results in %.1fms", mode, len(results), timer.elapsed_ms)
        if self.config.debug and results:
            self._log("%s results:\n%s", mode, format_search_results(results))
        return QueryResult(results=results, mode=mode)

    async def answer(self, q: str, options: AnswerOptions | None = None) -> AnswerResult:
        answerer = self.config.answerer
        if answerer is None:
            raise ConfigurationError("No answerer configured")
        options = options or AnswerOptions()

        result = await self.query(q, QueryOptions(k=options.top_k))
        contexts = [item.chunk for item in result.results]

        try:
            answer = await answerer.answer(q, contexts)
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(f"{answerer.name} failed to generate an answer") from exc

        self._log("answered from %d contexts (%d chars)", len(contexts), len(answer))
        if self.config.debug:
            self._log("%s", summarize_contexts(contexts))
        return AnswerResult(answer=answer, contexts=contexts)

    async def close(self) -> None:
        """Release collaborator resources; optional collaborators may be absent."""
        for collaborator in self._collaborators().values():
            await collaborator.close()

    def describe(self) -> dict[str, Any]:
        return {role: collaborator.stats() for role, collaborator in self._collaborators().items()}

    def _collaborators(self) -> dict[str, Any]:
        roles = {
            "embeddings": self.config.embeddings,
            "vector": self.config.vector,
            "lexical": self.config.lexical,
            "reranker": self.config.reranker,
            "answerer": self.config.answerer,
        }
        return {role: value for role, value in roles.items() if value is not None}

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        embedder = self.config.embeddings
        try:
            vectors = await embedder.embed(texts)
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(f"{embedder.name} failed to embed {len(texts)} texts") from exc

        # Vectors are paired with their texts by position.
        if len(vectors) != len(texts):
            raise EmbeddingError(
                f"{embedder.name} returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors

    async def _dense_search(self, vector: list[float], k: int) -> list[ScoredChunk]:
        store = self.config.vector
        try:
            return await store.search_by_vector(vector, k)
        except Exception as exc:
            raise StorageError(f"{store.name} vector search failed", stage="vector") from exc

    async def _lexical_search(self, q: str, k: int) -> list[ScoredChunk]:
        store = self.config.lexical
        try:
            return await store.search(q, k)
        except Exception as exc:
            raise StorageError(f"{store.name} lexical search failed", stage="lexical") from exc

    async def _rerank(self, q: str, results: list[ScoredChunk]) -> list[ScoredChunk]:
        reranker = self.config.reranker
        try:
            order = await reranker.rerank(q, [item.chunk for item in results])
        except OrquelError:
            raise
        except Exception as exc:
            raise RerankError(f"{reranker.name} failed to rerank") from exc

        validate_permutation(order, len(results))
        return [
            ScoredChunk(chunk=results[index].chunk, score=results[index].score, rank=i + 1)
            for i, index in enumerate(order)
        ]

    def _validate(self, chunks: list[Chunk]) -> None:
        for chunk in chunks:
            try:
                validate_chunk(chunk)
            except ValueError as exc:
                raise ConfigurationError(
                    f"chunker produced an invalid chunk {chunk.id!r}"
                ) from exc

    def _log(self, message: str, *args: Any) -> None:
        logger.log(self._log_level, message, *args)


def create_orquel(config: OrquelConfig) -> Orquel:
    """Build an orchestrator from caller-owned configuration."""
    return Orquel(config)
