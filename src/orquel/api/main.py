"""FastAPI entrypoint for ingest/search/answer/trace endpoints.

Run with ``uvicorn --factory orquel.api.main:create_app``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Literal

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, model_validator

from orquel.config import AnswerOptions, HybridConfig, OrquelConfig, QueryOptions
from orquel.errors import ConfigurationError, OrquelError
from orquel.generation.answerer import Answerer, ExtractiveAnswerer, openai_answerer
from orquel.ingest.embedder import Embedder, HashingEmbedder, openai_embedder
from orquel.ingest.parser import ParserRegistry
from orquel.obs.logger import configure_logging
from orquel.obs.tracing import Timer, TraceStore
from orquel.orchestrator import Orquel, create_orquel
from orquel.retrieval.lexical import BM25LexicalStore
from orquel.retrieval.rerank import KeywordOverlapReranker
from orquel.retrieval.vector_store import FaissVectorStore, InMemoryVectorStore, VectorStore
from orquel.types import SourceDescriptor

logger = logging.getLogger(__name__)


class IngestRequest(BaseModel):
    title: str | None = None
    kind: Literal["md", "txt", "pdf", "docx", "html"] | None = None
    url: str | None = None
    author: str | None = None
    content: str | None = None
    path: str | None = None
    index: bool = True

    @model_validator(mode="after")
    def _content_or_path(self) -> "IngestRequest":
        if (self.content is None) == (self.path is None):
            raise ValueError("Provide exactly one of 'content' or 'path'")
        if self.content is not None and not self.title:
            raise ValueError("'title' is required when ingesting inline content")
        return self


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    k: int = Field(default=10, ge=1, le=100)
    hybrid: bool | None = None
    rerank: bool | None = None


class AnswerRequest(BaseModel):
    question: str = Field(min_length=1)
    top_k: int = Field(default=4, ge=1, le=20)


def _create_embedder() -> Embedder:
    if not os.getenv("OPENAI_API_KEY"):
        return HashingEmbedder()
    return openai_embedder()


def _create_answerer() -> Answerer:
    if not os.getenv("OPENAI_API_KEY"):
        return ExtractiveAnswerer()
    return openai_answerer()


def _create_vector_store() -> VectorStore:
    backend = os.getenv("ORQUEL_VECTOR_STORE", "memory").strip().lower()
    if backend == "faiss":
        return FaissVectorStore()
    if backend != "memory":
        raise ConfigurationError(f"Unknown ORQUEL_VECTOR_STORE backend: {backend}")
    return InMemoryVectorStore()


def build_default_orquel() -> Orquel:
    """Assemble collaborators from the environment.

    Without ``OPENAI_API_KEY`` everything runs locally: hashing embeddings and
    an extractive answerer.
    """

    method = os.getenv("ORQUEL_HYBRID_METHOD", "minmax")
    return create_orquel(
        OrquelConfig(
            embeddings=_create_embedder(),
            vector=_create_vector_store(),
            lexical=BM25LexicalStore(),
            reranker=KeywordOverlapReranker(),
            answerer=_create_answerer(),
            hybrid=HybridConfig(normalization_method=method),
        )
    )


def create_app(
    orquel: Orquel | None = None,
    *,
    trace_store: TraceStore | None = None,
    parser_registry: ParserRegistry | None = None,
) -> FastAPI:
    configure_logging()
    orq = orquel or build_default_orquel()
    traces = trace_store or TraceStore()
    parsers = parser_registry or ParserRegistry()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await orq.close()

    app = FastAPI(title="Orquel RAG", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "collaborators": orq.describe(),
            "trace_count": len(traces.list_recent(limit=traces.max_records)),
        }

    @app.post("/ingest")
    async def ingest(request: IngestRequest) -> dict[str, Any]:
        try:
            if request.path is not None:
                result = await orq.ingest_path(
                    request.path, title=request.title, registry=parsers
                )
            else:
                source = SourceDescriptor(
                    title=request.title or "",
                    kind=request.kind,
                    url=request.url,
                    author=request.author,
                )
                result = await orq.ingest(source, request.content or "")
            if request.index:
                await orq.index(result.chunks)
        except (OSError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except OrquelError as exc:
            raise _http_error(exc) from exc

        return {
            "source_id": result.source_id,
            "chunks_created": len(result.chunks),
            "chunk_ids": [chunk.id for chunk in result.chunks],
            "indexed": request.index,
        }

    @app.post("/search")
    async def search(request: SearchRequest) -> dict[str, Any]:
        options = QueryOptions(k=request.k, hybrid=request.hybrid, rerank=request.rerank)
        try:
            with Timer() as timer:
                result = await orq.query(request.query, options)
        except OrquelError as exc:
            raise _http_error(exc) from exc

        record = traces.create_record(
            operation="query",
            query=request.query,
            mode=result.mode,
            chunk_ids=[hit.chunk.id for hit in result.results],
            latency_ms=timer.elapsed_ms,
        )
        return {
            "trace_id": record.trace_id,
            "items": [
                {
                    "chunk_id": hit.chunk.id,
                    "title": hit.chunk.metadata.source.title,
                    "chunk_index": hit.chunk.metadata.chunk_index,
                    "score": hit.score,
                    "rank": hit.rank,
                    "text": hit.chunk.text,
                }
                for hit in result.results
            ],
        }

    @app.post("/answer")
    async def answer(request: AnswerRequest) -> dict[str, Any]:
        try:
            with Timer() as timer:
                result = await orq.answer(request.question, AnswerOptions(top_k=request.top_k))
        except OrquelError as exc:
            raise _http_error(exc) from exc

        record = traces.create_record(
            operation="answer",
            query=request.question,
            mode="answer",
            chunk_ids=[chunk.id for chunk in result.contexts],
            latency_ms=timer.elapsed_ms,
            answer=result.answer,
        )
        return {
            "answer": result.answer,
            "citations": [
                {"chunk_id": chunk.id, "title": chunk.metadata.source.title}
                for chunk in result.contexts
            ],
            "trace_id": record.trace_id,
            "latency_ms": record.latency_ms,
        }

    @app.get("/traces")
    async def list_traces(limit: int = 20) -> dict[str, Any]:
        return {"items": [asdict(record) for record in traces.list_recent(limit=limit)]}

    @app.get("/traces/{trace_id}")
    async def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = traces.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    async def metrics() -> dict[str, Any]:
        return traces.summary()

    return app


def _http_error(exc: OrquelError) -> HTTPException:
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    logger.error("request failed at %s stage: %s", exc.stage, exc)
    return HTTPException(status_code=502, detail=str(exc))
