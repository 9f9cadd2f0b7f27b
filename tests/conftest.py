"""Shared pytest fixtures and test environment defaults."""

from __future__ import annotations

import os

import pytest

from orquel.config import OrquelConfig
from orquel.generation.answerer import ExtractiveAnswerer
from orquel.ingest.embedder import HashingEmbedder
from orquel.orchestrator import Orquel, create_orquel
from orquel.retrieval.lexical import BM25LexicalStore
from orquel.retrieval.rerank import KeywordOverlapReranker
from orquel.retrieval.vector_store import InMemoryVectorStore

os.environ.pop("OPENAI_API_KEY", None)
os.environ.pop("ORQUEL_HYBRID_METHOD", None)
os.environ.pop("ORQUEL_VECTOR_STORE", None)


@pytest.fixture
def local_orquel() -> Orquel:
    return create_orquel(
        OrquelConfig(
            embeddings=HashingEmbedder(),
            vector=InMemoryVectorStore(),
            lexical=BM25LexicalStore(),
            reranker=KeywordOverlapReranker(),
            answerer=ExtractiveAnswerer(),
        )
    )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
