"""Configuration models for the retrieval pipeline."""

from __future__ import annotations

from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from orquel.generation.answerer import Answerer
from orquel.ingest.embedder import Embedder
from orquel.retrieval.lexical import LexicalStore
from orquel.retrieval.rerank import Reranker
from orquel.retrieval.vector_store import VectorStore
from orquel.types import Chunk, SourceDescriptor


class ChunkingConfig(BaseModel):
    """Configures character-window chunking and heading-aware sectioning."""

    max_chunk_size: int = Field(default=1200, ge=1)
    overlap: int = Field(default=150, ge=0)
    respect_markdown_headings: bool = True


class HybridConfig(BaseModel):
    """Configures dense/lexical score fusion."""

    dense_weight: float = Field(default=0.65, ge=0.0, le=1.0)
    lexical_weight: float = Field(default=0.35, ge=0.0, le=1.0)
    normalization_method: Literal["minmax", "zscore", "rrf"] = "minmax"
    rrf_k: int = Field(default=60, ge=1)


class QueryOptions(BaseModel):
    """Per-call retrieval options.

    ``hybrid`` and ``rerank`` default to "on when the collaborator exists".
    """

    k: int = Field(default=10, ge=1)
    hybrid: bool | None = None
    rerank: bool | None = None


class AnswerOptions(BaseModel):
    top_k: int = Field(default=4, ge=1)


class OrquelConfig(BaseModel):
    """Caller-owned wiring of collaborators for one orchestrator instance."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    embeddings: Embedder
    vector: VectorStore
    lexical: LexicalStore | None = None
    reranker: Reranker | None = None
    answerer: Answerer | None = None
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    hybrid: HybridConfig = Field(default_factory=HybridConfig)
    chunker: Callable[[str, SourceDescriptor], list[Chunk]] | None = None
    debug: bool = False
