"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime


@dataclass(slots=True)
class SourceDescriptor:
    """Describes the document a set of chunks was produced from.

    One descriptor is shared by every chunk of an ingest call, so it is kept
    mutable and compared by identity rather than copied into each chunk.
    """

    title: str
    kind: str | None = None
    url: str | None = None
    author: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ChunkMetadata:
    source: SourceDescriptor
    chunk_index: int
    hash: str
    tokens: int | None = None


@dataclass(frozen=True, slots=True)
class Chunk:
    """A bounded segment of a document plus its provenance."""

    id: str
    text: str
    metadata: ChunkMetadata

    def with_source(self, source: SourceDescriptor) -> "Chunk":
        return replace(self, metadata=replace(self.metadata, source=source))


@dataclass(frozen=True, slots=True)
class ScoredChunk:
    """A search result. Score semantics depend on the route that produced it."""

    chunk: Chunk
    score: float
    rank: int = 0


@dataclass(slots=True)
class EmbeddedChunk:
    """Row written to a vector store."""

    chunk: Chunk
    embedding: list[float]


@dataclass(slots=True)
class IngestResult:
    source_id: str
    chunks: list[Chunk] = field(default_factory=list)


@dataclass(slots=True)
class QueryResult:
    results: list[ScoredChunk] = field(default_factory=list)
    mode: str = "dense"


@dataclass(slots=True)
class AnswerResult:
    answer: str
    contexts: list[Chunk] = field(default_factory=list)
