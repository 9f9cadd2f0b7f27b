"""Retrieval-augmented generation toolkit: chunking, hybrid search, answers."""

from .config import AnswerOptions, ChunkingConfig, HybridConfig, OrquelConfig, QueryOptions
from .ingest.chunker import chunk_text
from .orchestrator import Orquel, create_orquel
from .retrieval.fusion import merge_hybrid_results, normalize_scores
from .types import Chunk, ScoredChunk, SourceDescriptor

__all__ = [
    "AnswerOptions",
    "Chunk",
    "ChunkingConfig",
    "HybridConfig",
    "Orquel",
    "OrquelConfig",
    "QueryOptions",
    "ScoredChunk",
    "SourceDescriptor",
    "chunk_text",
    "create_orquel",
    "merge_hybrid_results",
    "normalize_scores",
]
