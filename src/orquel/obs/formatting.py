"""Helpers for displaying and sanity-checking chunks and results."""

from __future__ import annotations

import logging
from typing import Any

from orquel.types import Chunk, ScoredChunk

logger = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Document"


def chunk_title(chunk: Chunk) -> str:
    title = chunk.metadata.source.title
    if not title:
        logger.warning("chunk %s has no source title", chunk.id)
        return UNKNOWN_TITLE
    return title


def unique_source_titles(chunks: list[Chunk]) -> list[str]:
    """Distinct non-empty titles in first-seen order."""
    titles: list[str] = []
    for chunk in chunks:
        title = chunk.metadata.source.title
        if title and title not in titles:
            titles.append(title)
    return titles


def format_search_results(results: list[ScoredChunk]) -> str:
    """Render ``1. Title (0.847)`` lines."""
    if not results:
        return "No results found"
    return "\n".join(
        f"{index}. {chunk_title(result.chunk)} ({result.score:.3f})"
        for index, result in enumerate(results, start=1)
    )


def summarize_contexts(contexts: list[Chunk]) -> str:
    if not contexts:
        return "No contexts used"
    sources = unique_source_titles(contexts)
    chunk_count = len(contexts)
    source_count = len(sources)
    return (
        f"Based on {chunk_count} chunk{'' if chunk_count == 1 else 's'} "
        f"from {source_count} source{'' if source_count == 1 else 's'}: {', '.join(sources)}"
    )


def validate_chunk(chunk: Any) -> Chunk:
    """Raise `ValueError` describing the first structural problem found."""
    if not isinstance(chunk, Chunk):
        raise ValueError("Chunk must be a Chunk instance")
    if not isinstance(chunk.id, str) or not chunk.id:
        raise ValueError("Chunk must have a non-empty string id")
    if not isinstance(chunk.text, str):
        raise ValueError("Chunk must have a string text")
    if not isinstance(chunk.metadata.source.title, str) or not chunk.metadata.source.title:
        raise ValueError("Chunk metadata.source must have a string title")
    if chunk.metadata.chunk_index < 0:
        raise ValueError("Chunk metadata.chunk_index must be non-negative")
    return chunk
