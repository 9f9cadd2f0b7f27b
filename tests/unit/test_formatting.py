import logging

import pytest

from orquel.ingest.chunker import make_chunk
from orquel.obs.formatting import (
    UNKNOWN_TITLE,
    chunk_title,
    format_search_results,
    summarize_contexts,
    unique_source_titles,
    validate_chunk,
)
from orquel.types import ScoredChunk, SourceDescriptor

_POLICY = SourceDescriptor(title="policy")
_HANDBOOK = SourceDescriptor(title="handbook")


def test_format_search_results() -> None:
    results = [
        ScoredChunk(chunk=make_chunk("a", _POLICY, 0), score=0.8471),
        ScoredChunk(chunk=make_chunk("b", _HANDBOOK, 0), score=0.5),
    ]

    assert format_search_results(results) == "1. policy (0.847)\n2. handbook (0.500)"
    assert format_search_results([]) == "No results found"


def test_summarize_contexts_counts_unique_sources() -> None:
    contexts = [
        make_chunk("a", _POLICY, 0),
        make_chunk("b", _POLICY, 1),
        make_chunk("c", _HANDBOOK, 0),
    ]

    assert unique_source_titles(contexts) == ["policy", "handbook"]
    assert summarize_contexts(contexts) == "Based on 3 chunks from 2 sources: policy, handbook"
    assert summarize_contexts(contexts[:1]) == "Based on 1 chunk from 1 source: policy"
    assert summarize_contexts([]) == "No contexts used"


def test_chunk_title_falls_back_for_untitled_sources(caplog: pytest.LogCaptureFixture) -> None:
    chunk = make_chunk("orphan", SourceDescriptor(title=""), 0)

    with caplog.at_level(logging.WARNING, logger="orquel.obs.formatting"):
        assert chunk_title(chunk) == UNKNOWN_TITLE

    assert "has no source title" in caplog.text


def test_validate_chunk() -> None:
    chunk = make_chunk("valid", _POLICY, 0)

    assert validate_chunk(chunk) is chunk
    with pytest.raises(ValueError, match="Chunk instance"):
        validate_chunk({"id": "x"})
    with pytest.raises(ValueError, match="title"):
        validate_chunk(make_chunk("untitled", SourceDescriptor(title=""), 0))
