"""Score normalization and dense/lexical result fusion."""

from __future__ import annotations

from dataclasses import dataclass
from math import exp, sqrt
from typing import Literal

from orquel.config import HybridConfig
from orquel.types import Chunk, ScoredChunk

NormalizationMethod = Literal["minmax", "zscore"]


def normalize_scores(
    results: list[ScoredChunk], method: NormalizationMethod = "minmax"
) -> list[ScoredChunk]:
    """Rescale scores into [0, 1] so heterogeneous routes can be added.

    An all-tied result set is treated as uniformly maximally relevant: every
    score becomes 1.0.
    """

    if not results:
        return []
    if method == "zscore":
        return _normalize_zscore(results)

    raw_scores = [item.score for item in results]
    high = max(raw_scores)
    low = min(raw_scores)
    if high == low:
        return [ScoredChunk(chunk=item.chunk, score=1.0, rank=item.rank) for item in results]

    return [
        ScoredChunk(chunk=item.chunk, score=(item.score - low) / (high - low), rank=item.rank)
        for item in results
    ]


def _normalize_zscore(results: list[ScoredChunk]) -> list[ScoredChunk]:
    if len(results) == 1:
        return [ScoredChunk(chunk=results[0].chunk, score=1.0, rank=results[0].rank)]

    scores = [item.score for item in results]
    mean = sum(scores) / len(scores)
    std = sqrt(sum((score - mean) ** 2 for score in scores) / len(scores))
    if std == 0:
        return [ScoredChunk(chunk=item.chunk, score=1.0, rank=item.rank) for item in results]

    return [
        ScoredChunk(
            chunk=item.chunk,
            score=1.0 / (1.0 + exp(-(item.score - mean) / std)),
            rank=item.rank,
        )
        for item in results
    ]


def merge_hybrid_results(
    dense: list[ScoredChunk],
    lexical: list[ScoredChunk],
    k: int,
    dense_weight: float = 0.65,
    lexical_weight: float = 0.35,
    *,
    method: NormalizationMethod = "minmax",
) -> list[ScoredChunk]:
    """Fuse two result lists by weighted addition of normalized scores.

    Fusion process:
    1. Normalize each list independently.
    2. Seed an id-keyed accumulator with ``dense * dense_weight``.
    3. Add ``lexical * lexical_weight`` to existing entries, or insert it as
       a new entry. A lexical-only hit gets no dense penalty.
    4. Sort descending and keep the top ``k``.

    Ties keep accumulator insertion order (dense order, then lexical-only
    order) because the sort is stable.
    """

    chunks: dict[str, Chunk] = {}
    scores: dict[str, float] = {}
    for item in normalize_scores(dense, method):
        chunks[item.chunk.id] = item.chunk
        scores[item.chunk.id] = item.score * dense_weight

    for item in normalize_scores(lexical, method):
        chunk_id = item.chunk.id
        if chunk_id in scores:
            scores[chunk_id] += item.score * lexical_weight
        else:
            chunks[chunk_id] = item.chunk
            scores[chunk_id] = item.score * lexical_weight

    ranked = sorted(scores.items(), key=lambda pair: pair[1], reverse=True)
    return [
        ScoredChunk(chunk=chunks[chunk_id], score=score, rank=i + 1)
        for i, (chunk_id, score) in enumerate(ranked[:k])
    ]


def reciprocal_rank_fusion(
    dense: list[ScoredChunk],
    lexical: list[ScoredChunk],
    k: int,
    rrf_k: int = 60,
) -> list[ScoredChunk]:
    """Rank-only fusion: ``score(d) = sum(1 / (rrf_k + rank(d)))``.

    Ranks are 1-based positions within each input list; raw scores are ignored.
    """

    chunks: dict[str, Chunk] = {}
    scores: dict[str, float] = {}
    for items in (dense, lexical):
        for rank, item in enumerate(items, start=1):
            chunk_id = item.chunk.id
            chunks.setdefault(chunk_id, item.chunk)
            scores[chunk_id] = scores.get(chunk_id, 0.0) + 1.0 / (rrf_k + rank)

    ranked = sorted(scores.items(), key=lambda pair: pair[1], reverse=True)
    return [
        ScoredChunk(chunk=chunks[chunk_id], score=score, rank=i + 1)
        for i, (chunk_id, score) in enumerate(ranked[:k])
    ]


def fuse(
    dense: list[ScoredChunk],
    lexical: list[ScoredChunk],
    k: int,
    config: HybridConfig | None = None,
) -> list[ScoredChunk]:
    """Fuse with the strategy selected by ``config.normalization_method``."""

    config = config or HybridConfig()
    if config.normalization_method == "rrf":
        return reciprocal_rank_fusion(dense, lexical, k, rrf_k=config.rrf_k)
    return merge_hybrid_results(
        dense,
        lexical,
        k,
        config.dense_weight,
        config.lexical_weight,
        method=config.normalization_method,
    )


@dataclass(slots=True)
class HybridOverlap:
    dense_only: int
    lexical_only: int
    overlap: int
    overlap_percentage: float
    complementary_score: float


def analyze_hybrid_overlap(
    dense: list[ScoredChunk], lexical: list[ScoredChunk]
) -> HybridOverlap:
    """Measure how much the two routes agree.

    ``complementary_score`` is 0 when both routes return the same chunks and 1
    when they share none.
    """

    dense_ids = {item.chunk.id for item in dense}
    lexical_ids = {item.chunk.id for item in lexical}
    shared = dense_ids & lexical_ids
    total = len(dense_ids | lexical_ids)
    dense_only = len(dense_ids) - len(shared)
    lexical_only = len(lexical_ids) - len(shared)
    return HybridOverlap(
        dense_only=dense_only,
        lexical_only=lexical_only,
        overlap=len(shared),
        overlap_percentage=(len(shared) / total) * 100 if total else 0.0,
        complementary_score=(dense_only + lexical_only) / total if total else 0.0,
    )
