"""Retrieval quality metrics against labelled queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from math import log2
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from orquel.config import QueryOptions
from orquel.obs.tracing import Timer

if TYPE_CHECKING:
    from orquel.orchestrator import Orquel

logger = logging.getLogger(__name__)


class GroundTruthQuery(BaseModel):
    query: str = Field(min_length=1)
    relevant_chunk_ids: list[str] = Field(default_factory=list)


@dataclass(slots=True)
class QueryEvaluation:
    query: str
    retrieved_chunk_ids: list[str]
    relevant_chunk_ids: list[str]
    precision: float
    recall: float
    f1: float
    reciprocal_rank: float
    dcg: float
    ndcg: float
    latency_ms: float = 0.0

    @property
    def hit(self) -> bool:
        return self.reciprocal_rank > 0


@dataclass(slots=True)
class EvaluationMetrics:
    precision: float = 0.0
    recall: float = 0.0
    f1: float = 0.0
    mrr: float = 0.0
    ndcg: float = 0.0
    hit_rate: float = 0.0
    avg_latency_ms: float = 0.0


def evaluate_query(
    query: str, retrieved_chunk_ids: list[str], relevant_chunk_ids: list[str]
) -> QueryEvaluation:
    """Score one ranked list with binary relevance."""

    relevant = set(relevant_chunk_ids)
    hits = [chunk_id for chunk_id in retrieved_chunk_ids if chunk_id in relevant]

    precision = len(hits) / len(retrieved_chunk_ids) if retrieved_chunk_ids else 0.0
    recall = len(hits) / len(relevant_chunk_ids) if relevant_chunk_ids else 0.0
    f1 = (2 * precision * recall) / (precision + recall) if precision + recall else 0.0

    reciprocal_rank = 0.0
    for position, chunk_id in enumerate(retrieved_chunk_ids, start=1):
        if chunk_id in relevant:
            reciprocal_rank = 1.0 / position
            break

    dcg = sum(
        1.0 / log2(position + 1)
        for position, chunk_id in enumerate(retrieved_chunk_ids, start=1)
        if chunk_id in relevant
    )
    ideal_hits = min(len(relevant_chunk_ids), len(retrieved_chunk_ids))
    idcg = sum(1.0 / log2(position + 1) for position in range(1, ideal_hits + 1))

    return QueryEvaluation(
        query=query,
        retrieved_chunk_ids=retrieved_chunk_ids,
        relevant_chunk_ids=relevant_chunk_ids,
        precision=precision,
        recall=recall,
        f1=f1,
        reciprocal_rank=reciprocal_rank,
        dcg=dcg,
        ndcg=dcg / idcg if idcg else 0.0,
    )


def aggregate(evaluations: list[QueryEvaluation]) -> EvaluationMetrics:
    if not evaluations:
        return EvaluationMetrics()
    total = len(evaluations)
    return EvaluationMetrics(
        precision=sum(item.precision for item in evaluations) / total,
        recall=sum(item.recall for item in evaluations) / total,
        f1=sum(item.f1 for item in evaluations) / total,
        mrr=sum(item.reciprocal_rank for item in evaluations) / total,
        ndcg=sum(item.ndcg for item in evaluations) / total,
        hit_rate=sum(1 for item in evaluations if item.hit) / total,
        avg_latency_ms=sum(item.latency_ms for item in evaluations) / total,
    )


class RetrievalEvaluator:
    """Runs labelled queries through an orchestrator and aggregates metrics."""

    def __init__(self, orquel: "Orquel") -> None:
        self.orquel = orquel

    async def evaluate(
        self,
        ground_truth: list[GroundTruthQuery],
        options: QueryOptions | None = None,
    ) -> EvaluationMetrics:
        options = options or QueryOptions()
        evaluations: list[QueryEvaluation] = []
        for item in ground_truth:
            with Timer() as timer:
                result = await self.orquel.query(item.query, options)
            evaluation = evaluate_query(
                item.query,
                [hit.chunk.id for hit in result.results],
                item.relevant_chunk_ids,
            )
            evaluation.latency_ms = timer.elapsed_ms
            evaluations.append(evaluation)

        metrics = aggregate(evaluations)
        logger.info(
            "evaluated %d queries: f1=%.3f mrr=%.3f ndcg=%.3f hit_rate=%.3f",
            len(evaluations),
            metrics.f1,
            metrics.mrr,
            metrics.ndcg,
            metrics.hit_rate,
        )
        return metrics
