"""Query tracing and latency accounting."""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

_TOKEN_PATTERN = re.compile(r"\w+|[^\w\s]", flags=re.UNICODE)


@dataclass(slots=True)
class TraceRecord:
    trace_id: str
    timestamp_utc: str
    operation: str
    query: str
    mode: str
    result_count: int
    latency_ms: float
    chunk_ids: list[str] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, TraceRecord] = {}
        self.max_records = max_records

    def create_record(
        self,
        *,
        operation: str,
        query: str,
        mode: str,
        chunk_ids: list[str],
        latency_ms: float,
        answer: str | None = None,
    ) -> TraceRecord:
        record = TraceRecord(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            operation=operation,
            query=query,
            mode=mode,
            result_count=len(chunk_ids),
            latency_ms=latency_ms,
            chunk_ids=chunk_ids,
            input_tokens=estimate_token_count(query),
            output_tokens=estimate_token_count(answer) if answer else 0,
        )
        self._records[record.trace_id] = record
        while len(self._records) > self.max_records:
            self._records.pop(next(iter(self._records)))
        return record

    def get(self, trace_id: str) -> TraceRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TraceRecord]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate request counts and latency for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_requests": 0,
                "query_requests": 0,
                "answer_requests": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "total_input_tokens": 0,
                "total_output_tokens": 0,
            }

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        return {
            "total_requests": total,
            "query_requests": sum(1 for record in records if record.operation == "query"),
            "answer_requests": sum(1 for record in records if record.operation == "answer"),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "total_input_tokens": sum(record.input_tokens for record in records),
            "total_output_tokens": sum(record.output_tokens for record in records),
        }


class Timer:
    """Simple context timer."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0


def estimate_token_count(text: str) -> int:
    return len(_TOKEN_PATTERN.findall(text))
