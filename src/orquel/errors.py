"""Error taxonomy for orchestration failures.

Every error carries the pipeline ``stage`` that failed so callers can tell an
embedding outage from a storage or generation failure without string matching.
"""

from __future__ import annotations


class OrquelError(RuntimeError):
    """Base class for all orquel failures."""

    stage = "core"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        if stage is not None:
            self.stage = stage

    def __str__(self) -> str:
        message = super().__str__()
        cause = self.__cause__
        if cause is not None and str(cause) and str(cause) not in message:
            return f"[{self.stage}] {message}: {cause}"
        return f"[{self.stage}] {message}"


class ConfigurationError(OrquelError):
    """A required collaborator or option is missing."""

    stage = "config"


class EmbeddingError(OrquelError):
    """The embedding provider failed or returned a malformed batch."""

    stage = "embedding"


class StorageError(OrquelError):
    """A vector or lexical store call failed."""

    stage = "vector"


class RerankError(OrquelError):
    """The reranker failed or returned something other than a permutation."""

    stage = "rerank"


class GenerationError(OrquelError):
    """The answer generator failed."""

    stage = "generation"
