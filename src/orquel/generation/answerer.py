"""Answer generators that turn retrieved chunks into a response."""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Any

from langchain_core.prompts import ChatPromptTemplate

from orquel.errors import ConfigurationError, GenerationError
from orquel.types import Chunk

logger = logging.getLogger(__name__)

INSUFFICIENT_CONTEXT = "I don't have enough context to answer your question."

_SYSTEM_PROMPT = """
You are a helpful assistant that answers questions from the provided context.

Rules:
1) Answer based only on the provided context.
2) If the context does not contain enough information, say so.
3) Cite the passages you use with their bracketed numbers, like [1].
4) Be concise but complete, and answer in the language of the question.
""".strip()

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?。！？])\s+")


class Answerer(ABC):
    """Generates an answer for a query from context chunks.

    Implementations return `INSUFFICIENT_CONTEXT` for an empty context list
    instead of calling a model.
    """

    name: str = "answerer"

    @abstractmethod
    async def answer(self, query: str, contexts: list[Chunk]) -> str:
        """Return answer text grounded in ``contexts``."""

    async def close(self) -> None:
        return None

    def stats(self) -> dict[str, Any]:
        return {"name": self.name}


class ExtractiveAnswerer(Answerer):
    """Answers from retrieval evidence without an LLM dependency.

    Picks the sentences sharing the most terms with the query and cites the
    context they came from. Useful offline and in tests.
    """

    name = "extractive"

    def __init__(self, max_sentences: int = 3) -> None:
        self.max_sentences = max_sentences

    async def answer(self, query: str, contexts: list[Chunk]) -> str:
        if not contexts:
            return INSUFFICIENT_CONTEXT

        query_terms = set(_terms(query))
        candidates: list[tuple[float, int, str]] = []
        for position, chunk in enumerate(contexts, start=1):
            for sentence in _SENTENCE_SPLIT.split(chunk.text.replace("\n", " ")):
                sentence = sentence.strip()
                if not sentence:
                    continue
                overlap = len(query_terms & set(_terms(sentence)))
                candidates.append((overlap, position, sentence))

        best = sorted(candidates, key=lambda item: item[0], reverse=True)
        chosen = [item for item in best[: self.max_sentences] if item[0] > 0]
        if not chosen:
            return INSUFFICIENT_CONTEXT

        lines = [
            f"{idx}. {sentence} [{position}]"
            for idx, (_, position, sentence) in enumerate(chosen, start=1)
        ]
        return "\n".join(lines)


class LangChainAnswerer(Answerer):
    """Grounded answer generation through a LangChain chat model."""

    def __init__(
        self, llm: Any, *, name: str | None = None, system_prompt: str = _SYSTEM_PROMPT
    ) -> None:
        self.llm = llm
        self.name = name or type(llm).__name__
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", system_prompt),
                ("human", "Context:\n{context}\n\nQuestion: {question}\n\nAnswer:"),
            ]
        )

    async def answer(self, query: str, contexts: list[Chunk]) -> str:
        if not contexts:
            return INSUFFICIENT_CONTEXT

        chain = self.prompt | self.llm
        try:
            response = await chain.ainvoke(
                {"context": format_contexts(contexts), "question": query}
            )
        except Exception as exc:
            raise GenerationError(f"{self.name} failed to generate an answer") from exc

        answer = _message_text(response).strip()
        if not answer:
            raise GenerationError(f"{self.name} returned an empty answer")
        logger.debug("generated %d-char answer with %s", len(answer), self.name)
        return answer


def openai_answerer(
    model: str | None = None, *, temperature: float = 0.1, max_tokens: int = 1000
) -> LangChainAnswerer:
    """Build an OpenAI chat answerer through `langchain_openai`."""

    if not os.getenv("OPENAI_API_KEY"):
        raise ConfigurationError(
            "OpenAI API key is required. Set the OPENAI_API_KEY environment variable."
        )

    from langchain_openai import ChatOpenAI

    model_name = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    llm = ChatOpenAI(model=model_name, temperature=temperature, max_tokens=max_tokens)
    return LangChainAnswerer(llm, name=f"openai-{model_name}")


def format_contexts(contexts: list[Chunk]) -> str:
    return "\n\n".join(f"[{i}] {chunk.text.strip()}" for i, chunk in enumerate(contexts, start=1))


def _terms(text: str) -> list[str]:
    return re.findall(r"\w+", text.lower())


def _message_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts)
    return str(content)
