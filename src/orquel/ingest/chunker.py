"""Heading-aware sliding-window chunking with content-hash deduplication."""

from __future__ import annotations

import re
from hashlib import sha256

from orquel.config import ChunkingConfig
from orquel.types import Chunk, ChunkMetadata, SourceDescriptor

_HORIZONTAL_WS = re.compile(r"[ \t]+")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_ATX_HEADING = re.compile(r"^#{1,6}\s")

_SENTENCE_WINDOW = 0.7
_WORD_WINDOW = 0.5


class MarkdownAwareChunker:
    """Splits a document into bounded, overlapping, deduplicated chunks.

    Design notes:
    1. Canonicalization first.
       Outer whitespace is trimmed, CRLF becomes LF, runs of spaces/tabs
       collapse to one space and 3+ newlines collapse to a blank line. Two
       inputs that differ only cosmetically therefore chunk identically.

    2. Short-circuit.
       Text that already fits in `max_chunk_size` becomes exactly one chunk;
       no splitting logic runs.

    3. Markdown sections.
       For markdown sources (`kind == "md"`) with `respect_markdown_headings`
       enabled, the text is cut at ATX heading lines. A section that fits the
       budget becomes one chunk; an oversized section is window-split.

    4. Sliding window.
       A window of `max_chunk_size` characters is cut at the last sentence end
       in its trailing 30%, else the last space in its trailing 50%, else at the
       window boundary. The next window starts `overlap` characters before the
       break, but always at least one character after the previous start.

    5. Deduplication.
       Chunks are fingerprinted by SHA-256 of their text; repeats are dropped
       and the first occurrence kept. `chunk_index` is not renumbered.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(self, text: str, source: SourceDescriptor) -> list[Chunk]:
        """Chunk ``text`` for ``source``.

        Total over any string: empty input gives one empty chunk and a single
        token longer than `max_chunk_size` is hard-cut.
        """

        max_size = self.config.max_chunk_size
        normalized = normalize_text(text)
        if len(normalized) <= max_size:
            return [make_chunk(normalized, source, 0)]

        if self.config.respect_markdown_headings and source.kind == "md":
            pieces: list[str] = []
            for section in split_markdown_sections(normalized):
                if len(section) <= max_size:
                    pieces.append(section)
                else:
                    pieces.extend(self._split_window(section))
        else:
            pieces = self._split_window(normalized)

        chunks = [make_chunk(piece, source, index) for index, piece in enumerate(pieces)]
        return deduplicate(chunks)

    def _split_window(self, text: str) -> list[str]:
        max_size = self.config.max_chunk_size
        overlap = self.config.overlap
        if len(text) <= max_size:
            return [text]

        pieces: list[str] = []
        start = 0
        while start < len(text):
            end = start + max_size
            if end >= len(text):
                pieces.append(text[start:])
                break

            break_point = find_break_point(text, start, end)
            pieces.append(text[start:break_point])
            start = max(start + 1, break_point - overlap)
        return pieces


def chunk_text(
    text: str, source: SourceDescriptor, options: ChunkingConfig | None = None
) -> list[Chunk]:
    """Functional entry point over `MarkdownAwareChunker`."""

    return MarkdownAwareChunker(options).chunk(text, source)


def normalize_text(text: str) -> str:
    text = text.strip().replace("\r\n", "\n")
    text = _HORIZONTAL_WS.sub(" ", text)
    return _EXCESS_NEWLINES.sub("\n\n", text)


def split_markdown_sections(text: str) -> list[str]:
    """Cut text at ATX heading lines; each heading opens a new section."""

    sections: list[str] = []
    current: list[str] = []
    for line in text.split("\n"):
        if _ATX_HEADING.match(line) and current:
            section = "\n".join(current).strip()
            if section:
                sections.append(section)
            current = []
        current.append(line)

    tail = "\n".join(current).strip()
    if tail:
        sections.append(tail)
    return sections


def find_break_point(text: str, start: int, end: int) -> int:
    """Return where a window ``text[start:end]`` should be cut."""

    window = end - start

    sentence_floor = start + window * _SENTENCE_WINDOW
    i = end - 1
    while i > sentence_floor:
        if text[i] == "." and text[i + 1] == " ":
            return i + 1
        i -= 1

    word_floor = start + window * _WORD_WINDOW
    i = end - 1
    while i > word_floor:
        if text[i] == " ":
            return i
        i -= 1

    return end


def content_hash(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()[:16]


def make_chunk(text: str, source: SourceDescriptor, chunk_index: int) -> Chunk:
    text = text.strip()
    digest = content_hash(text)
    return Chunk(
        id=f"{source.title}-{chunk_index}-{digest}",
        text=text,
        metadata=ChunkMetadata(source=source, chunk_index=chunk_index, hash=digest),
    )


def deduplicate(chunks: list[Chunk]) -> list[Chunk]:
    seen: set[str] = set()
    unique: list[Chunk] = []
    for chunk in chunks:
        if chunk.metadata.hash in seen:
            continue
        seen.add(chunk.metadata.hash)
        unique.append(chunk)
    return unique
