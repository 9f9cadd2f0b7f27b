"""File parsers that turn local files into ingestable text plus a source."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from orquel.types import SourceDescriptor


@dataclass(slots=True)
class ParsedDocument:
    """Raw document text before chunking."""

    source: SourceDescriptor
    text: str


class Parser(ABC):
    """Base parser interface used by path ingestion."""

    extensions: tuple[str, ...] = ()
    kind: str = "txt"

    @abstractmethod
    def read_text(self, path: Path) -> str:
        """Return the document body of ``path``."""

    def parse(self, path: Path, *, title: str | None = None) -> ParsedDocument:
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        source = SourceDescriptor(
            title=title or path.stem,
            kind=self.kind,
            url=path.resolve().as_uri(),
            updated_at=modified,
        )
        return ParsedDocument(source=source, text=self.read_text(path))


class TextParser(Parser):
    extensions = (".txt", ".log")

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")


class MarkdownParser(Parser):
    """Markdown files keep their headings so the chunker can section them."""

    extensions = (".md", ".markdown")
    kind = "md"

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")


class JsonParser(Parser):
    """JSON files are re-serialized deterministically before chunking."""

    extensions = (".json",)

    def read_text(self, path: Path) -> str:
        payload: Any = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2)
        if isinstance(payload, list):
            return json.dumps(payload, ensure_ascii=False, indent=2)
        return str(payload)


class ParserRegistry:
    """Maps file extension to parser implementation."""

    def __init__(self, parsers: list[Parser] | None = None) -> None:
        self._parsers: dict[str, Parser] = {}
        for parser in parsers or [TextParser(), MarkdownParser(), JsonParser()]:
            self.register(parser)

    def register(self, parser: Parser) -> None:
        for extension in parser.extensions:
            self._parsers[extension.lower()] = parser

    def parse_path(self, path: str | Path, *, title: str | None = None) -> ParsedDocument:
        file_path = Path(path)
        parser = self._parsers.get(file_path.suffix.lower())
        if parser is None:
            raise ValueError(f"No parser registered for extension: {file_path.suffix}")
        return parser.parse(file_path, title=title)
