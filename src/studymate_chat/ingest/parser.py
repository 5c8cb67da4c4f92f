"""Parsing interfaces and concrete parsers for help-page sources."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import Path

from studymate_chat.types import ParsedDocument

_TITLE_PATTERN = re.compile(r"^#\s+(.+)$", flags=re.MULTILINE)


def strip_front_matter(content: str) -> str:
    if not content.startswith("---"):
        return content
    end = content.find("\n---", 3)
    if end == -1:
        return content
    return content[end + 4 :]


def extract_title(content: str, fallback: str) -> str:
    match = _TITLE_PATTERN.search(content)
    if match:
        return match.group(1).strip()
    return fallback


class Parser(ABC):
    """Base parser interface used by the ingest pipeline."""

    extensions: tuple[str, ...] = ()

    @abstractmethod
    def parse(self, path: Path, *, doc_id: str | None = None) -> ParsedDocument:
        """Parse a file into normalized text + metadata."""


class TextParser(Parser):
    """Parser for plain text help notes."""

    extensions = (".txt",)

    def parse(self, path: Path, *, doc_id: str | None = None) -> ParsedDocument:
        text = path.read_text(encoding="utf-8")
        return ParsedDocument(
            doc_id=doc_id or path.stem,
            title=path.stem,
            text=text,
            metadata={"source": str(path), "format": "text"},
        )


class MarkdownParser(Parser):
    """Parser for markdown help pages; YAML front matter is dropped."""

    extensions = (".md", ".markdown")

    def parse(self, path: Path, *, doc_id: str | None = None) -> ParsedDocument:
        text = strip_front_matter(path.read_text(encoding="utf-8"))
        return ParsedDocument(
            doc_id=doc_id or path.stem,
            title=extract_title(text, path.stem),
            text=text,
            metadata={"source": str(path), "format": "markdown"},
        )


class ParserRegistry:
    """Maps file extension to parser implementation."""

    def __init__(self, parsers: list[Parser] | None = None) -> None:
        self._parsers: dict[str, Parser] = {}
        for parser in parsers or [TextParser(), MarkdownParser()]:
            self.register(parser)

    def register(self, parser: Parser) -> None:
        for extension in parser.extensions:
            self._parsers[extension.lower()] = parser

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self._parsers

    def parse_path(self, path: str | Path, *, doc_id: str | None = None) -> ParsedDocument:
        file_path = Path(path)
        parser = self._parsers.get(file_path.suffix.lower())
        if parser is None:
            raise ValueError(f"No parser registered for extension: {file_path.suffix}")
        return parser.parse(file_path, doc_id=doc_id)
