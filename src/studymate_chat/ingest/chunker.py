"""Heading-aware chunking for help pages."""

from __future__ import annotations

import re
from dataclasses import dataclass

from studymate_chat.config import ChunkingConfig
from studymate_chat.types import DocumentChunk, ParsedDocument


@dataclass(slots=True)
class Section:
    title: str | None
    body: str


class HeadingChunker:
    """Splits markdown into heading sections, then packs sections into chunks.

    Design notes:
    1. Sections first.
       Lines starting with `#`..`###` open a new section. Each section is
       chunked on its own with its heading prepended, so a chunk never mixes
       two topics. A document without headings is chunked as one block.

    2. Paragraph packing second.
       Paragraphs are appended to the current chunk while it stays within
       `max_chars`. Once the current chunk has reached `min_chars` it is
       closed and the next paragraph starts a new one; otherwise the
       paragraph is split on word boundaries and packed piece by piece.

    Every chunk is at most `max_chars` long unless a single word is longer.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.min_chars > self.config.max_chars:
            raise ValueError("min_chars must not exceed max_chars")
        self._heading = re.compile(rf"^#{{1,{self.config.max_heading_level}}}\s+(.+)$")

    def chunk_document(self, document: ParsedDocument) -> list[DocumentChunk]:
        sections = self.split_sections(document.text)
        if sections:
            bodies = [
                (section.title or document.title, piece)
                for section in sections
                for piece in self._chunk_section(section, document.title)
            ]
        else:
            bodies = [(document.title, piece) for piece in self.chunk_text(document.text)]

        return [
            DocumentChunk(
                chunk_id=f"{document.doc_id}#{index}",
                doc_id=document.doc_id,
                title=title,
                text=text,
                chunk_index=index,
                metadata={**document.metadata, "chunk_index": index},
            )
            for index, (title, text) in enumerate(bodies)
        ]

    def split_sections(self, content: str) -> list[Section]:
        sections: list[Section] = []
        title: str | None = None
        buffer: list[str] = []
        saw_heading = False

        def _push() -> None:
            body = "\n".join(buffer).strip()
            if body:
                sections.append(Section(title=title, body=body))
            buffer.clear()

        for line in content.splitlines():
            match = self._heading.match(line)
            if match:
                saw_heading = True
                _push()
                title = match.group(1).strip()
                continue
            buffer.append(line)
        _push()

        return sections if saw_heading else []

    def chunk_text(self, content: str) -> list[str]:
        normalized = _normalize_whitespace(content)
        if not normalized:
            return []
        if len(normalized) <= self.config.max_chars:
            return [normalized]

        chunks: list[str] = []
        current = ""
        for paragraph in (part.strip() for part in re.split(r"\n{2,}", normalized)):
            if not paragraph:
                continue
            candidate = f"{current}\n\n{paragraph}" if current else paragraph
            if len(candidate) <= self.config.max_chars:
                current = candidate
                continue
            if len(current) >= self.config.min_chars:
                chunks.append(current.strip())
                current = ""
                if len(paragraph) <= self.config.max_chars:
                    current = paragraph
                    continue
            for piece in self._split_by_size(paragraph):
                joined = f"{current} {piece}" if current else piece
                if len(joined) <= self.config.max_chars:
                    current = joined
                    continue
                if current.strip():
                    chunks.append(current.strip())
                current = piece
        if current.strip():
            chunks.append(current.strip())
        return chunks or self._split_by_size(normalized)

    def _chunk_section(self, section: Section, fallback_title: str) -> list[str]:
        heading = section.title or fallback_title
        body = section.body.strip()
        if not body:
            return []
        return self.chunk_text(f"{heading}\n{body}" if heading else body)

    def _split_by_size(self, text: str) -> list[str]:
        chunks: list[str] = []
        current = ""
        for word in text.split():
            candidate = f"{current} {word}" if current else word
            if len(candidate) <= self.config.max_chars:
                current = candidate
                continue
            if current:
                chunks.append(current)
            current = word
        if current:
            chunks.append(current)
        return chunks


def _normalize_whitespace(text: str) -> str:
    text = text.replace("\r\n", "\n")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()
