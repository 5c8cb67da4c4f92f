"""Static help-page corpus used when the vector index has nothing."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from studymate_chat.ingest.chunker import HeadingChunker
from studymate_chat.ingest.parser import MarkdownParser

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 300.0
MAX_RESULTS = 6

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "to", "of", "for", "in", "on",
        "at", "with", "about", "as", "is", "are", "was", "were", "be", "been",
        "being", "what", "who", "when", "where", "why", "how", "can", "could",
        "should", "would", "i", "me", "my", "we", "our", "you", "your", "it",
        "its",
    }
)

_NON_WORD = re.compile(r"[^\w\s]|_", flags=re.UNICODE)
_TOKEN = re.compile(r"[^\W_]+", flags=re.UNICODE)


@dataclass(slots=True, frozen=True)
class LocalDocMatch:
    id: str
    title: str
    url: str
    chunk: str
    chunk_index: int
    indexed_at: str
    similarity: float


@dataclass(slots=True)
class _IndexedChunk:
    id: str
    title: str
    url: str
    chunk: str
    chunk_index: int
    indexed_at: str
    normalized: str


@dataclass(slots=True)
class _CorpusIndex:
    docs_count: int
    chunks: list[_IndexedChunk] = field(default_factory=list)
    loaded_at: float = 0.0


def normalize_text(text: str) -> str:
    lowered = _NON_WORD.sub(" ", text.lower())
    return " ".join(lowered.split())


def tokenize(text: str) -> list[str]:
    seen: dict[str, None] = {}
    for token in _TOKEN.findall(text.lower()):
        if len(token) > 1 and token not in STOP_WORDS:
            seen.setdefault(token, None)
    return list(seen)


def build_phrases(tokens: list[str]) -> list[str]:
    limited = tokens[:12]
    bigrams = [f"{a} {b}" for a, b in zip(limited, limited[1:])]
    trigrams = [f"{a} {b} {c}" for a, b, c in zip(limited, limited[1:], limited[2:])]
    return bigrams + trigrams


def score_chunk(normalized_chunk: str, tokens: list[str], phrases: list[str], normalized_query: str) -> float:
    """Token overlap ratio plus capped phrase boosts, clamped to 1.0."""

    if not normalized_chunk or not tokens:
        return 0.0
    overlap = sum(1 for token in tokens if token in normalized_chunk)
    if not overlap:
        return 0.0

    boost = 0.0
    if len(normalized_query) > 6 and normalized_query in normalized_chunk:
        boost += 0.35
    phrase_hits = sum(1 for phrase in phrases if phrase in normalized_chunk)
    if phrase_hits:
        boost += min(0.3, phrase_hits * 0.08)
    return min(1.0, overlap / len(tokens) + boost)


class LocalDocsCorpus:
    """Markdown files under one directory, chunked and cached for a TTL."""

    def __init__(
        self,
        directory: str | Path,
        *,
        chunker: HeadingChunker | None = None,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        url_prefix: str = "local://content/ai",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.directory = Path(directory)
        self.chunker = chunker or HeadingChunker()
        self.ttl_seconds = ttl_seconds
        self.url_prefix = url_prefix.rstrip("/")
        self._parser = MarkdownParser()
        self._clock = clock
        self._index: _CorpusIndex | None = None
        self._lock = asyncio.Lock()

    async def search(self, query: str, *, limit: int = MAX_RESULTS) -> list[LocalDocMatch]:
        normalized_query = normalize_text(query or "")
        if not normalized_query:
            return []
        tokens = tokenize(normalized_query)
        if not tokens:
            return []

        index = await self._load()
        phrases = build_phrases(tokens)
        scored = []
        for chunk in index.chunks:
            similarity = score_chunk(chunk.normalized, tokens, phrases, normalized_query)
            if similarity > 0:
                scored.append(
                    LocalDocMatch(
                        id=chunk.id,
                        title=chunk.title,
                        url=chunk.url,
                        chunk=chunk.chunk,
                        chunk_index=chunk.chunk_index,
                        indexed_at=chunk.indexed_at,
                        similarity=similarity,
                    )
                )
        scored.sort(key=lambda match: match.similarity, reverse=True)
        return scored[:limit]

    async def stats(self) -> dict[str, int]:
        index = await self._load()
        return {"files": index.docs_count, "chunks": len(index.chunks)}

    def invalidate(self) -> None:
        self._index = None

    async def _load(self) -> _CorpusIndex:
        async with self._lock:
            now = self._clock()
            if self._index is not None and now - self._index.loaded_at < self.ttl_seconds:
                return self._index
            index = await asyncio.to_thread(self._build_index)
            index.loaded_at = now
            self._index = index
            return index

    def markdown_files(self) -> list[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(
            path
            for path in self.directory.rglob("*")
            if path.is_file() and path.suffix.lower() == ".md"
        )

    def _build_index(self) -> _CorpusIndex:
        index = _CorpusIndex(docs_count=0)
        for path in self.markdown_files():
            try:
                document = self._parser.parse(path)
                indexed_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()
            except (OSError, UnicodeDecodeError):
                logger.warning("Skipping unreadable help page %s", path, exc_info=True)
                continue

            slug = path.relative_to(self.directory).with_suffix("").as_posix()
            url = f"{self.url_prefix}/{slug}"
            index.docs_count += 1
            for chunk in self.chunker.chunk_document(document):
                normalized = normalize_text(chunk.text)
                if not normalized:
                    continue
                index.chunks.append(
                    _IndexedChunk(
                        id=f"{url}#{chunk.chunk_index}",
                        title=chunk.title,
                        url=url,
                        chunk=chunk.text,
                        chunk_index=chunk.chunk_index,
                        indexed_at=indexed_at,
                        normalized=normalized,
                    )
                )
        return index
