"""End-to-end ingest pipeline: parse -> chunk -> embed -> upsert."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from studymate_chat.ingest.chunker import HeadingChunker
from studymate_chat.ingest.embedder import Embedder
from studymate_chat.ingest.parser import ParserRegistry
from studymate_chat.retrieval.vector_store import VectorIndex, VectorRecord
from studymate_chat.types import DocumentChunk

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class IngestStats:
    documents: int
    chunks: int
    last_indexed_at: str | None

    def to_payload(self) -> dict[str, Any]:
        return {
            "documents": self.documents,
            "chunks": self.chunks,
            "lastIndexedAt": self.last_indexed_at,
        }


class IngestPipeline:
    """Coordinates parser/chunker/embedder/vector index stages.

    Indexing runs outside the request path: at startup when enabled, or from
    the admin reindex endpoint. Chunk metadata carries the fields retrieval
    expects (`url`, `title`, `chunk`, `chunk_index`, `indexed_at`).
    """

    def __init__(
        self,
        parser_registry: ParserRegistry,
        chunker: HeadingChunker,
        embedder: Embedder,
        index: VectorIndex,
        *,
        url_prefix: str = "local://content/ai",
    ) -> None:
        self._parser_registry = parser_registry
        self._chunker = chunker
        self._embedder = embedder
        self._index = index
        self._url_prefix = url_prefix.rstrip("/")
        self._stats = IngestStats(documents=0, chunks=0, last_indexed_at=None)

    @property
    def stats(self) -> IngestStats:
        return self._stats

    async def ingest_path(
        self,
        path: str | Path,
        *,
        root: Path | None = None,
        extra_metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        """Ingest a single source file and return created chunks."""

        file_path = Path(path)
        parsed = await asyncio.to_thread(self._parser_registry.parse_path, file_path)
        slug = (file_path.relative_to(root) if root else Path(file_path.name)).with_suffix("")
        url = f"{self._url_prefix}/{slug.as_posix()}"
        parsed.metadata["url"] = url
        if extra_metadata:
            parsed.metadata.update(extra_metadata)

        chunks = self._chunker.chunk_document(parsed)
        if not chunks:
            return []
        embeddings = await self._embedder.embed([chunk.text for chunk in chunks])
        if len(embeddings) != len(chunks):
            raise ValueError("embedder returned a different number of vectors than chunks")

        indexed_at = datetime.now(timezone.utc).isoformat()
        await self._index.upsert(
            [
                VectorRecord(
                    id=f"{url}#{chunk.chunk_index}",
                    vector=vector,
                    metadata={
                        **chunk.metadata,
                        "url": url,
                        "title": chunk.title,
                        "chunk": chunk.text,
                        "chunk_index": chunk.chunk_index,
                        "indexed_at": indexed_at,
                    },
                )
                for chunk, vector in zip(chunks, embeddings, strict=True)
            ]
        )
        return chunks

    async def ingest_directory(self, directory: str | Path) -> IngestStats:
        """Ingest every supported file under `directory`, recursively."""

        root = Path(directory)
        paths = sorted(
            path
            for path in root.rglob("*")
            if path.is_file() and self._parser_registry.supports(path)
        ) if root.is_dir() else []

        documents = 0
        chunk_count = 0
        for path in paths:
            chunks = await self.ingest_path(path, root=root)
            documents += 1
            chunk_count += len(chunks)

        self._stats = IngestStats(
            documents=documents,
            chunks=chunk_count,
            last_indexed_at=datetime.now(timezone.utc).isoformat(),
        )
        logger.info("Indexed %d documents into %d chunks from %s", documents, chunk_count, root)
        return self._stats
