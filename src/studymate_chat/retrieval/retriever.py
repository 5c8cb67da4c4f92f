"""Retrieval engine with strict and failure-tolerant entry points."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from time import perf_counter

from studymate_chat.config import RetrievalConfig
from studymate_chat.errors import UpstreamRetrievalFailure
from studymate_chat.retrieval.local_docs import LocalDocsCorpus
from studymate_chat.retrieval.vector_store import VectorIndex, VectorMatch
from studymate_chat.types import RetrievalContext, RetrievalResult

logger = logging.getLogger(__name__)


def rank_matches(matches: list[VectorMatch], top_k: int) -> tuple[list[RetrievalContext], float]:
    """Drop malformed matches, sort by descending score and keep the top `top_k`.

    A match is malformed when its score is not a number, its metadata lacks
    a chunk or url, or its chunk index is not an integer. Returns the
    contexts and the best score (0.0 when empty).
    """

    valid: list[RetrievalContext] = []
    for match in matches:
        score = match.score
        metadata = match.metadata or {}
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        chunk = metadata.get("chunk")
        url = metadata.get("url")
        if not chunk or not url:
            continue
        try:
            chunk_index = int(metadata.get("chunk_index", metadata.get("chunkIndex", 0)) or 0)
        except (TypeError, ValueError):
            continue
        valid.append(
            RetrievalContext(
                url=str(url),
                title=str(metadata.get("title") or url),
                chunk=str(chunk),
                chunk_index=chunk_index,
                indexed_at=str(metadata.get("indexed_at", metadata.get("indexedAt", ""))),
                score=float(score),
            )
        )
    valid.sort(key=lambda context: context.score, reverse=True)
    best = valid[0].score if valid else 0.0
    return valid[:top_k], best


class RetrievalEngine:
    """Queries the vector index, falling back to the local help corpus.

    `retrieve_primary` raises `UpstreamRetrievalFailure` when the index query
    fails and the local corpus has nothing; `retrieve_augmenting` never raises
    and degrades to an empty result instead.
    """

    def __init__(
        self,
        index: VectorIndex,
        *,
        config: RetrievalConfig | None = None,
        local_docs: LocalDocsCorpus | None = None,
    ) -> None:
        self.index = index
        self.config = config or RetrievalConfig()
        self.local_docs = local_docs if self.config.local_fallback else None

    async def retrieve_primary(self, query: str, embedding: list[float]) -> RetrievalResult:
        return await self._retrieve(query, embedding, allow_failure=False)

    async def retrieve_augmenting(self, query: str, embedding: list[float]) -> RetrievalResult:
        return await self._retrieve(query, embedding, allow_failure=True)

    async def _retrieve(
        self, query: str, embedding: list[float], *, allow_failure: bool
    ) -> RetrievalResult:
        start = perf_counter()
        contexts: list[RetrievalContext] = []
        best_score = 0.0
        source = "vector"
        failure: Exception | None = None

        try:
            matches = await self.index.query(embedding, self.config.top_k, include_metadata=True)
            contexts, best_score = rank_matches(list(matches or []), self.config.top_k)
        except Exception as exc:
            failure = exc
            if allow_failure:
                logger.warning("Augmenting vector query failed: %s", exc)
            else:
                logger.warning("Vector query failed", exc_info=True)

        if not contexts:
            local = await self._local_contexts(query)
            if local:
                contexts = local
                best_score = max(context.score for context in local)
                source = "local_docs"
            elif failure is not None and not allow_failure:
                raise UpstreamRetrievalFailure(
                    "Vector query failed with no local fallback", stage="retrieval"
                ) from failure

        return RetrievalResult(
            contexts=tuple(contexts),
            best_score=best_score,
            retrieval_ms=(perf_counter() - start) * 1000.0,
            source=source if contexts else "none",
            threshold=self.config.similarity_threshold,
        )

    async def _local_contexts(self, query: str) -> list[RetrievalContext]:
        if self.local_docs is None:
            return []
        try:
            matches = await self.local_docs.search(query, limit=self.config.top_k)
        except Exception:
            logger.warning("Local help corpus search failed", exc_info=True)
            return []
        now = datetime.now(timezone.utc).isoformat()
        return [
            RetrievalContext(
                url=match.url,
                title=match.title,
                chunk=match.chunk,
                chunk_index=match.chunk_index,
                indexed_at=match.indexed_at or now,
                score=match.similarity,
            )
            for match in matches
        ]
