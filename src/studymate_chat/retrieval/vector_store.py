"""Vector index contract and the in-memory implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from math import sqrt
from typing import Any, Protocol


@dataclass(slots=True, frozen=True)
class VectorMatch:
    """Raw match returned by a vector index; metadata shape is not trusted."""

    score: float | None
    metadata: dict[str, Any] | None = None
    id: str | None = None


@dataclass(slots=True)
class VectorRecord:
    id: str
    vector: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


class VectorIndex(Protocol):
    """Minimal vector index contract for retrieval and ingest."""

    async def query(
        self, vector: list[float], top_k: int, include_metadata: bool = True
    ) -> list[VectorMatch]:
        """Return up to `top_k` matches for the vector."""

    async def upsert(self, records: list[VectorRecord]) -> None:
        """Insert or update records by id."""


class InMemoryVectorIndex:
    """Deterministic vector index used for tests and local runs."""

    def __init__(self) -> None:
        self._store: dict[str, VectorRecord] = {}

    def __len__(self) -> int:
        return len(self._store)

    async def upsert(self, records: list[VectorRecord]) -> None:
        for record in records:
            self._store[record.id] = record

    async def query(
        self, vector: list[float], top_k: int, include_metadata: bool = True
    ) -> list[VectorMatch]:
        ranked = sorted(
            (
                (cosine_similarity(vector, record.vector), record)
                for record in self._store.values()
            ),
            key=lambda item: item[0],
            reverse=True,
        )
        return [
            VectorMatch(
                score=score,
                metadata=dict(record.metadata) if include_metadata else None,
                id=record.id,
            )
            for score, record in ranked[:top_k]
        ]

    def documents(self) -> set[str]:
        return {
            str(record.metadata.get("url"))
            for record in self._store.values()
            if record.metadata.get("url")
        }


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
