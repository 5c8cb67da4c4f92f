"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ClassificationOutcome(str, Enum):
    GREETING = "greeting"
    MODERATION_BLOCKED = "moderation-blocked"
    REFUSAL_PERSONAL = "refusal-personal"
    REFUSAL_ADMIN = "refusal-admin"
    OFF_TOPIC = "off-topic"
    NONE = "none"


class RedactionStatus(str, Enum):
    SKIPPED = "skipped"
    REDACTED = "redacted"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class ChatRequest:
    """A validated chat request."""

    input: str
    session_id: str
    user_id: str | None = None


@dataclass(slots=True, frozen=True)
class LanguageDetection:
    code: str
    confidence: float


@dataclass(slots=True, frozen=True)
class Classification:
    """Result of the classification cascade for one input."""

    outcome: ClassificationOutcome
    reason: str | None = None
    language: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def terminal(self) -> bool:
        return self.outcome is not ClassificationOutcome.NONE


@dataclass(slots=True, frozen=True)
class RetrievalContext:
    """One indexed passage handed to the answer generator."""

    url: str
    title: str
    chunk: str
    chunk_index: int
    indexed_at: str
    score: float = 0.0


@dataclass(slots=True, frozen=True)
class RetrievalResult:
    """Ranked contexts plus the evidence needed to log the retrieval decision."""

    contexts: tuple[RetrievalContext, ...]
    best_score: float
    retrieval_ms: float
    source: str
    threshold: float

    @property
    def confident(self) -> bool:
        return bool(self.contexts) and self.best_score >= self.threshold


@dataclass(slots=True, frozen=True)
class ToolSelection:
    """A tool picked by the intent router."""

    name: str
    score: float | None
    source: str


@dataclass(slots=True, frozen=True)
class RouteDecision:
    kind: str
    tool: ToolSelection | None = None


@dataclass(slots=True, frozen=True)
class MemoryEntry:
    """A key fact a user shared about themselves."""

    kind: str
    text: str


@dataclass(slots=True, frozen=True)
class LogEntry:
    """Redacted audit record for one handled request."""

    session_id: str
    language: str
    input: str
    reply: str
    used_rag: bool
    metadata: dict[str, Any]
    redaction_status: RedactionStatus
    user_id: str | None = None


@dataclass(slots=True, frozen=True)
class ChatLogRecord:
    chat_id: str
    created_at: str
    entry: LogEntry


@dataclass(slots=True, frozen=True)
class ChatReply:
    """What the pipeline hands back to the HTTP layer."""

    status_code: int
    text: str | None = None
    used_rag: bool = False
    language: str | None = None
    chat_id: str | None = None
    error: str | None = None
    retry_after: int | None = None

    def to_payload(self) -> dict[str, Any]:
        if self.text is None:
            return {"error": self.error}
        payload: dict[str, Any] = {
            "text": self.text,
            "usedRag": self.used_rag,
            "language": self.language,
        }
        if self.chat_id is not None:
            payload["chatId"] = self.chat_id
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class ToolTrace:
    """Trace record for an executed tool call."""

    name: str
    input_payload: dict[str, Any]
    output_preview: str
    latency_ms: float


@dataclass(slots=True)
class ParsedDocument:
    doc_id: str
    title: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class DocumentChunk:
    chunk_id: str
    doc_id: str
    title: str
    text: str
    chunk_index: int
    metadata: dict[str, Any] = field(default_factory=dict)
