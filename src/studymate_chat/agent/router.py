"""Intent routing between read-only tools and open retrieval."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal

from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field, ValidationError

from studymate_chat.agent.registry import ToolRegistry, ToolSpec
from studymate_chat.config import RouterConfig
from studymate_chat.ingest.embedder import Embedder
from studymate_chat.retrieval.vector_store import cosine_similarity
from studymate_chat.types import RouteDecision, ToolSelection

logger = logging.getLogger(__name__)

ROUTE_TOOL = "tool"
ROUTE_RAG = "rag"

_ROUTER_PROMPT = """
You are a router for the StudyMate (Focus Squad) assistant.
Pick a tool only when the question needs live app data or the user's own account data.
Choose rag for feature explanations, how-to questions, navigation help, or anything unclear.
Use TOOL_LEADERBOARD_TOP_NOW only for the current leaderboard; questions about a specific
date, yesterday or last week are rag.

Tools:
{tools}
""".strip()


class RouterChoice(BaseModel):
    """Structured answer expected from the routing model."""

    kind: Literal["rag", "tool"] = Field(description="rag for documentation answers, tool for live data")
    tool: str | None = Field(default=None, description="Tool name when kind is tool")


class LlmIntentClassifier:
    """Asks a LangChain chat model to choose between a tool and retrieval.

    Returns None whenever the model fails, answers outside the schema or
    names a tool that is not registered, so the caller can fall back.
    """

    def __init__(self, llm: Any, registry: ToolRegistry) -> None:
        self.registry = registry
        self.prompt = ChatPromptTemplate.from_messages(
            [
                ("system", _ROUTER_PROMPT),
                ("human", "{question}"),
            ]
        )
        self.chain = self.prompt | llm.with_structured_output(RouterChoice)

    async def classify(self, text: str) -> RouteDecision | None:
        try:
            result = await self.chain.ainvoke({"tools": self._tool_lines(), "question": text})
        except Exception:
            logger.warning("LLM routing failed; falling back to embedding routing", exc_info=True)
            return None

        try:
            choice = RouterChoice.model_validate(result)
        except ValidationError:
            logger.warning("LLM routing returned an invalid choice: %r", result)
            return None

        if choice.kind == ROUTE_RAG:
            return RouteDecision(kind=ROUTE_RAG)
        if choice.tool not in {spec.name for spec in self.registry.specs()}:
            logger.info("LLM routing picked unknown tool %r", choice.tool)
            return None
        return RouteDecision(
            kind=ROUTE_TOOL,
            tool=ToolSelection(name=choice.tool, score=None, source="llm"),
        )

    def _tool_lines(self) -> str:
        return "\n".join(f"- {spec.routing_text()}" for spec in self.registry.specs())


class IntentRouter:
    """Picks a tool by LLM choice, embedding similarity and/or keyword rules.

    Intent embeddings are computed once from each tool's name, description
    and examples. A failed computation is not cached, so the next request
    retries it; until then embedding routing yields no match.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        embedder: Embedder,
        config: RouterConfig | None = None,
        classifier: LlmIntentClassifier | None = None,
    ) -> None:
        self.registry = registry
        self.embedder = embedder
        self.config = config or RouterConfig()
        self.classifier = classifier
        self._intent_vectors: list[tuple[ToolSpec, list[float]]] | None = None
        self._lock = asyncio.Lock()

    async def route(self, text: str, embedding: list[float]) -> RouteDecision:
        trimmed = text.strip()
        if not trimmed:
            return RouteDecision(kind=ROUTE_RAG)

        strategy = self.config.strategy
        if strategy == "llm_then_embedding" and self.classifier is not None:
            decision = await self.classifier.classify(trimmed)
            if decision is not None:
                return decision

        if strategy in {"embedding", "embedding_then_keyword", "llm_then_embedding"} and embedding:
            selection = await self.route_by_embedding(embedding)
            if selection is not None:
                return RouteDecision(kind=ROUTE_TOOL, tool=selection)

        if strategy in {"keyword", "embedding_then_keyword", "llm_then_embedding"}:
            selection = self.route_by_keyword(trimmed)
            if selection is not None:
                return RouteDecision(kind=ROUTE_TOOL, tool=selection)

        return RouteDecision(kind=ROUTE_RAG)

    def route_by_keyword(self, text: str) -> ToolSelection | None:
        for spec in self.registry.specs():
            if any(pattern.search(text) for pattern in spec.keyword_patterns):
                return ToolSelection(name=spec.name, score=None, source="keyword")
        return None

    async def route_by_embedding(self, embedding: list[float]) -> ToolSelection | None:
        intents = await self._intents()
        best: ToolSelection | None = None
        for spec, vector in intents:
            score = cosine_similarity(embedding, vector)
            if best is None or score > (best.score or 0.0):
                best = ToolSelection(name=spec.name, score=score, source="embedding")
        if best is not None and (best.score or 0.0) >= self.config.tool_similarity_threshold:
            return best
        return None

    async def _intents(self) -> list[tuple[ToolSpec, list[float]]]:
        async with self._lock:
            if self._intent_vectors is not None:
                return self._intent_vectors
            specs = self.registry.specs()
            try:
                vectors = await self.embedder.embed([spec.routing_text() for spec in specs])
            except Exception:
                logger.warning("Intent embedding failed; embedding routing disabled for this request", exc_info=True)
                return []
            if len(vectors) != len(specs):
                logger.warning("Intent embedding returned %d vectors for %d tools", len(vectors), len(specs))
                return []
            self._intent_vectors = list(zip(specs, vectors, strict=True))
            return self._intent_vectors
