import asyncio
from typing import Any

from langchain_core.runnables import RunnableLambda

from studymate_chat.agent.providers import InMemoryFocusDataProvider
from studymate_chat.agent.registry import ToolRegistry
from studymate_chat.agent.router import ROUTE_RAG, ROUTE_TOOL, IntentRouter, LlmIntentClassifier, RouterChoice
from studymate_chat.agent.tools import TOOL_LIVE_SESSIONS, TOOL_MY_STREAK, register_builtin_tools
from studymate_chat.config import RouterConfig
from studymate_chat.ingest.embedder import Embedder


class _ToolNameEmbedder(Embedder):
    """One-hot vectors keyed by the tool name at the start of the routing text."""

    def __init__(self, names: list[str], *, fail_times: int = 0) -> None:
        self.names = names
        self.fail_times = fail_times
        self.calls = 0

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise TimeoutError("embedding backend timed out")
        return [self.vector_for(text.split(":", 1)[0]) for text in texts]

    def vector_for(self, name: str) -> list[float]:
        return [1.0 if name == candidate else 0.0 for candidate in [*self.names, "other"]]


class _StructuredChatModel:
    """Stands in for a chat model; structured output returns a fixed answer."""

    def __init__(self, answer: Any) -> None:
        self.answer = answer
        self.schema: type | None = None
        self.prompts: list[str] = []

    def with_structured_output(self, schema: type) -> RunnableLambda:
        self.schema = schema
        return RunnableLambda(self._respond)

    def _respond(self, prompt: Any) -> Any:
        self.prompts.append(prompt.to_string())
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer


def _router(
    strategy: str, *, fail_times: int = 0, llm: _StructuredChatModel | None = None
) -> tuple[IntentRouter, _ToolNameEmbedder]:
    registry = ToolRegistry()
    register_builtin_tools(registry, InMemoryFocusDataProvider())
    embedder = _ToolNameEmbedder([spec.name for spec in registry.specs()], fail_times=fail_times)
    classifier = LlmIntentClassifier(llm, registry) if llm is not None else None
    return IntentRouter(registry, embedder, RouterConfig(strategy=strategy), classifier=classifier), embedder


def test_keyword_routing_picks_first_matching_tool() -> None:
    router, _ = _router("keyword")

    decision = asyncio.run(router.route("what's my streak", []))

    assert decision.kind == ROUTE_TOOL
    assert decision.tool is not None
    assert decision.tool.name == TOOL_MY_STREAK
    assert decision.tool.source == "keyword"
    assert decision.tool.score is None


def test_unmatched_question_routes_to_retrieval() -> None:
    router, _ = _router("keyword")

    assert asyncio.run(router.route("how do I change the timer duration", [])).kind == ROUTE_RAG
    assert asyncio.run(router.route("   ", [])).kind == ROUTE_RAG


def test_embedding_routing_uses_similarity_threshold() -> None:
    router, embedder = _router("embedding")

    hit = asyncio.run(router.route("anything", embedder.vector_for(TOOL_LIVE_SESSIONS)))
    miss = asyncio.run(router.route("what's my streak", embedder.vector_for("other")))

    assert hit.tool is not None
    assert hit.tool.name == TOOL_LIVE_SESSIONS
    assert hit.tool.source == "embedding"
    assert hit.tool.score == 1.0
    assert miss.kind == ROUTE_RAG


def test_embedding_miss_falls_back_to_keywords() -> None:
    router, embedder = _router("embedding_then_keyword")

    decision = asyncio.run(router.route("what's my streak", embedder.vector_for("other")))

    assert decision.tool is not None
    assert decision.tool.name == TOOL_MY_STREAK
    assert decision.tool.source == "keyword"


def test_failed_intent_embedding_is_retried_on_next_request() -> None:
    router, embedder = _router("embedding", fail_times=1)
    query = embedder.vector_for(TOOL_LIVE_SESSIONS)

    async def _run() -> tuple[str, str, str]:
        first = await router.route("live now?", query)
        second = await router.route("live now?", query)
        third = await router.route("live now?", query)
        return first.kind, second.kind, third.kind

    assert asyncio.run(_run()) == (ROUTE_RAG, ROUTE_TOOL, ROUTE_TOOL)
    assert embedder.calls == 2


def test_llm_choice_wins_before_embedding() -> None:
    llm = _StructuredChatModel(RouterChoice(kind="tool", tool=TOOL_LIVE_SESSIONS))
    router, embedder = _router("llm_then_embedding", llm=llm)

    decision = asyncio.run(router.route("who is studying right now?", embedder.vector_for(TOOL_MY_STREAK)))

    assert decision.kind == ROUTE_TOOL
    assert decision.tool is not None
    assert decision.tool.name == TOOL_LIVE_SESSIONS
    assert decision.tool.source == "llm"
    assert decision.tool.score is None
    assert llm.schema is RouterChoice
    assert TOOL_LIVE_SESSIONS in llm.prompts[0]
    assert "who is studying right now?" in llm.prompts[0]
    assert embedder.calls == 0


def test_llm_rag_choice_skips_tool_fallbacks() -> None:
    llm = _StructuredChatModel({"kind": "rag"})
    router, embedder = _router("llm_then_embedding", llm=llm)

    decision = asyncio.run(router.route("what's my streak", embedder.vector_for(TOOL_MY_STREAK)))

    assert decision.kind == ROUTE_RAG
    assert decision.tool is None


def test_failed_llm_routing_falls_back_to_embedding() -> None:
    llm = _StructuredChatModel(TimeoutError("router model timed out"))
    router, embedder = _router("llm_then_embedding", llm=llm)

    decision = asyncio.run(router.route("anything", embedder.vector_for(TOOL_LIVE_SESSIONS)))

    assert decision.tool is not None
    assert decision.tool.name == TOOL_LIVE_SESSIONS
    assert decision.tool.source == "embedding"


def test_unknown_or_malformed_llm_choice_falls_back_to_keywords() -> None:
    for answer in [{"kind": "tool", "tool": "TOOL_DELETE_ACCOUNT"}, {"kind": "tool"}, {"kind": "maybe"}]:
        router, embedder = _router("llm_then_embedding", llm=_StructuredChatModel(answer))

        decision = asyncio.run(router.route("what's my streak", embedder.vector_for("other")))

        assert decision.tool is not None, answer
        assert decision.tool.name == TOOL_MY_STREAK
        assert decision.tool.source == "keyword"


def test_llm_strategy_without_model_uses_embedding_then_keywords() -> None:
    router, embedder = _router("llm_then_embedding")

    hit = asyncio.run(router.route("anything", embedder.vector_for(TOOL_LIVE_SESSIONS)))
    fallback = asyncio.run(router.route("what's my streak", embedder.vector_for("other")))

    assert hit.tool is not None and hit.tool.source == "embedding"
    assert fallback.tool is not None and fallback.tool.source == "keyword"
