"""FastAPI entrypoint for chat, status and operator endpoints."""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from studymate_chat.agent.background import BackgroundTaskQueue
from studymate_chat.agent.generator import (
    AnswerGenerator,
    ExtractiveAnswerGenerator,
    LangChainAnswerGenerator,
)
from studymate_chat.agent.pipeline import ChatPipeline
from studymate_chat.agent.providers import FocusDataProvider, InMemoryFocusDataProvider
from studymate_chat.agent.registry import ToolRegistry
from studymate_chat.agent.router import IntentRouter, LlmIntentClassifier
from studymate_chat.agent.tools import register_builtin_tools
from studymate_chat.api.auth import SessionDirectory, auth_lookup_for
from studymate_chat.config import ChunkingConfig, PipelinePolicy, Settings
from studymate_chat.guard.feature_gate import FeatureFlagStore, FeatureGate
from studymate_chat.guard.moderation import (
    FailOpenModerator,
    KeywordModerator,
    Moderator,
    OpenAIModerator,
)
from studymate_chat.guard.rate_limit import SlidingWindowRateLimiter
from studymate_chat.ingest.chunker import HeadingChunker
from studymate_chat.ingest.embedder import Embedder, HashingEmbedder, OpenAIEmbedder
from studymate_chat.ingest.parser import ParserRegistry
from studymate_chat.ingest.pipeline import IngestPipeline
from studymate_chat.memory.service import MemoryService
from studymate_chat.memory.store import InMemoryMemoryStore, MemoryStore, SQLiteMemoryStore
from studymate_chat.nlp.classification import build_default_cascade
from studymate_chat.nlp.leaderboard import LeaderboardShortcut
from studymate_chat.obs.chat_log import (
    ChatLogStore,
    InMemoryChatLogStore,
    InteractionLogger,
    SQLiteChatLogStore,
    summarize,
)
from studymate_chat.obs.log_config import configure_logging
from studymate_chat.retrieval.local_docs import LocalDocsCorpus
from studymate_chat.retrieval.retriever import RetrievalEngine
from studymate_chat.retrieval.vector_store import InMemoryVectorIndex, VectorIndex

logger = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store"}


class AdminToggleRequest(BaseModel):
    enabled: bool


@dataclass(slots=True)
class ChatServices:
    """Everything the HTTP layer needs, built once per app."""

    settings: Settings
    policy: PipelinePolicy
    flags: FeatureFlagStore
    pipeline: ChatPipeline
    ingest: IngestPipeline
    local_docs: LocalDocsCorpus
    chat_logs: ChatLogStore
    sessions: SessionDirectory
    background: BackgroundTaskQueue
    llm_configured: bool
    last_reindex_error: str | None = None


def _create_llm(settings: Settings) -> Any:
    if not settings.openai_api_key:
        return None

    from langchain_openai import ChatOpenAI

    return ChatOpenAI(model=settings.openai_model, temperature=0, api_key=settings.openai_api_key)


def _create_moderator(settings: Settings) -> Moderator:
    if not settings.openai_api_key:
        return KeywordModerator()

    from openai import AsyncOpenAI

    return FailOpenModerator(
        OpenAIModerator(
            AsyncOpenAI(api_key=settings.openai_api_key),
            model=settings.openai_moderation_model,
        )
    )


def _create_embedder(settings: Settings) -> Embedder:
    if not settings.openai_api_key:
        return HashingEmbedder()
    return OpenAIEmbedder(model=settings.openai_embedding_model, api_key=settings.openai_api_key)


def build_services(
    settings: Settings | None = None,
    *,
    policy: PipelinePolicy | None = None,
    provider: FocusDataProvider | None = None,
    embedder: Embedder | None = None,
    generator: AnswerGenerator | None = None,
    moderator: Moderator | None = None,
    index: VectorIndex | None = None,
    chat_logs: ChatLogStore | None = None,
    memory_store: MemoryStore | None = None,
    flags: FeatureFlagStore | None = None,
) -> ChatServices:
    """Wire the pipeline; any collaborator can be overridden for tests."""

    settings = settings or Settings()
    policy = policy or PipelinePolicy()

    llm = None if generator is not None else _create_llm(settings)
    if generator is None:
        generator = LangChainAnswerGenerator(llm) if llm is not None else ExtractiveAnswerGenerator()
    embedder = embedder or _create_embedder(settings)
    moderator = moderator or _create_moderator(settings)
    index = index if index is not None else InMemoryVectorIndex()
    provider = provider or InMemoryFocusDataProvider()

    if chat_logs is None:
        chat_logs = (
            SQLiteChatLogStore(settings.sqlite_path) if settings.sqlite_path else InMemoryChatLogStore()
        )
    if memory_store is None:
        memory_store = (
            SQLiteMemoryStore(settings.sqlite_path, max_entries=policy.memory.max_entries)
            if settings.sqlite_path
            else InMemoryMemoryStore(max_entries=policy.memory.max_entries)
        )
    flags = flags or FeatureFlagStore(
        settings.ai_chat_enabled, cache_seconds=settings.flag_cache_seconds
    )

    chunker = HeadingChunker(ChunkingConfig())
    local_docs = LocalDocsCorpus(settings.local_docs_dir, chunker=chunker)
    ingest = IngestPipeline(ParserRegistry(), chunker, embedder, index)

    registry = ToolRegistry()
    register_builtin_tools(registry, provider)
    classifier = (
        LlmIntentClassifier(llm, registry)
        if llm is not None and policy.router.strategy == "llm_then_embedding"
        else None
    )
    background = BackgroundTaskQueue()

    pipeline = ChatPipeline(
        policy=policy,
        rate_limiter=SlidingWindowRateLimiter(policy.rate_limit),
        gate=FeatureGate(flags.is_enabled),
        cascade=build_default_cascade(
            moderator,
            refuse_personal_data=policy.refuse_personal_data,
            personal_data_via_tools=policy.personal_data_via_tools,
        ),
        embedder=embedder,
        router=IntentRouter(registry, embedder, policy.router, classifier=classifier),
        registry=registry,
        retrieval=RetrievalEngine(index, config=policy.retrieval, local_docs=local_docs),
        leaderboard=LeaderboardShortcut(provider),
        memory=MemoryService(memory_store, policy.memory),
        generator=generator,
        interaction_logger=InteractionLogger(chat_logs),
        background=background,
    )
    return ChatServices(
        settings=settings,
        policy=policy,
        flags=flags,
        pipeline=pipeline,
        ingest=ingest,
        local_docs=local_docs,
        chat_logs=chat_logs,
        sessions=SessionDirectory(settings.viewer_tokens),
        background=background,
        llm_configured=llm is not None,
    )


async def _reindex(services: ChatServices) -> dict[str, Any]:
    try:
        stats = await services.ingest.ingest_directory(services.settings.local_docs_dir)
    except Exception as exc:
        services.last_reindex_error = str(exc)[:300]
        raise
    services.last_reindex_error = None
    services.local_docs.invalidate()
    return stats.to_payload()


def create_app(settings: Settings | None = None, *, services: ChatServices | None = None) -> FastAPI:
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        configure_logging(services.settings.log_level)
        if services.settings.index_local_docs:
            try:
                await _reindex(services)
            except Exception:
                logger.warning("Startup indexing of local docs failed", exc_info=True)
        yield
        await services.background.drain()

    app = FastAPI(title="StudyMate Chat", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    def _require_admin(token: str | None) -> None:
        expected = services.settings.admin_token
        if not expected or not token or not secrets.compare_digest(token, expected):
            raise HTTPException(status_code=401, detail="Unauthorized")

    def _indexing() -> dict[str, Any]:
        payload = services.ingest.stats.to_payload()
        if services.last_reindex_error:
            payload["lastError"] = services.last_reindex_error
        return payload

    @app.post("/api/chat")
    async def chat(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except ValueError:
            body = {}
        reply = await services.pipeline.handle(
            body,
            forwarded_for=request.headers.get("x-forwarded-for"),
            auth_lookup=auth_lookup_for(services.sessions, request.headers.get("authorization")),
        )
        headers = dict(NO_STORE)
        if reply.retry_after is not None:
            headers["Retry-After"] = str(reply.retry_after)
        return JSONResponse(reply.to_payload(), status_code=reply.status_code, headers=headers)

    @app.get("/api/chat/status")
    async def chat_status() -> JSONResponse:
        payload: dict[str, Any]
        try:
            enabled = await services.flags.is_enabled(cache=True)
            payload = {"live": enabled, "enabled": enabled, "status": "online" if enabled else "disabled"}
        except Exception:
            logger.warning("Failed to load assistant availability", exc_info=True)
            payload = {
                "live": False,
                "enabled": False,
                "status": "error",
                "error": "Unable to determine assistant status.",
            }
        payload["indexing"] = _indexing()
        return JSONResponse(payload, headers=NO_STORE)

    @app.post("/admin/ai-chat")
    async def toggle_assistant(
        request: AdminToggleRequest,
        x_admin_token: str | None = Header(default=None),
    ) -> dict[str, Any]:
        _require_admin(x_admin_token)
        services.flags.set_enabled(request.enabled)
        return {"enabled": await services.flags.is_enabled(cache=False)}

    @app.post("/admin/reindex")
    async def reindex(x_admin_token: str | None = Header(default=None)) -> dict[str, Any]:
        _require_admin(x_admin_token)
        try:
            return {"indexing": await _reindex(services)}
        except Exception as exc:
            logger.exception("Reindex of %s failed", services.settings.local_docs_dir)
            raise HTTPException(status_code=500, detail="Reindex failed") from exc

    @app.get("/admin/ai-diagnostics")
    async def diagnostics(x_admin_token: str | None = Header(default=None)) -> dict[str, Any]:
        _require_admin(x_admin_token)
        return {
            "enabled": await services.flags.is_enabled(cache=False),
            "llmConfigured": services.llm_configured,
            "routerStrategy": services.policy.router.strategy,
            "similarityThreshold": services.policy.retrieval.similarity_threshold,
            "localDocs": await services.local_docs.stats(),
            "indexing": _indexing(),
            "pendingBackgroundTasks": services.background.pending,
        }

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": services.llm_configured,
            "generator_mode": "langchain" if services.llm_configured else "extractive",
        }

    @app.get("/metrics")
    async def metrics(limit: int = 200) -> dict[str, Any]:
        return summarize(await services.chat_logs.recent(limit=limit))

    return app


app = create_app()
