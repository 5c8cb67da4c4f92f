"""Per-request chat orchestration: guards, cascade, routing, grounding, logging."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from studymate_chat.agent.background import BackgroundTaskQueue
from studymate_chat.agent.generator import AnswerGenerator
from studymate_chat.agent.registry import ToolRegistry
from studymate_chat.agent.router import ROUTE_TOOL, IntentRouter
from studymate_chat.config import PipelinePolicy
from studymate_chat.errors import (
    AssistantDisabled,
    GenerationFailure,
    InputValidationError,
    RateLimited,
    UpstreamRetrievalFailure,
)
from studymate_chat.guard.feature_gate import (
    POST_GENERATION,
    PRE_CLASSIFICATION,
    PRE_GENERATION,
    FeatureGate,
)
from studymate_chat.guard.rate_limit import SlidingWindowRateLimiter, rate_key
from studymate_chat.guard.validation import validate_chat_request
from studymate_chat.ingest.embedder import Embedder
from studymate_chat.memory.service import MemoryService
from studymate_chat.nlp import messages
from studymate_chat.nlp.classification import ClassificationCascade
from studymate_chat.nlp.language import detect_language
from studymate_chat.nlp.leaderboard import LeaderboardShortcut
from studymate_chat.obs.chat_log import InteractionLogger
from studymate_chat.obs.tracing import StageTimings, Timer
from studymate_chat.retrieval.retriever import RetrievalEngine
from studymate_chat.types import (
    ChatReply,
    ChatRequest,
    Classification,
    ClassificationOutcome,
    LanguageDetection,
    RetrievalContext,
    ToolSelection,
)

logger = logging.getLogger(__name__)

AuthLookup = Callable[[], Awaitable[str | None]]


class _Turn:
    """Mutable per-request state threaded through the stages."""

    __slots__ = ("request", "viewer_id", "detection", "language", "timings")

    def __init__(self, request: ChatRequest) -> None:
        self.request = request
        self.viewer_id: str | None = None
        self.detection: LanguageDetection | None = None
        self.language = "en"
        self.timings = StageTimings()


class ChatPipeline:
    """Turns one raw chat body into one reply and at most one audit record.

    Stages raise; `handle` is the only place exceptions become replies.
    Scripted outcomes (greeting, refusals, off-topic, not-indexed,
    leaderboard lookups) are regular return values and are always logged.
    """

    def __init__(
        self,
        *,
        policy: PipelinePolicy,
        rate_limiter: SlidingWindowRateLimiter,
        gate: FeatureGate,
        cascade: ClassificationCascade,
        embedder: Embedder,
        router: IntentRouter,
        registry: ToolRegistry,
        retrieval: RetrievalEngine,
        leaderboard: LeaderboardShortcut,
        memory: MemoryService,
        generator: AnswerGenerator,
        interaction_logger: InteractionLogger,
        background: BackgroundTaskQueue | None = None,
    ) -> None:
        self.policy = policy
        self.rate_limiter = rate_limiter
        self.gate = gate
        self.cascade = cascade
        self.embedder = embedder
        self.router = router
        self.registry = registry
        self.retrieval = retrieval
        self.leaderboard = leaderboard
        self.memory = memory
        self.generator = generator
        self.interaction_logger = interaction_logger
        self.background = background or BackgroundTaskQueue()

    async def handle(
        self,
        body: Any,
        *,
        forwarded_for: str | None = None,
        auth_lookup: AuthLookup | None = None,
    ) -> ChatReply:
        try:
            request = validate_chat_request(body)
        except InputValidationError as exc:
            return ChatReply(status_code=exc.status_code, error=str(exc))

        turn = _Turn(request)
        turn.language = self.policy.default_language
        try:
            turn.viewer_id = await auth_lookup() if auth_lookup is not None else None
            self.rate_limiter.check(rate_key(request.session_id, forwarded_for))

            turn.detection = detect_language(request.input)
            turn.language = turn.detection.code

            await self.gate.check(PRE_CLASSIFICATION)
            classification = await self.cascade.classify(
                request.input, viewer_id=turn.viewer_id
            )
            if classification.terminal:
                return await self._scripted(turn, classification)

            return await self._answer(turn)
        except RateLimited as exc:
            return ChatReply(
                status_code=exc.status_code, error=str(exc), retry_after=exc.retry_after
            )
        except AssistantDisabled as exc:
            return await self._paused(turn, exc)
        except Exception as exc:
            logger.exception("Chat turn failed for session %s", request.session_id)
            return await self._failure(turn, exc)

    async def _scripted(self, turn: _Turn, classification: Classification) -> ChatReply:
        # Greetings answer in the greeting's own language; the reply and log keep the detected one.
        text_language = turn.language
        if classification.outcome is ClassificationOutcome.GREETING and classification.language:
            text_language = classification.language
        reply = messages.scripted_reply(classification, text_language)
        metadata = {
            "reason": classification.reason,
            "usedTools": False,
            **classification.metadata,
        }
        return await self._reply(turn, reply, metadata=metadata)

    async def _answer(self, turn: _Turn) -> ChatReply:
        text = turn.request.input
        with Timer() as timer:
            try:
                vectors = await self.embedder.embed([text])
            except Exception as exc:
                raise UpstreamRetrievalFailure("Embedding call failed", stage="embedding") from exc
        turn.timings.record("embed", timer.elapsed_ms)
        embedding = vectors[0] if vectors else []
        if not embedding:
            raise UpstreamRetrievalFailure("Embedding came back empty", stage="embedding")

        decision = await self.router.route(text, embedding)
        if decision.kind == ROUTE_TOOL and decision.tool is not None:
            return await self._tool_answer(turn, decision.tool, embedding)

        shortcut = await self.leaderboard.maybe_handle(text, turn.language)
        if shortcut.handled:
            reply = shortcut.text or messages.pick(messages.ERROR, turn.language)
            metadata = {"usedTools": False, **(shortcut.metadata or {"reason": "leaderboard"})}
            return await self._reply(turn, reply, metadata=metadata)

        retrieval = await self.retrieval.retrieve_primary(text, embedding)
        turn.timings.record("retrieval", retrieval.retrieval_ms)
        retrieval_metadata = {
            "matches": len(retrieval.contexts),
            "bestScore": retrieval.best_score,
            "retrievalSource": retrieval.source,
            "embedMs": turn.timings.stages.get("embed"),
            "retrievalMs": retrieval.retrieval_ms,
            "usedTools": False,
        }
        if not retrieval.confident:
            reason = "not_indexed" if not retrieval.contexts else "low_confidence"
            return await self._reply(
                turn,
                self._low_confidence_reply(turn.language),
                metadata={"reason": reason, **retrieval_metadata},
            )

        return await self._generate(
            turn,
            list(retrieval.contexts),
            metadata=retrieval_metadata,
            best_score=retrieval.best_score,
        )

    async def _tool_answer(
        self, turn: _Turn, selection: ToolSelection, embedding: list[float]
    ) -> ChatReply:
        if self.registry.requires_auth(selection.name) and turn.viewer_id is None:
            return await self._reply(
                turn,
                messages.pick(messages.SIGN_IN_REQUIRED, turn.language),
                metadata={
                    "reason": "personal_sign_in_required",
                    "usedTools": False,
                    "toolName": selection.name,
                },
            )

        with Timer() as timer:
            snippet = await self.registry.execute(selection.name, {"viewer_id": turn.viewer_id})
        turn.timings.record("tool", timer.elapsed_ms)

        augment = await self.retrieval.retrieve_augmenting(turn.request.input, embedding)
        turn.timings.record("retrieval", augment.retrieval_ms)
        rag_contexts = list(augment.contexts) if augment.confident else []
        contexts = [snippet.as_context(), *rag_contexts]
        metadata = {
            "usedTools": True,
            "toolName": selection.name,
            "toolScore": selection.score,
            "toolSource": selection.source,
            "toolMs": timer.elapsed_ms,
            "matches": len(augment.contexts),
            "bestScore": augment.best_score,
            "embedMs": turn.timings.stages.get("embed"),
            "retrievalMs": augment.retrieval_ms,
        }
        return await self._generate(turn, contexts, metadata=metadata, best_score=augment.best_score)

    async def _generate(
        self,
        turn: _Turn,
        contexts: list[RetrievalContext],
        *,
        metadata: dict[str, Any],
        best_score: float,
    ) -> ChatReply:
        memory_state = await self.memory.recall(turn.viewer_id)

        await self.gate.check(PRE_GENERATION)
        with Timer() as timer:
            try:
                answer = await self.generator.generate(
                    question=turn.request.input,
                    language=turn.language,
                    contexts=contexts,
                    memory=memory_state.entries,
                )
            except Exception as exc:
                raise GenerationFailure(f"Generator failed: {exc}") from exc
        turn.timings.record("generation", timer.elapsed_ms)
        await self.gate.check(POST_GENERATION)

        record = await self.interaction_logger.persist(
            user_id=turn.viewer_id,
            session_id=turn.request.session_id,
            language=turn.language,
            input=turn.request.input,
            reply=answer,
            used_rag=True,
            metadata={
                **metadata,
                "generationMs": timer.elapsed_ms,
                "languageConfidence": turn.detection.confidence if turn.detection else None,
                "memoryUsed": len(memory_state.entries),
            },
        )

        if turn.viewer_id is not None and memory_state.enabled:
            self._schedule_memory_write(turn.viewer_id, turn.request.input)

        logger.info(
            "chat turn timings %s usedRag=%s tool=%s language=%s bestScore=%.3f",
            turn.timings.rounded(),
            True,
            metadata.get("toolName"),
            turn.language,
            best_score,
        )
        return ChatReply(
            status_code=200,
            text=answer,
            used_rag=True,
            language=turn.language,
            chat_id=record.chat_id if record is not None else None,
        )

    def _schedule_memory_write(self, user_id: str, text: str) -> None:
        async def _remember() -> None:
            await self.memory.remember(user_id, text)

        self.background.submit(f"memory-upsert:{user_id}", _remember)

    async def _paused(self, turn: _Turn, exc: AssistantDisabled) -> ChatReply:
        reply = messages.pick(messages.PAUSED, turn.language)
        if exc.checkpoint != PRE_CLASSIFICATION:
            await self._persist(
                turn,
                reply,
                metadata={"reason": "disabled", "checkpoint": exc.checkpoint, "usedTools": False},
            )
        return ChatReply(
            status_code=exc.status_code, text=reply, used_rag=False, language=turn.language
        )

    async def _failure(self, turn: _Turn, exc: Exception) -> ChatReply:
        language = self.policy.default_language
        reply = messages.pick(messages.ERROR, language)
        await self._persist(
            turn,
            reply,
            metadata={
                "reason": "failure",
                "errorType": type(exc).__name__,
                "stage": getattr(exc, "stage", "internal"),
                "usedTools": False,
            },
            language=language,
        )
        return ChatReply(status_code=500, text=reply, used_rag=False, language=language)

    async def _reply(
        self,
        turn: _Turn,
        reply: str,
        *,
        metadata: dict[str, Any],
        language: str | None = None,
    ) -> ChatReply:
        language = language or turn.language
        await self._persist(turn, reply, metadata=metadata, language=language)
        return ChatReply(status_code=200, text=reply, used_rag=False, language=language)

    async def _persist(
        self,
        turn: _Turn,
        reply: str,
        *,
        metadata: dict[str, Any],
        language: str | None = None,
    ) -> None:
        await self.interaction_logger.persist(
            user_id=turn.viewer_id,
            session_id=turn.request.session_id,
            language=language or turn.language,
            input=turn.request.input,
            reply=reply,
            used_rag=False,
            metadata=metadata,
        )

    def _low_confidence_reply(self, language: str) -> str:
        if self.policy.low_confidence_reply == "off_topic":
            return messages.pick(messages.OFF_TOPIC, language)
        return messages.pick(messages.NOT_INDEXED, language)
