"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from studymate_chat.types import RetrievalContext, ToolTrace

logger = logging.getLogger(__name__)


class ToolInput(BaseModel):
    """Arguments every read-only tool receives."""

    viewer_id: str | None = None


@dataclass(slots=True, frozen=True)
class ToolSnippet:
    """Rendered tool output, ready to be handed to the generator."""

    name: str
    title: str
    text: str

    def as_context(self) -> RetrievalContext:
        return RetrievalContext(
            url=f"tool://{self.name}",
            title=self.title,
            chunk=self.text,
            chunk_index=0,
            indexed_at=datetime.now(timezone.utc).isoformat(),
            score=1.0,
        )


class ToolSpec(BaseModel):
    """Declarative tool specification for registration, routing and rendering."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    title: str
    description: str
    examples: list[str] = Field(default_factory=list)
    requires_auth: bool = False
    args_schema: type[BaseModel] = ToolInput
    fetch: Callable[[Any], Awaitable[Any]]
    render: Callable[[Any], str]
    keyword_patterns: list[re.Pattern[str]] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)

    async def invoke(self, payload: dict[str, Any]) -> Any:
        data = self.args_schema.model_validate(payload)
        return await self.fetch(data)

    def routing_text(self) -> str:
        return f"{self.name}: {self.description} Examples: {' | '.join(self.examples)}"


class ToolRegistry:
    """Stores tool specs and executes them into context snippets."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}
        self._observer: Callable[[ToolTrace], None] | None = None

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def set_observer(self, observer: Callable[[ToolTrace], None] | None) -> None:
        """Set an optional callback invoked after each tool execution."""
        self._observer = observer

    def get(self, name: str) -> ToolSpec:
        spec = self._tools.get(name)
        if spec is None:
            raise KeyError(f"Unknown tool: {name}")
        return spec

    def requires_auth(self, name: str) -> bool:
        return self.get(name).requires_auth

    async def execute(self, name: str, payload: dict[str, Any]) -> ToolSnippet:
        return await self._execute_spec(self.get(name), payload)

    def specs(self) -> list[ToolSpec]:
        return list(self._tools.values())

    async def _execute_spec(self, spec: ToolSpec, payload: dict[str, Any]) -> ToolSnippet:
        start = perf_counter()
        try:
            result = await spec.invoke(payload)
        except Exception:
            logger.warning("Tool %s fetch failed; rendering unavailable state", spec.name, exc_info=True)
            result = None
        text = spec.render(result)
        latency_ms = (perf_counter() - start) * 1000.0

        if self._observer is not None:
            self._observer(
                ToolTrace(
                    name=spec.name,
                    input_payload=payload,
                    output_preview=text[:320],
                    latency_ms=latency_ms,
                )
            )
        return ToolSnippet(name=spec.name, title=spec.title, text=text)
