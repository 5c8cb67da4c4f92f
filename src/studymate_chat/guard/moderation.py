"""Content-safety checks consumed by the classification cascade."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ModerationResult:
    ok: bool
    category: str | None = None


class Moderator(Protocol):
    async def moderate(self, text: str) -> ModerationResult:
        """Return `ok=False` with a category when the text is unsafe."""


_KEYWORD_RULES: list[tuple[str, re.Pattern[str]]] = [
    (
        "self-harm",
        re.compile(
            r"\b(kill\s+myself|suicide|self[-\s]?harm|end\s+my\s+life)\b"
            r"|(^|\s)(убить\s+себя|суицид|покончить\s+с\s+собой)"
            r"|(^|\s)(o'?zimni\s+o'?ldir)",
            re.IGNORECASE,
        ),
    ),
    (
        "violence",
        re.compile(
            r"\b(how\s+to\s+(make|build)\s+a\s+(bomb|weapon)|kill\s+(him|her|them|you))\b"
            r"|(^|\s)(сделать\s+бомбу|убить\s+(его|её|их|тебя))",
            re.IGNORECASE,
        ),
    ),
    (
        "sexual",
        re.compile(r"\b(porn|nude(s)?|sex\s+chat|nsfw)\b|(^|\s)(порно|секс)", re.IGNORECASE),
    ),
    (
        "harassment",
        re.compile(
            r"\b(you\s+are\s+(stupid|an?\s+idiot)|shut\s+up|f+u+c+k\s+you)\b"
            r"|(^|\s)(идиот|заткнись|tentak)",
            re.IGNORECASE,
        ),
    ),
]


class KeywordModerator:
    """Deterministic rule-based moderation used when no model is configured.

    Rules are evaluated in order; the first matching category wins. The
    patterns catch blatant cases only and are not a substitute for a model.
    """

    def __init__(self, rules: list[tuple[str, re.Pattern[str]]] | None = None) -> None:
        self.rules = rules if rules is not None else _KEYWORD_RULES

    async def moderate(self, text: str) -> ModerationResult:
        for category, pattern in self.rules:
            if pattern.search(text):
                return ModerationResult(ok=False, category=category)
        return ModerationResult(ok=True)


class OpenAIModerator:
    """Moderation via the OpenAI moderation endpoint."""

    def __init__(self, client: Any | None = None, *, model: str = "omni-moderation-latest") -> None:
        if client is None:
            from openai import AsyncOpenAI

            client = AsyncOpenAI()
        self._client = client
        self._model = model

    async def moderate(self, text: str) -> ModerationResult:
        response = await self._client.moderations.create(model=self._model, input=text)
        result = response.results[0]
        if not result.flagged:
            return ModerationResult(ok=True)
        categories = result.categories.model_dump(by_alias=True)
        flagged = [name for name, hit in categories.items() if hit]
        return ModerationResult(ok=False, category=flagged[0] if flagged else "flagged")


class FailOpenModerator:
    """Wraps a moderator so an outage degrades to "allowed" instead of failing."""

    def __init__(self, inner: Moderator) -> None:
        self.inner = inner

    async def moderate(self, text: str) -> ModerationResult:
        try:
            return await self.inner.moderate(text)
        except Exception:
            logger.warning("moderation check failed, allowing input", exc_info=True)
            return ModerationResult(ok=True)
