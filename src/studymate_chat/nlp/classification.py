"""Ordered classification cascade run before any retrieval work."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from studymate_chat.guard.moderation import Moderator
from studymate_chat.nlp import patterns
from studymate_chat.nlp.greetings import detect_greeting
from studymate_chat.types import Classification, ClassificationOutcome

NO_MATCH = Classification(outcome=ClassificationOutcome.NONE)


@dataclass(slots=True, frozen=True)
class CascadeInput:
    """What every stage sees: the trimmed input, its lower-cased form and the viewer."""

    text: str
    normalized: str
    viewer_id: str | None = None


class Stage(ABC):
    """One classifier in the cascade."""

    name: str = "stage"

    @abstractmethod
    async def evaluate(self, item: CascadeInput) -> Classification | None:
        """Return a terminal classification, or None to pass to the next stage."""


class GreetingStage(Stage):
    name = "greeting"

    async def evaluate(self, item: CascadeInput) -> Classification | None:
        language = detect_greeting(item.text)
        if language is None:
            return None
        return Classification(
            outcome=ClassificationOutcome.GREETING, reason="greeting", language=language
        )


class ModerationStage(Stage):
    name = "moderation"

    def __init__(self, moderator: Moderator) -> None:
        self.moderator = moderator

    async def evaluate(self, item: CascadeInput) -> Classification | None:
        result = await self.moderator.moderate(item.text)
        if result.ok:
            return None
        return Classification(
            outcome=ClassificationOutcome.MODERATION_BLOCKED,
            reason="moderation",
            metadata={"category": result.category},
        )


class PersonalDataStage(Stage):
    """Refuses first-person data requests.

    Anonymous callers always get "sign-in required". Signed-in callers are
    refused outright unless `allow_signed_in` is set, in which case the
    request continues so the tool router can answer it.
    """

    name = "personal_data"

    def __init__(
        self,
        rules: list[re.Pattern[str]] | None = None,
        *,
        allow_signed_in: bool = True,
    ) -> None:
        self.rules = rules if rules is not None else patterns.PERSONAL_DATA_PATTERNS
        self.allow_signed_in = allow_signed_in

    async def evaluate(self, item: CascadeInput) -> Classification | None:
        if not patterns.matches_any(self.rules, item.normalized):
            return None
        if item.viewer_id is None:
            return Classification(
                outcome=ClassificationOutcome.REFUSAL_PERSONAL,
                reason="personal_sign_in_required",
            )
        if self.allow_signed_in:
            return None
        return Classification(
            outcome=ClassificationOutcome.REFUSAL_PERSONAL, reason="personal_data"
        )


class PatternStage(Stage):
    """Terminates with a fixed outcome when any pattern matches."""

    def __init__(
        self,
        name: str,
        rules: list[re.Pattern[str]],
        outcome: ClassificationOutcome,
        reason: str,
    ) -> None:
        self.name = name
        self.rules = rules
        self.outcome = outcome
        self.reason = reason

    async def evaluate(self, item: CascadeInput) -> Classification | None:
        if patterns.matches_any(self.rules, item.normalized):
            return Classification(outcome=self.outcome, reason=self.reason)
        return None


class OffTopicStage(Stage):
    """General-knowledge questions, unless domain phrasing overrides them."""

    name = "off_topic"

    def __init__(
        self,
        general: list[re.Pattern[str]] | None = None,
        overrides: list[list[re.Pattern[str]]] | None = None,
    ) -> None:
        self.general = general if general is not None else patterns.GENERAL_KNOWLEDGE_PATTERNS
        self.overrides = (
            overrides
            if overrides is not None
            else [patterns.LEADERBOARD_INTENT_PATTERNS, patterns.IN_DOMAIN_PATTERNS]
        )

    async def evaluate(self, item: CascadeInput) -> Classification | None:
        if not patterns.matches_any(self.general, item.normalized):
            return None
        if any(patterns.matches_any(rules, item.normalized) for rules in self.overrides):
            return None
        return Classification(outcome=ClassificationOutcome.OFF_TOPIC, reason="off_topic_intent")


class ClassificationCascade:
    """Runs stages in order; the first terminal classification wins."""

    def __init__(self, stages: list[Stage]) -> None:
        self.stages = stages

    async def classify(
        self, text: str, *, viewer_id: str | None = None
    ) -> Classification:
        item = CascadeInput(
            text=text.strip(), normalized=text.strip().lower(), viewer_id=viewer_id
        )
        for stage in self.stages:
            result = await stage.evaluate(item)
            if result is not None:
                return result
        return NO_MATCH


def build_default_cascade(
    moderator: Moderator,
    *,
    refuse_personal_data: bool = True,
    personal_data_via_tools: bool = True,
) -> ClassificationCascade:
    """Greeting, moderation, personal data, admin, off-topic, in that order."""

    stages: list[Stage] = [GreetingStage(), ModerationStage(moderator)]
    if refuse_personal_data:
        stages.append(PersonalDataStage(allow_signed_in=personal_data_via_tools))
    stages.append(
        PatternStage(
            "admin",
            patterns.ADMIN_PATTERNS,
            ClassificationOutcome.REFUSAL_ADMIN,
            "admin_request",
        )
    )
    stages.append(OffTopicStage())
    return ClassificationCascade(stages)
