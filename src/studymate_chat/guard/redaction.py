"""Scrubs personally identifying content from text before it is persisted."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from studymate_chat.types import RedactionStatus

logger = logging.getLogger(__name__)

FAILED_PLACEHOLDER = "[redaction failed]"

_SEVERITY = {
    RedactionStatus.SKIPPED: 0,
    RedactionStatus.REDACTED: 1,
    RedactionStatus.FAILED: 2,
}


@dataclass(slots=True, frozen=True)
class RedactionRule:
    label: str
    pattern: re.Pattern[str]

    def apply(self, text: str) -> str:
        return self.pattern.sub(f"[{self.label}]", text)


@dataclass(slots=True, frozen=True)
class RedactionResult:
    value: str
    status: RedactionStatus


DEFAULT_RULES: list[RedactionRule] = [
    RedactionRule("email", re.compile(r"[\w.+-]+@[\w-]+(\.[\w-]+)+")),
    RedactionRule("secret", re.compile(r"\b(sk|pk|rk)-[A-Za-z0-9_-]{16,}\b")),
    RedactionRule("card", re.compile(r"\b(?:\d[ -]?){13,19}\b")),
    RedactionRule("phone", re.compile(r"(?<!\w)\+?(?:\d[\s().-]?){9,14}\d(?!\w)")),
    RedactionRule("ip", re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b")),
    RedactionRule("handle", re.compile(r"(?<![\w@])@[A-Za-z][A-Za-z0-9_]{4,31}\b")),
]


class RedactionEngine:
    """Applies ordered rules; never raises.

    Order matters: emails and keys are masked before the looser digit rules
    can eat parts of them. A failing rule yields `FAILED` and a placeholder so
    the raw text is never persisted.
    """

    def __init__(self, rules: list[RedactionRule] | None = None) -> None:
        self.rules = rules if rules is not None else DEFAULT_RULES

    def redact(self, text: str) -> RedactionResult:
        try:
            value = text
            for rule in self.rules:
                value = rule.apply(value)
        except Exception:
            logger.warning("redaction failed", exc_info=True)
            return RedactionResult(value=FAILED_PLACEHOLDER, status=RedactionStatus.FAILED)

        status = RedactionStatus.REDACTED if value != text else RedactionStatus.SKIPPED
        return RedactionResult(value=value, status=status)


def combine_statuses(*statuses: RedactionStatus) -> RedactionStatus:
    """Return the most severe status: failed > redacted > skipped."""
    return max(statuses, key=_SEVERITY.__getitem__, default=RedactionStatus.SKIPPED)
