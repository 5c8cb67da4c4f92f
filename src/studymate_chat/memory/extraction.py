"""Heuristic extraction of durable facts from a user turn."""

from __future__ import annotations

import re

from studymate_chat.types import MemoryEntry

MAX_FACT_CHARS = 120

_RULES: list[tuple[str, re.Pattern[str]]] = [
    (
        "name",
        re.compile(
            r"\b(?:my name is|call me)\s+(?P<value>[^\W\d_][\w'-]{1,30})"
            r"|(?:^|\s)меня зовут\s+(?P<value_ru>[^\W\d_][\w'-]{1,30})"
            r"|\b(?:mening ismim|ismim)\s+(?P<value_uz>[^\W\d_][\w'-]{1,30})",
            re.IGNORECASE,
        ),
    ),
    (
        "goal",
        re.compile(
            r"\b(?:my goal is|i want to|i'?m preparing for|i am preparing for|i'?m studying for)\s+(?P<value>[^.!?\n]+)"
            r"|(?:^|\s)(?:моя цель|я хочу|я готовлюсь к)\s+(?P<value_ru>[^.!?\n]+)"
            r"|\b(?:maqsadim|men tayyorlanyapman)\s+(?P<value_uz>[^.!?\n]+)",
            re.IGNORECASE,
        ),
    ),
    (
        "preference",
        re.compile(
            r"\b(?:i prefer|i like to study|i usually study|i study best)\s+(?P<value>[^.!?\n]+)"
            r"|(?:^|\s)(?:я предпочитаю|мне удобнее)\s+(?P<value_ru>[^.!?\n]+)"
            r"|\b(?:men afzal ko'raman|menga qulay)\s+(?P<value_uz>[^.!?\n]+)",
            re.IGNORECASE,
        ),
    ),
]


def extract_memory_entries(text: str) -> list[MemoryEntry]:
    """Return at most one fact per kind, in rule order."""

    entries: list[MemoryEntry] = []
    for kind, pattern in _RULES:
        match = pattern.search(text)
        if match is None:
            continue
        value = next((group for group in match.groups() if group), "")
        value = " ".join(value.split()).strip(" ,;:")
        if value:
            entries.append(MemoryEntry(kind=kind, text=value[:MAX_FACT_CHARS]))
    return entries
