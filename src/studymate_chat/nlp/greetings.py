"""Greeting detection and replies."""

from __future__ import annotations

import re

_TRAILER = r"(\s+(there|all|everyone|team|bot|assistant|studymate|friend))?[\s!.,?)(:😊👋🙂]*$"

GREETING_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "en",
        re.compile(
            r"^(hi+|hello+|hey+|hiya|howdy|yo|greetings|sup|what'?s\s+up"
            r"|good\s+(morning|afternoon|evening|day))" + _TRAILER,
            re.IGNORECASE,
        ),
    ),
    (
        "ru",
        re.compile(
            r"^(привет(ик)?|здравствуй(те)?|добр(ый|ое|ого)\s+(день|утро|вечер|утра|дня|вечера)"
            r"|салют|хай|здорово|доброго\s+времени\s+суток)" + _TRAILER,
            re.IGNORECASE,
        ),
    ),
    (
        "uz",
        re.compile(
            r"^(salom|assalomu\s+alaykum|assalom|xayrli\s+(tong|kun|kech)"
            r"|салом|ассалому\s+алайкум|хайрли\s+(тонг|кун|кеч))" + _TRAILER,
            re.IGNORECASE,
        ),
    ),
]

GREETING_REPLIES = {
    "en": "Hi! I'm the StudyMate assistant. Ask me about the dashboard, timer, tasks, live sessions or the leaderboard.",
    "ru": "Привет! Я ассистент StudyMate. Спроси меня про дашборд, таймер, задачи, live-сессии или лидерборд.",
    "uz": "Salom! Men StudyMate yordamchisiman. Dashboard, taymer, vazifalar, live sessiyalar yoki reyting haqida so'rang.",
}


def detect_greeting(text: str) -> str | None:
    """Return the language of a pure greeting, or None for anything else."""
    normalized = text.strip().lower()
    for language, pattern in GREETING_PATTERNS:
        if pattern.match(normalized):
            return language
    return None


def greeting_reply(language: str) -> str:
    return GREETING_REPLIES.get(language, GREETING_REPLIES["en"])
