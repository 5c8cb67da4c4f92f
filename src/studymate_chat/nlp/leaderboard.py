"""Leaderboard history lookups answered without the generator."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any

from studymate_chat.agent.providers import TASHKENT, FocusDataProvider, LeaderboardSnapshot
from studymate_chat.nlp import messages, patterns

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
_TODAY = re.compile(r"\btoday\b|(^|\s)сегодня|\bbugun", re.IGNORECASE)
_YESTERDAY = re.compile(r"\byesterday\b|(^|\s)вчера|\bkecha\b", re.IGNORECASE)
_WEEK = re.compile(r"\bweek(ly)?\b|(^|\s)недел|\bhafta", re.IGNORECASE)
_MONTH = re.compile(r"\bmonth(ly)?\b|(^|\s)месяц|(^|\s)месячн|\boy(lik)?\b", re.IGNORECASE)
_RANK_PATTERNS = [
    re.compile(r"\b(\d{1,3})(?:st|nd|rd|th)\b", re.IGNORECASE),
    re.compile(r"#(\d{1,3})\b"),
    re.compile(r"\b(?:place|rank|position)\s+(\d{1,3})\b", re.IGNORECASE),
    re.compile(r"(?:^|\s)(\d{1,3})\s*-?\s*(?:е|ое|й|ий)?\s*мест", re.IGNORECASE),
    re.compile(r"\b(\d{1,3})\s*-?\s*o['‘’ʻ`]?rin", re.IGNORECASE),
]
_TOP_PATTERN = re.compile(r"(?:\btop|(?:^|\s)топ)[\s-]*(\d{1,3})\b", re.IGNORECASE)
_WORD_TOP = {"three": 3, "five": 5, "ten": 10}
_WORD_TOP_PATTERN = re.compile(r"\btop\s+(three|five|ten)\b", re.IGNORECASE)
_LOOKUP_CUE = re.compile(
    r"\bwho\s+(is|was|were|are)\b|(^|\s)кто\b|\bkim\b|\bshow\b|(^|\s)покажи", re.IGNORECASE
)

_HEADERS = {
    "en": "{label} leaderboard ({period}):",
    "ru": "{label} лидерборд ({period}):",
    "uz": "{label} reyting ({period}):",
}
_MINUTES = {"en": "min", "ru": "мин", "uz": "daq"}


@dataclass(slots=True, frozen=True)
class RankQuery:
    rank: int | None = None
    top: int | None = None


@dataclass(slots=True, frozen=True)
class LeaderboardOutcome:
    handled: bool
    text: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def is_leaderboard_intent(normalized: str) -> bool:
    return patterns.matches_any(patterns.LEADERBOARD_INTENT_PATTERNS, normalized)


def extract_date(text: str, today: date) -> str | None:
    match = _ISO_DATE.search(text)
    if match:
        try:
            return date.fromisoformat(match.group(1)).isoformat()
        except ValueError:
            return None
    if _YESTERDAY.search(text):
        return (today - timedelta(days=1)).isoformat()
    if _TODAY.search(text):
        return today.isoformat()
    return None


def extract_scope(text: str) -> str:
    if _WEEK.search(text):
        return "week"
    if _MONTH.search(text):
        return "month"
    return "day"


def extract_rank(text: str) -> RankQuery | None:
    top = _TOP_PATTERN.search(text)
    if top:
        return RankQuery(top=int(top.group(1)))
    word_top = _WORD_TOP_PATTERN.search(text)
    if word_top:
        return RankQuery(top=_WORD_TOP[word_top.group(1).lower()])
    for pattern in _RANK_PATTERNS:
        match = pattern.search(_ISO_DATE.sub(" ", text))
        if match:
            return RankQuery(rank=int(match.group(1)))
    return None


def format_snapshot(snapshot: LeaderboardSnapshot, query: RankQuery, language: str) -> str | None:
    entries = sorted(snapshot.entries, key=lambda entry: entry.rank)
    if query.rank is not None:
        entries = [entry for entry in entries if entry.rank == query.rank]
    elif query.top is not None:
        entries = entries[: query.top]
    if not entries:
        return None

    start = snapshot.period_start or ""
    end = snapshot.period_end or ""
    period = f"{start} - {end}" if start and end and start != end else (start or end)
    header = _HEADERS.get(language, _HEADERS["en"]).format(
        label=messages.leaderboard_scope_label(snapshot.scope, language),
        period=period,
    )
    unit = _MINUTES.get(language, _MINUTES["en"])
    lines = [header]
    for entry in entries:
        minutes = f"{entry.minutes} {unit}" if entry.minutes is not None else "-"
        lines.append(f"#{entry.rank} {entry.username} - {minutes}")
    return "\n".join(lines)


class LeaderboardShortcut:
    """Answers "who was Nth on <date>" style questions from posted snapshots.

    Only lookup-shaped questions are handled: they must mention the
    leaderboard and carry a date, a rank, or a who/show cue. Everything else
    falls through to retrieval so feature questions still reach the help pages.
    """

    def __init__(
        self,
        provider: FocusDataProvider,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.provider = provider
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def maybe_handle(self, text: str, language: str) -> LeaderboardOutcome:
        normalized = text.strip().lower()
        if not is_leaderboard_intent(normalized):
            return LeaderboardOutcome(handled=False)

        today = self._clock().astimezone(TASHKENT).date()
        day = extract_date(normalized, today)
        rank = extract_rank(normalized)
        if day is None and rank is None and not _LOOKUP_CUE.search(normalized):
            return LeaderboardOutcome(handled=False)

        scope = extract_scope(normalized)
        if day is None:
            return LeaderboardOutcome(
                handled=True,
                text=messages.pick(messages.LEADERBOARD_MISSING_DATE, language),
                metadata={"reason": "leaderboard_missing_date", "scope": scope},
            )
        if rank is None:
            return LeaderboardOutcome(
                handled=True,
                text=messages.pick(messages.LEADERBOARD_MISSING_RANK, language),
                metadata={"reason": "leaderboard_missing_rank", "date": day, "scope": scope},
            )

        metadata: dict[str, Any] = {
            "date": day,
            "scope": scope,
            "rank": rank.rank,
            "top": rank.top,
        }
        try:
            snapshot = await self.provider.leaderboard_snapshot(day, scope)
        except Exception:
            logger.warning("Leaderboard snapshot lookup failed for %s/%s", day, scope, exc_info=True)
            snapshot = None

        reply = format_snapshot(snapshot, rank, language) if snapshot else None
        if reply is None:
            return LeaderboardOutcome(
                handled=True,
                text=messages.pick(messages.LEADERBOARD_NOT_FOUND, language),
                metadata={"reason": "leaderboard_not_found", **metadata},
            )
        return LeaderboardOutcome(
            handled=True, text=reply, metadata={"reason": "leaderboard", **metadata}
        )
