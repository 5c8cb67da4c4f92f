import asyncio
from datetime import date, datetime, timezone

from studymate_chat.agent.providers import (
    InMemoryFocusDataProvider,
    LeaderboardEntry,
    LeaderboardSnapshot,
)
from studymate_chat.nlp import messages
from studymate_chat.nlp.leaderboard import (
    LeaderboardShortcut,
    RankQuery,
    extract_date,
    extract_rank,
    extract_scope,
)

NOW = datetime(2025, 3, 11, 6, 0, tzinfo=timezone.utc)


def _shortcut() -> LeaderboardShortcut:
    provider = InMemoryFocusDataProvider(
        leaderboards=[
            LeaderboardSnapshot(
                scope="day",
                period_start="2025-03-10",
                period_end="2025-03-10",
                entries=[
                    LeaderboardEntry(rank=2, username="bob", minutes=250),
                    LeaderboardEntry(rank=1, username="alice", minutes=300),
                    LeaderboardEntry(rank=3, username="dilnoza", minutes=180),
                ],
            ),
            LeaderboardSnapshot(
                scope="week",
                period_start="2025-03-10",
                period_end="2025-03-16",
                entries=[
                    LeaderboardEntry(rank=1, username="alice", minutes=1300),
                    LeaderboardEntry(rank=2, username="bob", minutes=1100),
                ],
            ),
        ],
        clock=lambda: NOW,
    )
    return LeaderboardShortcut(provider, clock=lambda: NOW)


def test_extract_date_variants() -> None:
    today = date(2025, 3, 11)

    assert extract_date("leaderboard on 2025-03-10", today) == "2025-03-10"
    assert extract_date("who won yesterday", today) == "2025-03-10"
    assert extract_date("рейтинг за вчера", today) == "2025-03-10"
    assert extract_date("bugun reyting", today) == "2025-03-11"
    assert extract_date("leaderboard 2025-02-30", today) is None
    assert extract_date("leaderboard", today) is None


def test_extract_rank_and_scope() -> None:
    assert extract_rank("who was 2nd on 2025-03-10") == RankQuery(rank=2)
    assert extract_rank("show top 10") == RankQuery(top=10)
    assert extract_rank("top three this week") == RankQuery(top=3)
    assert extract_rank("кто занял 2-е место") == RankQuery(rank=2)
    assert extract_rank("leaderboard 2025-03-10") is None
    assert extract_scope("weekly leaderboard") == "week"
    assert extract_scope("месячный рейтинг") == "month"
    assert extract_scope("leaderboard") == "day"


def test_rank_lookup_formats_single_entry() -> None:
    outcome = asyncio.run(_shortcut().maybe_handle("Who was 2nd on the leaderboard on 2025-03-10?", "en"))

    assert outcome.handled
    assert outcome.text == "Daily leaderboard (2025-03-10):\n#2 bob - 250 min"
    assert outcome.metadata["reason"] == "leaderboard"
    assert outcome.metadata["rank"] == 2


def test_top_lookup_uses_period_range_for_week() -> None:
    outcome = asyncio.run(_shortcut().maybe_handle("top 2 on the weekly leaderboard 2025-03-12", "en"))

    assert outcome.text == (
        "Weekly leaderboard (2025-03-10 - 2025-03-16):\n#1 alice - 1300 min\n#2 bob - 1100 min"
    )


def test_yesterday_resolves_in_tashkent_time() -> None:
    outcome = asyncio.run(_shortcut().maybe_handle("who was 1st on the leaderboard yesterday", "en"))

    assert outcome.text is not None
    assert outcome.text.endswith("#1 alice - 300 min")


def test_missing_date_and_rank_get_scripted_prompts() -> None:
    shortcut = _shortcut()

    missing_date = asyncio.run(shortcut.maybe_handle("show the leaderboard top 3", "en"))
    missing_rank = asyncio.run(shortcut.maybe_handle("leaderboard for 2025-03-10", "ru"))

    assert missing_date.metadata["reason"] == "leaderboard_missing_date"
    assert missing_date.text == messages.LEADERBOARD_MISSING_DATE["en"]
    assert missing_rank.metadata["reason"] == "leaderboard_missing_rank"
    assert missing_rank.text == messages.LEADERBOARD_MISSING_RANK["ru"]


def test_unknown_snapshot_is_not_found() -> None:
    outcome = asyncio.run(_shortcut().maybe_handle("who was 1st on the leaderboard on 2024-01-01", "en"))

    assert outcome.handled
    assert outcome.metadata["reason"] == "leaderboard_not_found"
    assert outcome.text == messages.LEADERBOARD_NOT_FOUND["en"]


def test_feature_questions_fall_through() -> None:
    outcome = asyncio.run(_shortcut().maybe_handle("how does the leaderboard count minutes", "en"))

    assert not outcome.handled
    assert not asyncio.run(_shortcut().maybe_handle("how do I start the timer", "en")).handled
