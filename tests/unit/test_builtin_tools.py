import asyncio
from datetime import datetime, timedelta, timezone

from studymate_chat.agent.providers import (
    FocusSessionRow,
    InMemoryFocusDataProvider,
    LeaderboardEntry,
    LeaderboardSnapshot,
    LiveSessionsResult,
    Streak,
    TaskSummary,
    TasksToday,
    WeekSummary,
    filter_joinable_sessions,
)
from studymate_chat.agent.registry import ToolRegistry
from studymate_chat.agent.tools import (
    TOOL_LEADERBOARD_TOP_NOW,
    TOOL_LIVE_SESSIONS,
    TOOL_MY_STREAK,
    TOOL_MY_TASKS_TODAY,
    TOOL_TODAYS_MANTRA,
    register_builtin_tools,
    render_leaderboard_top,
    render_live_sessions,
    render_streak,
    render_tasks_today,
    render_week_summary,
)

NOW = datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)


def _row(session_id: str, start_offset_min: int, **kwargs: object) -> FocusSessionRow:
    return FocusSessionRow(id=session_id, starts_at=NOW + timedelta(minutes=start_offset_min), **kwargs)


def test_join_window_opens_ten_minutes_before_and_closes_five_after() -> None:
    rows = [
        _row("too-early", 11, duration_minutes=30),
        _row("opening", 10, duration_minutes=30),
        _row("closing", -35, duration_minutes=30),
        _row("closed", -36, duration_minutes=30),
        _row("no-end", 0),
        _row("cancelled", 0, duration_minutes=30, status="cancelled"),
    ]

    sessions = filter_joinable_sessions(rows, NOW)

    assert [session.id for session in sessions] == ["closing", "opening"]
    assert sessions[0].creator_display_name == "Focus Host"


def test_live_sessions_formatter() -> None:
    rows = [_row("s1", 0, duration_minutes=60, title="Deep work", task="silent", creator_user_id="u1")]
    result = LiveSessionsResult(sessions=filter_joinable_sessions(rows, NOW, {"u1": "Aziz"}))

    text = render_live_sessions(result)

    assert text.splitlines()[0] == "Joinable sessions right now: 1"
    assert text.splitlines()[1] == (
        "1. Deep work | 2025-03-10T07:00:00+00:00 to 2025-03-10T08:00:00+00:00 | mode: silent | host: Aziz"
    )
    assert render_live_sessions(LiveSessionsResult()).startswith("No joinable live sessions")
    assert render_live_sessions(None) == "Live sessions are unavailable right now. Please try again soon."


def test_personal_formatters() -> None:
    tasks = TasksToday(
        date="2025-03-10",
        tasks=[TaskSummary(title="Read chapter 3", status="planned", due_date="2025-03-10")],
    )

    assert render_tasks_today(tasks) == (
        "Tasks for 2025-03-10 (Asia/Tashkent):\n"
        "- Read chapter 3 [planned] | due: 2025-03-10 | scheduled: not scheduled | source: scheduler"
    )
    assert render_tasks_today(TasksToday(date="2025-03-10")) == (
        "No tasks due or scheduled for 2025-03-10. You can check Task Scheduler for details."
    )
    assert render_streak(Streak(current=4, longest=9)) == "Current streak: 4 days. Longest streak: 9 days."
    assert render_week_summary(
        WeekSummary("2025-03-10", "2025-03-16", 5, 3, 2, 4, 210)
    ).splitlines()[:3] == [
        "Weekly summary (2025-03-10 to 2025-03-16):",
        "Completed tasks: 5",
        "Focus time: 210 minutes",
    ]


def test_leaderboard_formatter_handles_missing_snapshot() -> None:
    snapshot = LeaderboardSnapshot(
        scope="day",
        period_start="2025-03-10",
        period_end="2025-03-10",
        entries=[LeaderboardEntry(rank=1, username="alice", minutes=None)],
    )

    assert render_leaderboard_top(snapshot) == (
        "Leaderboard top right now (day, 2025-03-10 to 2025-03-10):\n#1 alice - minutes unavailable"
    )
    assert "No leaderboard snapshot" in render_leaderboard_top(None)


def test_builtin_tools_execute_against_provider() -> None:
    provider = InMemoryFocusDataProvider(
        leaderboards=[
            LeaderboardSnapshot(
                scope="day",
                period_start="2025-03-10",
                period_end="2025-03-10",
                entries=[LeaderboardEntry(rank=rank, username=f"user{rank}", minutes=100 - rank) for rank in range(1, 6)],
            )
        ],
        streaks={"viewer-1": Streak(current=3, longest=7)},
        clock=lambda: NOW,
    )
    registry = ToolRegistry()
    register_builtin_tools(registry, provider, clock=lambda: NOW)

    async def _run() -> dict[str, str]:
        return {
            "mantra": (await registry.execute(TOOL_TODAYS_MANTRA, {})).text,
            "leaderboard": (await registry.execute(TOOL_LEADERBOARD_TOP_NOW, {})).text,
            "streak": (await registry.execute(TOOL_MY_STREAK, {"viewer_id": "viewer-1"})).text,
            "anonymous_streak": (await registry.execute(TOOL_MY_STREAK, {"viewer_id": None})).text,
            "live": (await registry.execute(TOOL_LIVE_SESSIONS, {})).text,
        }

    texts = asyncio.run(_run())

    assert len(registry.specs()) == 7
    assert registry.requires_auth(TOOL_MY_TASKS_TODAY)
    assert not registry.requires_auth(TOOL_LIVE_SESSIONS)
    assert texts["mantra"].startswith("Today's mantra (Monday, 10 March) #")
    assert texts["leaderboard"].count("\n") == 3
    assert texts["streak"] == "Current streak: 3 days. Longest streak: 7 days."
    assert texts["anonymous_streak"] == "Streak data is not available yet. Check your profile or dashboard."
    assert texts["live"].startswith("No joinable live sessions")
