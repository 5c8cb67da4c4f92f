"""Built-in read-only tools and their literal formatters."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from studymate_chat.agent.motivation import MotivationSnapshot, todays_snapshot
from studymate_chat.agent.providers import (
    FocusDataProvider,
    LeaderboardSnapshot,
    LiveSessionsResult,
    NextSession,
    Streak,
    TasksToday,
    WeekSummary,
)
from studymate_chat.agent.registry import ToolInput, ToolRegistry, ToolSpec

TOOL_TODAYS_MANTRA = "TOOL_TODAYS_MANTRA"
TOOL_LIVE_SESSIONS = "TOOL_LIVE_SESSIONS"
TOOL_LEADERBOARD_TOP_NOW = "TOOL_LEADERBOARD_TOP_NOW"
TOOL_MY_TASKS_TODAY = "TOOL_MY_TASKS_TODAY"
TOOL_MY_NEXT_SESSION = "TOOL_MY_NEXT_SESSION"
TOOL_MY_STREAK = "TOOL_MY_STREAK"
TOOL_MY_WEEK_SUMMARY = "TOOL_MY_WEEK_SUMMARY"

_LEADERBOARD_UNAVAILABLE = "No leaderboard snapshot is available yet. Check Leaderboard -> History."


def _patterns(*sources: str) -> list[re.Pattern[str]]:
    return [re.compile(source, re.IGNORECASE) for source in sources]


def render_mantra(payload: MotivationSnapshot | None) -> str:
    if payload is None:
        return "Today's mantra is unavailable right now. You can check the Motivation Vault page."
    return f"Today's mantra ({payload.date_label}) #{payload.index + 1}: {payload.quote}".strip()


def render_live_sessions(payload: LiveSessionsResult | None) -> str:
    if payload is None or payload.error:
        return "Live sessions are unavailable right now. Please try again soon."
    if not payload.sessions:
        return "No joinable live sessions right now. Check Live Stream Studio for upcoming rooms."
    lines = [f"Joinable sessions right now: {len(payload.sessions)}"]
    for index, session in enumerate(payload.sessions, start=1):
        topic = session.topic or "Focus session"
        mode = f"mode: {session.mode}" if session.mode else "mode: not set"
        host = f"host: {session.creator_display_name or 'Focus Host'}"
        lines.append(f"{index}. {topic} | {session.starts_at} to {session.ends_at} | {mode} | {host}")
    return "\n".join(lines)


def render_leaderboard_top(payload: LeaderboardSnapshot | None) -> str:
    if payload is None or not payload.available or not payload.entries:
        return _LEADERBOARD_UNAVAILABLE
    start = payload.period_start or payload.date or ""
    end = payload.period_end or ""
    if start and end:
        period = f"{start} to {end}"
    else:
        period = start or end or "latest period"
    lines = [f"Leaderboard top right now ({payload.scope or 'day'}, {period}):"]
    for entry in payload.entries:
        minutes = f"{entry.minutes} min" if entry.minutes is not None else "minutes unavailable"
        lines.append(f"#{entry.rank} {entry.username} - {minutes}")
    return "\n".join(lines)


def render_tasks_today(payload: TasksToday | None) -> str:
    day = payload.date if payload is not None else "today"
    tasks = payload.tasks if payload is not None else []
    if not tasks:
        return f"No tasks due or scheduled for {day}. You can check Task Scheduler for details."
    lines = [f"Tasks for {day} (Asia/Tashkent):"]
    for task in tasks:
        due = task.due_at or task.due_date or "no due date"
        scheduled = task.scheduled_start or task.scheduled_end or "not scheduled"
        source = f"source: {task.source}" if task.source else "source: unknown"
        lines.append(f"- {task.title} [{task.status}] | due: {due} | scheduled: {scheduled} | {source}")
    return "\n".join(lines)


def render_next_session(payload: NextSession | None) -> str:
    if payload is None:
        return "No upcoming booked sessions found. Check Live Stream Studio for sessions."
    title = payload.topic or "Focus session"
    mode = f"mode: {payload.mode}" if payload.mode else "mode: not set"
    return f"Next booked session: {title} | {payload.starts_at} to {payload.ends_at} | {mode}"


def render_streak(payload: Streak | None) -> str:
    if payload is None:
        return "Streak data is not available yet. Check your profile or dashboard."
    return f"Current streak: {payload.current} days. Longest streak: {payload.longest} days."


def render_week_summary(payload: WeekSummary | None) -> str:
    if payload is None:
        return "Weekly summary is not available yet. Check your dashboard for progress."
    return "\n".join(
        [
            f"Weekly summary ({payload.range_start} to {payload.range_end}):",
            f"Completed tasks: {payload.completed_tasks}",
            f"Focus time: {payload.focused_minutes} minutes",
            f"Sessions joined: {payload.sessions_joined}",
            f"Task Scheduler done: {payload.completed_task_items}",
            f"Daily tasks done: {payload.completed_daily_tasks}",
        ]
    )


def register_builtin_tools(
    registry: ToolRegistry,
    provider: FocusDataProvider,
    *,
    clock: Callable[[], datetime] | None = None,
) -> None:
    """Register the seven read-only tools in routing priority order.

    Public tools: today's mantra, joinable live sessions, leaderboard top.
    Signed-in tools: my tasks today, my next booked session, my streak,
    my weekly summary. A signed-in tool called without a viewer yields the
    tool's unavailable sentence.
    """

    now = clock or (lambda: datetime.now(timezone.utc))

    async def _mantra(_: ToolInput) -> MotivationSnapshot:
        return todays_snapshot(now())

    async def _live_sessions(_: ToolInput) -> LiveSessionsResult:
        return await provider.live_sessions(now())

    async def _leaderboard(_: ToolInput) -> LeaderboardSnapshot:
        return await provider.leaderboard_top_now()

    def _for_viewer(method: Callable[[str], Any]) -> Callable[[ToolInput], Any]:
        async def _call(data: ToolInput) -> Any:
            if data.viewer_id is None:
                return None
            return await method(data.viewer_id)

        return _call

    registry.register(
        ToolSpec(
            name=TOOL_TODAYS_MANTRA,
            title="Today's mantra",
            description="Return today's Motivation Vault mantra (public).",
            examples=[
                "what's today's mantra",
                "today's motivation",
                "daily mantra",
                "mantra for today",
                "motivation vault quote",
            ],
            fetch=_mantra,
            render=render_mantra,
            keyword_patterns=_patterns(
                r"\btoday.?s mantra\b",
                r"\bmantra for today\b",
                r"\bdaily (mantra|motivation|quote)\b",
                r"\bquote of the day\b",
                r"\btoday.?s (motivation|quote)\b",
            ),
            tags=["public", "motivation"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_LIVE_SESSIONS,
            title="Live sessions",
            description="Show joinable live sessions happening right now (public).",
            examples=[
                "what sessions are live now",
                "who is live right now",
                "any focus rooms live",
                "live sessions",
                "study rooms happening now",
            ],
            fetch=_live_sessions,
            render=render_live_sessions,
            keyword_patterns=_patterns(
                r"\blive now\b",
                r"\bright now\b.*\blive\b",
                r"\bwho is live\b",
                r"\bsessions?\s+live\b.*\bnow\b",
                r"\bjoinable sessions?\b",
                r"\blive rooms?\b.*\bnow\b",
            ),
            tags=["public", "sessions"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_LEADERBOARD_TOP_NOW,
            title="Leaderboard top",
            description="Show the current top leaderboard (today, Asia/Tashkent, top 3) (public).",
            examples=[
                "who's top on the leaderboard right now",
                "leaderboard top now",
                "current top 3",
                "top of the leaderboard today",
                "leaderboard leaders right now",
            ],
            fetch=_leaderboard,
            render=render_leaderboard_top,
            keyword_patterns=_patterns(
                r"\bleaderboard\b.*\b(now|today|current)\b",
                r"\b(top|leaders?)\b.*\bleaderboard\b.*\b(now|today|current)\b",
                r"\bleaderboard top\b.*\b(now|today|current)\b",
            ),
            tags=["public", "leaderboard"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_MY_TASKS_TODAY,
            title="Tasks today",
            description="Show my tasks due or scheduled today (signed-in only).",
            examples=[
                "what are my tasks today",
                "my tasks for today",
                "what should I do today",
                "tasks due today",
                "my to-do list today",
            ],
            requires_auth=True,
            fetch=_for_viewer(provider.tasks_today),
            render=render_tasks_today,
            keyword_patterns=_patterns(
                r"\bmy\b.*\btasks?\b",
                r"\btasks?\b.*\btoday\b.*\bme\b",
            ),
            tags=["personal", "tasks"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_MY_NEXT_SESSION,
            title="Next booked session",
            description="Show my next booked focus session (signed-in only).",
            examples=[
                "when is my next booked session",
                "my next focus session",
                "next session I joined",
                "upcoming session I booked",
            ],
            requires_auth=True,
            fetch=_for_viewer(provider.next_booked_session),
            render=render_next_session,
            keyword_patterns=_patterns(
                r"\bmy next session\b",
                r"\bnext booked session\b",
                r"\bnext session i\b",
                r"\bupcoming session\b.*\bme\b",
            ),
            tags=["personal", "sessions"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_MY_STREAK,
            title="Streak",
            description="Show my current and longest streak (signed-in only).",
            examples=[
                "what's my streak",
                "am I on a streak",
                "current streak",
                "my streak status",
            ],
            requires_auth=True,
            fetch=_for_viewer(provider.streak),
            render=render_streak,
            keyword_patterns=_patterns(
                r"\bmy streak\b",
                r"\bcurrent streak\b",
                r"\bstreak status\b",
            ),
            tags=["personal", "streak"],
        )
    )
    registry.register(
        ToolSpec(
            name=TOOL_MY_WEEK_SUMMARY,
            title="Weekly summary",
            description="Summarize what I did this week: tasks, sessions, focus minutes (signed-in only).",
            examples=[
                "summarize what I did this week",
                "my weekly summary",
                "what did I do this week",
                "this week's progress",
            ],
            requires_auth=True,
            fetch=_for_viewer(provider.week_summary),
            render=render_week_summary,
            keyword_patterns=_patterns(
                r"\bmy week(ly)? summary\b",
                r"\bwhat did i do this week\b",
                r"\bthis week'?s progress\b",
            ),
            tags=["personal", "summary"],
        )
    )
