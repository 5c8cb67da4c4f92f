"""Read-only data contracts consumed by the built-in tools."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo

TASHKENT = ZoneInfo("Asia/Tashkent")
JOIN_OPEN_MINUTES = 10
JOIN_CLOSE_MINUTES = 5
DEFAULT_HOST_NAME = "Focus Host"
LEADERBOARD_TOP_SIZE = 3


@dataclass(slots=True, frozen=True)
class FocusSessionRow:
    """A scheduled or active focus session as stored by the booking system."""

    id: str
    starts_at: datetime
    ends_at: datetime | None = None
    duration_minutes: int | None = None
    status: str = "scheduled"
    task: str | None = None
    title: str | None = None
    creator_user_id: str | None = None


@dataclass(slots=True, frozen=True)
class LiveSession:
    id: str
    topic: str | None
    mode: str | None
    starts_at: str
    ends_at: str
    creator_display_name: str | None


@dataclass(slots=True, frozen=True)
class LiveSessionsResult:
    sessions: list[LiveSession] = field(default_factory=list)
    error: str | None = None


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    rank: int
    username: str
    minutes: int | None = None


@dataclass(slots=True, frozen=True)
class LeaderboardSnapshot:
    """One posted leaderboard for a day, week or month."""

    scope: str
    period_start: str | None
    period_end: str | None
    entries: list[LeaderboardEntry] = field(default_factory=list)
    available: bool = True
    date: str | None = None

    def covers(self, day: str) -> bool:
        if self.period_start is None or self.period_end is None:
            return False
        return self.period_start <= day <= self.period_end


@dataclass(slots=True, frozen=True)
class TaskSummary:
    title: str
    status: str
    due_date: str | None = None
    due_at: str | None = None
    scheduled_start: str | None = None
    scheduled_end: str | None = None
    source: str = "scheduler"


@dataclass(slots=True, frozen=True)
class TasksToday:
    date: str
    tasks: list[TaskSummary] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class NextSession:
    id: str
    starts_at: str
    ends_at: str
    topic: str | None
    mode: str | None


@dataclass(slots=True, frozen=True)
class Streak:
    current: int
    longest: int
    updated_at: str | None = None


@dataclass(slots=True, frozen=True)
class WeekSummary:
    range_start: str
    range_end: str
    completed_tasks: int
    completed_task_items: int
    completed_daily_tasks: int
    sessions_joined: int
    focused_minutes: int


class FocusDataProvider(Protocol):
    """Narrow read-only view over the application's data store."""

    async def live_sessions(self, now: datetime | None = None) -> LiveSessionsResult: ...

    async def leaderboard_top_now(self) -> LeaderboardSnapshot: ...

    async def leaderboard_snapshot(self, day: str, scope: str) -> LeaderboardSnapshot | None: ...

    async def tasks_today(self, user_id: str) -> TasksToday: ...

    async def next_booked_session(self, user_id: str) -> NextSession | None: ...

    async def streak(self, user_id: str) -> Streak | None: ...

    async def week_summary(self, user_id: str) -> WeekSummary | None: ...


def today_tashkent(now: datetime | None = None) -> str:
    current = now or datetime.now(timezone.utc)
    return current.astimezone(TASHKENT).date().isoformat()


def resolve_ends_at(row: FocusSessionRow) -> datetime | None:
    if row.ends_at is not None:
        return row.ends_at
    if not row.duration_minutes or row.duration_minutes <= 0:
        return None
    return row.starts_at + timedelta(minutes=row.duration_minutes)


def resolve_host_name(name: str | None) -> str:
    if name and name.strip():
        return name
    return DEFAULT_HOST_NAME


def filter_joinable_sessions(
    rows: list[FocusSessionRow],
    now: datetime,
    host_names: dict[str, str] | None = None,
) -> list[LiveSession]:
    """Sessions whose join window contains `now`, ordered by start time.

    The window opens 10 minutes before the start and closes 5 minutes after
    the end. Rows without a resolvable end are skipped.
    """

    hosts = host_names or {}
    joinable: list[tuple[datetime, LiveSession]] = []
    for row in rows:
        if row.status not in {"scheduled", "active"}:
            continue
        ends_at = resolve_ends_at(row)
        if ends_at is None:
            continue
        opens_at = row.starts_at - timedelta(minutes=JOIN_OPEN_MINUTES)
        closes_at = ends_at + timedelta(minutes=JOIN_CLOSE_MINUTES)
        if now < opens_at or now > closes_at:
            continue
        joinable.append(
            (
                row.starts_at,
                LiveSession(
                    id=row.id,
                    topic=row.title or row.task,
                    mode=row.task,
                    starts_at=row.starts_at.isoformat(),
                    ends_at=ends_at.isoformat(),
                    creator_display_name=resolve_host_name(
                        hosts.get(row.creator_user_id or "")
                    ),
                ),
            )
        )
    joinable.sort(key=lambda item: item[0])
    return [session for _, session in joinable]


class InMemoryFocusDataProvider:
    """Deterministic provider for local runs and tests."""

    def __init__(
        self,
        *,
        sessions: list[FocusSessionRow] | None = None,
        host_names: dict[str, str] | None = None,
        leaderboards: list[LeaderboardSnapshot] | None = None,
        tasks: dict[str, list[TaskSummary]] | None = None,
        bookings: dict[str, list[FocusSessionRow]] | None = None,
        streaks: dict[str, Streak] | None = None,
        week_summaries: dict[str, WeekSummary] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.sessions = list(sessions or [])
        self.host_names = dict(host_names or {})
        self.leaderboards = list(leaderboards or [])
        self.tasks = dict(tasks or {})
        self.bookings = dict(bookings or {})
        self.streaks = dict(streaks or {})
        self.week_summaries = dict(week_summaries or {})
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def live_sessions(self, now: datetime | None = None) -> LiveSessionsResult:
        current = now or self._clock()
        return LiveSessionsResult(
            sessions=filter_joinable_sessions(self.sessions, current, self.host_names)
        )

    async def leaderboard_top_now(self) -> LeaderboardSnapshot:
        day = today_tashkent(self._clock())
        snapshot = await self.leaderboard_snapshot(day, "day")
        if snapshot is None or not snapshot.entries:
            return LeaderboardSnapshot(
                scope="day",
                period_start=snapshot.period_start if snapshot else None,
                period_end=snapshot.period_end if snapshot else None,
                available=False,
                date=day,
            )
        entries = sorted(snapshot.entries, key=lambda entry: entry.rank)
        return LeaderboardSnapshot(
            scope=snapshot.scope,
            period_start=snapshot.period_start,
            period_end=snapshot.period_end,
            entries=entries[:LEADERBOARD_TOP_SIZE],
            date=day,
        )

    async def leaderboard_snapshot(self, day: str, scope: str) -> LeaderboardSnapshot | None:
        matches = [
            board
            for board in self.leaderboards
            if board.scope == scope and board.covers(day)
        ]
        if not matches:
            return None
        return max(matches, key=lambda board: board.period_end or "")

    async def tasks_today(self, user_id: str) -> TasksToday:
        return TasksToday(
            date=today_tashkent(self._clock()),
            tasks=list(self.tasks.get(user_id, [])),
        )

    async def next_booked_session(self, user_id: str) -> NextSession | None:
        now = self._clock()
        upcoming = sorted(
            (
                row
                for row in self.bookings.get(user_id, [])
                if row.starts_at >= now and row.status in {"scheduled", "active"}
            ),
            key=lambda row: row.starts_at,
        )
        for row in upcoming:
            ends_at = resolve_ends_at(row)
            if ends_at is None:
                continue
            return NextSession(
                id=row.id,
                starts_at=row.starts_at.isoformat(),
                ends_at=ends_at.isoformat(),
                topic=row.title or row.task,
                mode=row.task,
            )
        return None

    async def streak(self, user_id: str) -> Streak | None:
        return self.streaks.get(user_id)

    async def week_summary(self, user_id: str) -> WeekSummary | None:
        return self.week_summaries.get(user_id)
