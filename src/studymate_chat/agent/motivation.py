"""Deterministic daily rotation over the Motivation Vault quotes."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

from studymate_chat.agent.providers import TASHKENT

ANCHOR_DATE = date(2025, 1, 1)

MOTIVATION_QUOTES: tuple[str, ...] = (
    "Small steps every day add up to big results.",
    "Focus on progress, not perfection.",
    "You don't have to be great to start, but you have to start to be great.",
    "Discipline is choosing what you want most over what you want now.",
    "One focused hour beats a distracted day.",
    "The secret of getting ahead is getting started.",
    "Done is better than perfect.",
    "Your future self is watching. Make them proud.",
    "Consistency beats intensity.",
    "Start where you are. Use what you have. Do what you can.",
    "Motivation gets you going; habit keeps you going.",
    "The best time to study was yesterday. The next best time is now.",
    "Deep work is a superpower. Use it.",
    "Break it down, then knock it out.",
    "Every session counts, even the short ones.",
    "Rest is part of the plan, not a break from it.",
    "A little progress each day adds up.",
    "Protect your focus like it's your most valuable asset.",
    "You are one study session away from a better mood.",
    "Learning is a marathon run in sprints.",
    "Show up today. Tomorrow will thank you.",
    "Hard things get easier the more you do them.",
    "Clarity comes from action, not thought.",
    "Turn off the noise, turn on the focus.",
    "Stay patient and trust the process.",
    "Effort compounds. Keep stacking days.",
    "Make it a streak, not a sprint.",
    "What you do today shapes what you can do tomorrow.",
    "Set the timer. Begin.",
    "Finish what you started, then celebrate it.",
)


@dataclass(slots=True, frozen=True)
class MotivationSnapshot:
    date_label: str
    date_iso: str
    quote: str
    index: int
    cycle: int


def rotation_for(target: date, count: int = len(MOTIVATION_QUOTES)) -> tuple[int, int]:
    """Return `(index, cycle)` for a calendar day; cycle is 1-based."""
    offset = (target - ANCHOR_DATE).days
    return offset % count, offset // count + 1


def build_snapshot(target: date) -> MotivationSnapshot:
    index, cycle = rotation_for(target)
    return MotivationSnapshot(
        date_label=f"{target.strftime('%A')}, {target.day} {target.strftime('%B')}",
        date_iso=target.isoformat(),
        quote=MOTIVATION_QUOTES[index],
        index=index,
        cycle=cycle,
    )


def todays_snapshot(now: datetime | None = None) -> MotivationSnapshot:
    current = now or datetime.now(timezone.utc)
    return build_snapshot(current.astimezone(TASHKENT).date())
