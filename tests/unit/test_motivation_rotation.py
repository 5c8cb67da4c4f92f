from datetime import date, datetime, timedelta, timezone

from studymate_chat.agent.motivation import (
    ANCHOR_DATE,
    MOTIVATION_QUOTES,
    build_snapshot,
    rotation_for,
    todays_snapshot,
)


def test_rotation_is_anchored_and_cycles() -> None:
    count = len(MOTIVATION_QUOTES)

    assert rotation_for(ANCHOR_DATE) == (0, 1)
    assert rotation_for(ANCHOR_DATE + timedelta(days=count - 1)) == (count - 1, 1)
    assert rotation_for(ANCHOR_DATE + timedelta(days=count)) == (0, 2)
    assert rotation_for(ANCHOR_DATE + timedelta(days=count + 1)) == (1, 2)


def test_snapshot_labels_the_day() -> None:
    snapshot = build_snapshot(date(2025, 1, 1))

    assert snapshot.date_label == "Wednesday, 1 January"
    assert snapshot.date_iso == "2025-01-01"
    assert snapshot.quote == MOTIVATION_QUOTES[0]


def test_todays_snapshot_uses_tashkent_calendar_day() -> None:
    late_utc_evening = datetime(2024, 12, 31, 20, 0, tzinfo=timezone.utc)

    snapshot = todays_snapshot(late_utc_evening)

    assert snapshot.date_iso == "2025-01-01"
    assert (snapshot.index, snapshot.cycle) == (0, 1)
