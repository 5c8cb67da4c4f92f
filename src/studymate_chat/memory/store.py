"""Per-user long-term memory stores."""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from studymate_chat.errors import PersistenceFailure
from studymate_chat.types import MemoryEntry

SINGLE_VALUE_KINDS = frozenset({"name"})


class MemoryStore(Protocol):
    async def get_preference(self, user_id: str) -> bool: ...

    async def set_preference(self, user_id: str, enabled: bool) -> None: ...

    async def get(self, user_id: str) -> list[MemoryEntry]: ...

    async def upsert(self, user_id: str, entries: list[MemoryEntry]) -> None: ...


def merge_entries(
    existing: list[MemoryEntry], incoming: list[MemoryEntry], *, max_entries: int
) -> list[MemoryEntry]:
    """Append new facts, replacing single-valued kinds and dropping duplicates.

    The oldest entries are evicted first once `max_entries` is exceeded.
    """

    merged = list(existing)
    for entry in incoming:
        if entry.kind in SINGLE_VALUE_KINDS:
            merged = [item for item in merged if item.kind != entry.kind]
        elif entry in merged:
            continue
        merged.append(entry)
    return merged[-max_entries:]


class InMemoryMemoryStore:
    """Dictionary-backed store for tests and local runs."""

    def __init__(self, *, default_enabled: bool = True, max_entries: int = 20) -> None:
        self.default_enabled = default_enabled
        self.max_entries = max_entries
        self._preferences: dict[str, bool] = {}
        self._entries: dict[str, list[MemoryEntry]] = {}

    async def get_preference(self, user_id: str) -> bool:
        return self._preferences.get(user_id, self.default_enabled)

    async def set_preference(self, user_id: str, enabled: bool) -> None:
        self._preferences[user_id] = enabled

    async def get(self, user_id: str) -> list[MemoryEntry]:
        return list(self._entries.get(user_id, []))

    async def upsert(self, user_id: str, entries: list[MemoryEntry]) -> None:
        current = self._entries.get(user_id, [])
        self._entries[user_id] = merge_entries(current, entries, max_entries=self.max_entries)


class SQLiteMemoryStore:
    """SQLite-backed store; blocking calls run in a worker thread."""

    def __init__(
        self, db_path: str | Path, *, default_enabled: bool = True, max_entries: int = 20
    ) -> None:
        self.db_path = Path(db_path)
        self.default_enabled = default_enabled
        self.max_entries = max_entries
        _ensure_memory_tables(self.db_path)

    async def get_preference(self, user_id: str) -> bool:
        return await asyncio.to_thread(self._get_preference, user_id)

    async def set_preference(self, user_id: str, enabled: bool) -> None:
        await asyncio.to_thread(self._set_preference, user_id, enabled)

    async def get(self, user_id: str) -> list[MemoryEntry]:
        return await asyncio.to_thread(self._get, user_id)

    async def upsert(self, user_id: str, entries: list[MemoryEntry]) -> None:
        await asyncio.to_thread(self._upsert, user_id, entries)

    def _get_preference(self, user_id: str) -> bool:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT enabled FROM memory_preferences WHERE user_id = ?", (user_id,)
            ).fetchone()
        return bool(row[0]) if row else self.default_enabled

    def _set_preference(self, user_id: str, enabled: bool) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO memory_preferences(user_id, enabled) VALUES(?, ?) "
                "ON CONFLICT(user_id) DO UPDATE SET enabled=excluded.enabled",
                (user_id, int(enabled)),
            )
            conn.commit()

    def _get(self, user_id: str) -> list[MemoryEntry]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT kind, text FROM memory_entries WHERE user_id = ? ORDER BY position",
                (user_id,),
            ).fetchall()
        return [MemoryEntry(kind=kind, text=text) for kind, text in rows]

    def _upsert(self, user_id: str, entries: list[MemoryEntry]) -> None:
        try:
            merged = merge_entries(self._get(user_id), entries, max_entries=self.max_entries)
            now = datetime.now(timezone.utc).isoformat()
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM memory_entries WHERE user_id = ?", (user_id,))
                conn.executemany(
                    "INSERT INTO memory_entries(user_id, position, kind, text, updated_at) "
                    "VALUES(?, ?, ?, ?, ?)",
                    [
                        (user_id, position, entry.kind, entry.text, now)
                        for position, entry in enumerate(merged)
                    ],
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"memory upsert failed for {user_id}") from exc


def _ensure_memory_tables(db_path: Path) -> None:
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS memory_preferences "
            "(user_id TEXT PRIMARY KEY, enabled INTEGER NOT NULL)"
        )
        conn.execute(
            "CREATE TABLE IF NOT EXISTS memory_entries ("
            "user_id TEXT NOT NULL, position INTEGER NOT NULL, kind TEXT NOT NULL, "
            "text TEXT NOT NULL, updated_at TEXT NOT NULL, PRIMARY KEY (user_id, position))"
        )
        conn.commit()
