"""Redacted audit log of handled chat turns."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import uuid
from collections import Counter
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from studymate_chat.errors import PersistenceFailure
from studymate_chat.guard.redaction import RedactionEngine, combine_statuses
from studymate_chat.types import ChatLogRecord, LogEntry, RedactionStatus

logger = logging.getLogger(__name__)


class ChatLogStore(Protocol):
    async def append(self, entry: LogEntry) -> ChatLogRecord: ...

    async def recent(self, limit: int = 20) -> list[ChatLogRecord]: ...


def _new_record(entry: LogEntry) -> ChatLogRecord:
    return ChatLogRecord(
        chat_id=str(uuid.uuid4()),
        created_at=datetime.now(timezone.utc).isoformat(),
        entry=entry,
    )


def summarize(records: list[ChatLogRecord]) -> dict[str, Any]:
    """Aggregate audit records for the metrics endpoint."""

    total = len(records)
    rag = sum(1 for record in records if record.entry.used_rag)
    redaction = Counter(record.entry.redaction_status.value for record in records)
    reasons = Counter(
        str(record.entry.metadata.get("reason"))
        for record in records
        if record.entry.metadata.get("reason")
    )
    return {
        "total_turns": total,
        "rag_turns": rag,
        "rag_share": (rag / total) if total else 0.0,
        "redaction_status": {status.value: redaction.get(status.value, 0) for status in RedactionStatus},
        "reasons": dict(reasons),
    }


class InMemoryChatLogStore:
    """Append-only in-memory audit store for tests and local runs."""

    def __init__(self) -> None:
        self._records: list[ChatLogRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[ChatLogRecord]:
        return list(self._records)

    async def append(self, entry: LogEntry) -> ChatLogRecord:
        record = _new_record(entry)
        self._records.append(record)
        return record

    async def recent(self, limit: int = 20) -> list[ChatLogRecord]:
        return self._records[-limit:]


class SQLiteChatLogStore:
    """SQLite-backed audit store."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        _ensure_chat_log_table(self.db_path)

    async def append(self, entry: LogEntry) -> ChatLogRecord:
        return await asyncio.to_thread(self._append, entry)

    async def recent(self, limit: int = 20) -> list[ChatLogRecord]:
        return await asyncio.to_thread(self._recent, limit)

    def _append(self, entry: LogEntry) -> ChatLogRecord:
        record = _new_record(entry)
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    "INSERT INTO chat_logs(chat_id, created_at, user_id, session_id, language, "
                    "input, reply, used_rag, metadata, redaction_status) "
                    "VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.chat_id,
                        record.created_at,
                        entry.user_id,
                        entry.session_id,
                        entry.language,
                        entry.input,
                        entry.reply,
                        int(entry.used_rag),
                        json.dumps(entry.metadata, ensure_ascii=False, default=str),
                        entry.redaction_status.value,
                    ),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceFailure("chat log insert failed") from exc
        return record

    def _recent(self, limit: int) -> list[ChatLogRecord]:
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT chat_id, created_at, user_id, session_id, language, input, reply, "
                "used_rag, metadata, redaction_status FROM chat_logs "
                "ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            ChatLogRecord(
                chat_id=row[0],
                created_at=row[1],
                entry=LogEntry(
                    user_id=row[2],
                    session_id=row[3],
                    language=row[4],
                    input=row[5],
                    reply=row[6],
                    used_rag=bool(row[7]),
                    metadata=json.loads(row[8]),
                    redaction_status=RedactionStatus(row[9]),
                ),
            )
            for row in reversed(rows)
        ]


class InteractionLogger:
    """Redacts and persists exactly one audit record per terminal branch.

    Redaction only touches the stored copy. Persistence errors are logged
    and swallowed: the caller already has its reply.
    """

    def __init__(self, store: ChatLogStore, redactor: RedactionEngine | None = None) -> None:
        self.store = store
        self.redactor = redactor or RedactionEngine()

    async def persist(
        self,
        *,
        session_id: str,
        language: str,
        input: str,
        reply: str,
        used_rag: bool,
        metadata: dict[str, Any],
        user_id: str | None = None,
    ) -> ChatLogRecord | None:
        redacted_input = self.redactor.redact(input)
        redacted_reply = self.redactor.redact(reply)
        entry = LogEntry(
            user_id=user_id,
            session_id=session_id,
            language=language,
            input=redacted_input.value,
            reply=redacted_reply.value,
            used_rag=used_rag,
            metadata=dict(metadata),
            redaction_status=combine_statuses(redacted_input.status, redacted_reply.status),
        )
        try:
            return await self.store.append(entry)
        except Exception:
            logger.warning("Failed to persist chat log for session %s", session_id, exc_info=True)
            return None


def _ensure_chat_log_table(db_path: Path) -> None:
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "CREATE TABLE IF NOT EXISTS chat_logs ("
            "chat_id TEXT PRIMARY KEY, created_at TEXT NOT NULL, user_id TEXT, "
            "session_id TEXT NOT NULL, language TEXT NOT NULL, input TEXT NOT NULL, "
            "reply TEXT NOT NULL, used_rag INTEGER NOT NULL, metadata TEXT NOT NULL, "
            "redaction_status TEXT NOT NULL)"
        )
        conn.commit()
