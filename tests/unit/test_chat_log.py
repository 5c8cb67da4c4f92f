import asyncio
from pathlib import Path

from studymate_chat.guard.redaction import FAILED_PLACEHOLDER, RedactionEngine, RedactionResult
from studymate_chat.obs.chat_log import (
    InMemoryChatLogStore,
    InteractionLogger,
    SQLiteChatLogStore,
    summarize,
)
from studymate_chat.types import ChatLogRecord, LogEntry, RedactionStatus


class _FailingStore:
    async def append(self, entry: LogEntry) -> ChatLogRecord:
        raise ConnectionError("database unreachable")

    async def recent(self, limit: int = 20) -> list[ChatLogRecord]:
        return []


class _ReplyOnlyRedactor(RedactionEngine):
    def redact(self, text: str) -> RedactionResult:
        if text.startswith("reply"):
            return RedactionResult(value="[scrubbed]", status=RedactionStatus.REDACTED)
        return RedactionResult(value=text, status=RedactionStatus.SKIPPED)


class _FailingInputRedactor(RedactionEngine):
    def redact(self, text: str) -> RedactionResult:
        if text.startswith("input"):
            return RedactionResult(value=FAILED_PLACEHOLDER, status=RedactionStatus.FAILED)
        return RedactionResult(value=text, status=RedactionStatus.SKIPPED)


def _persist(logger: InteractionLogger, **overrides: object) -> ChatLogRecord | None:
    fields: dict[str, object] = {
        "session_id": "s1",
        "language": "en",
        "input": "input text",
        "reply": "reply text",
        "used_rag": False,
        "metadata": {"reason": "greeting"},
    }
    fields.update(overrides)
    return asyncio.run(logger.persist(**fields))  # type: ignore[arg-type]


def test_persisted_copy_is_redacted_independently() -> None:
    store = InMemoryChatLogStore()

    record = _persist(
        InteractionLogger(store),
        input="my email is anna@example.com",
        reply="Thanks!",
    )

    assert record is not None
    assert record.entry.input == "my email is [email]"
    assert record.entry.reply == "Thanks!"
    assert record.entry.redaction_status is RedactionStatus.REDACTED


def test_reply_only_change_is_redacted_status() -> None:
    store = InMemoryChatLogStore()

    record = _persist(InteractionLogger(store, _ReplyOnlyRedactor()))

    assert record is not None
    assert record.entry.input == "input text"
    assert record.entry.reply == "[scrubbed]"
    assert record.entry.redaction_status is RedactionStatus.REDACTED


def test_failed_redaction_wins() -> None:
    store = InMemoryChatLogStore()

    record = _persist(InteractionLogger(store, _FailingInputRedactor()))

    assert record is not None
    assert record.entry.input == FAILED_PLACEHOLDER
    assert record.entry.redaction_status is RedactionStatus.FAILED


def test_store_failure_is_swallowed() -> None:
    assert _persist(InteractionLogger(_FailingStore())) is None


def test_identical_turns_produce_independent_records() -> None:
    store = InMemoryChatLogStore()
    logger = InteractionLogger(store)

    first = _persist(logger)
    second = _persist(logger)

    assert first is not None and second is not None
    assert first.chat_id != second.chat_id
    assert len(store) == 2


def test_sqlite_store_round_trip(tmp_path: Path) -> None:
    store = SQLiteChatLogStore(tmp_path / "chat.db")
    logger = InteractionLogger(store)

    _persist(logger, metadata={"reason": "greeting", "bestScore": 0.5})
    _persist(logger, used_rag=True, metadata={"usedTools": False})
    records = asyncio.run(store.recent(limit=10))

    assert len(records) == 2
    assert {record.entry.used_rag for record in records} == {True, False}
    assert any(record.entry.metadata.get("bestScore") == 0.5 for record in records)


def test_summarize_counts_reasons_and_rag_share() -> None:
    store = InMemoryChatLogStore()
    logger = InteractionLogger(store)
    _persist(logger, metadata={"reason": "greeting"})
    _persist(logger, metadata={"reason": "greeting"})
    _persist(logger, used_rag=True, metadata={"usedTools": True})
    _persist(logger, input="mail anna@example.com", metadata={"reason": "off_topic_intent"})

    summary = summarize(store.records)

    assert summary["total_turns"] == 4
    assert summary["rag_turns"] == 1
    assert summary["rag_share"] == 0.25
    assert summary["reasons"] == {"greeting": 2, "off_topic_intent": 1}
    assert summary["redaction_status"] == {"skipped": 3, "redacted": 1, "failed": 0}
