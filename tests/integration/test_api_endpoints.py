from pathlib import Path

from fastapi.testclient import TestClient

from studymate_chat.api.main import build_services, create_app
from studymate_chat.config import PipelinePolicy, RouterConfig, Settings
from studymate_chat.ingest.embedder import Embedder
from studymate_chat.nlp import messages
from studymate_chat.nlp.greetings import GREETING_REPLIES

SESSION_ID = "3f2b8c1e-9a4d-4e6f-8b2a-1c3d5e7f9a0b"
ADMIN = {"X-Admin-Token": "admin-secret"}

TIMER_PAGE = """---
title: Focus timer
---
# Focus timer

The focus timer runs pomodoro cycles of 25 minutes.

## Changing durations

Open timer settings to change the focus duration and break duration.
"""


class _BrokenEmbedder(Embedder):
    async def embed(self, texts: list[str]) -> list[list[float]]:
        raise RuntimeError("embedding service unavailable")


def _docs(tmp_path: Path) -> Path:
    docs = tmp_path / "content"
    docs.mkdir()
    (docs / "timer.md").write_text(TIMER_PAGE, encoding="utf-8")
    return docs


def _client(tmp_path: Path, **overrides: object) -> TestClient:
    embedder = overrides.pop("embedder", None)
    settings = Settings(
        openai_api_key=None,
        admin_token="admin-secret",
        viewer_tokens={"token-1": "viewer-1"},
        local_docs_dir=str(_docs(tmp_path)),
        **overrides,
    )
    services = build_services(
        settings,
        policy=PipelinePolicy(router=RouterConfig(strategy="keyword")),
        embedder=embedder,
    )
    return TestClient(create_app(services=services))


def _chat(client: TestClient, text: str, **headers: str):
    return client.post("/api/chat", json={"input": text, "sessionId": SESSION_ID}, headers=headers)


def test_chat_answers_from_local_help_pages(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        response = _chat(client, "how do I change the timer duration")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store"
    payload = response.json()
    assert payload["usedRag"] is True
    assert payload["language"] == "en"
    assert payload["chatId"]
    assert "Open timer settings to change the focus duration" in payload["text"]


def test_chat_rejects_unparseable_body(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        response = client.post(
            "/api/chat", content=b"not json", headers={"Content-Type": "application/json"}
        )

    assert response.status_code == 400
    assert response.json() == {"error": "Missing input"}
    assert response.headers["cache-control"] == "no-store"


def test_chat_throttle_sets_retry_after(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        statuses = [
            _chat(client, "hello", **{"X-Forwarded-For": "198.51.100.7, 10.0.0.1"}).status_code
            for _ in range(12)
        ]
        throttled = _chat(client, "hello", **{"X-Forwarded-For": "198.51.100.7"})
        other_origin = _chat(client, "hello", **{"X-Forwarded-For": "198.51.100.8"})

    assert statuses == [200] * 12
    assert throttled.status_code == 429
    assert int(throttled.headers["retry-after"]) >= 1
    assert "error" in throttled.json()
    assert other_origin.status_code == 200


def test_greeting_round_trip(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        response = _chat(client, "Salom!")

    assert response.json()["text"] == GREETING_REPLIES["uz"]
    assert response.json()["usedRag"] is False


def test_bearer_token_unlocks_personal_tools(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        anonymous = _chat(client, "show me my tasks for today")
        forged = client.post(
            "/api/chat",
            json={"input": "show me my tasks for today", "sessionId": SESSION_ID, "userId": "viewer-1"},
        )
        signed_in = _chat(client, "show me my tasks for today", Authorization="Bearer token-1")

    assert anonymous.json()["text"] == messages.SIGN_IN_REQUIRED["en"]
    assert forged.json()["text"] == messages.SIGN_IN_REQUIRED["en"]
    assert signed_in.status_code == 200
    assert signed_in.json()["usedRag"] is True
    assert "No tasks due or scheduled" in signed_in.json()["text"]


def test_status_reports_online_and_indexing(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        response = client.get("/api/chat/status")

    assert response.headers["cache-control"] == "no-store"
    payload = response.json()
    assert payload["live"] is True
    assert payload["enabled"] is True
    assert payload["status"] == "online"
    assert payload["indexing"] == {"documents": 0, "chunks": 0, "lastIndexedAt": None}


def test_admin_toggle_requires_token_and_pauses_chat(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        missing = client.post("/admin/ai-chat", json={"enabled": False})
        wrong = client.post("/admin/ai-chat", json={"enabled": False}, headers={"X-Admin-Token": "nope"})
        toggled = client.post("/admin/ai-chat", json={"enabled": False}, headers=ADMIN)
        status = client.get("/api/chat/status").json()
        paused = _chat(client, "Как работает таймер?")

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert toggled.json() == {"enabled": False}
    assert status["status"] == "disabled"
    assert status["live"] is False
    assert paused.status_code == 503
    assert paused.json()["text"] == messages.PAUSED["ru"]


def test_reindex_and_diagnostics(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        unauthorized = client.post("/admin/reindex")
        reindex = client.post("/admin/reindex", headers=ADMIN)
        diagnostics = client.get("/admin/ai-diagnostics", headers=ADMIN)

    assert unauthorized.status_code == 401
    indexing = reindex.json()["indexing"]
    assert indexing["documents"] == 1
    assert indexing["chunks"] == 2
    assert indexing["lastIndexedAt"]
    payload = diagnostics.json()
    assert payload["enabled"] is True
    assert payload["llmConfigured"] is False
    assert payload["routerStrategy"] == "keyword"
    assert payload["localDocs"] == {"files": 1, "chunks": 2}
    assert payload["indexing"]["documents"] == 1
    assert payload["pendingBackgroundTasks"] == 0


def test_reindex_failure_is_reported(tmp_path: Path) -> None:
    with _client(tmp_path, embedder=_BrokenEmbedder()) as client:
        response = client.post("/admin/reindex", headers=ADMIN)
        status = client.get("/api/chat/status").json()

    assert response.status_code == 500
    assert response.json() == {"detail": "Reindex failed"}
    assert "embedding service unavailable" in status["indexing"]["lastError"]


def test_health_reports_extractive_mode(tmp_path: Path) -> None:
    with _client(tmp_path) as client:
        response = client.get("/health")

    assert response.json() == {"status": "ok", "llm_configured": False, "generator_mode": "extractive"}


def test_metrics_summarize_sqlite_audit_log(tmp_path: Path) -> None:
    with _client(tmp_path, sqlite_path=str(tmp_path / "chat.db")) as client:
        _chat(client, "hi")
        _chat(client, "what is the capital of France")
        response = client.get("/metrics", params={"limit": 10})

    payload = response.json()
    assert payload["total_turns"] == 2
    assert payload["rag_turns"] == 0
    assert payload["reasons"] == {"greeting": 1, "off_topic_intent": 1}
    assert payload["redaction_status"]["skipped"] == 2
