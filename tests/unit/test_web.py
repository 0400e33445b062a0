# tests/unit/test_web.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from fastapi.testclient import TestClient

# Ensure "src" is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

import cordex.web.app as web_app
from cordex.core.errors import TransportError
from cordex.providers.registry import Provider, ProviderRegistry

ProviderRegistry.ensure_imports()


class FakeOllama:
    provider = "ollama"
    credential_key = "ollamaBaseUrl"
    credential_label = "Ollama server URL"
    seen = []
    fail_after_first = False

    @classmethod
    def create(cls, credential):
        return cls()

    def stream_chat(self, messages, model):
        FakeOllama.seen.append(list(messages))
        yield "4"
        if FakeOllama.fail_after_first:
            raise TransportError("connection reset", provider="ollama")


@pytest.fixture
def client(tmp_path: Path, monkeypatch):
    FakeOllama.seen = []
    FakeOllama.fail_after_first = False
    monkeypatch.setitem(ProviderRegistry._classes, Provider.OLLAMA, FakeOllama)
    for var in ("OPENAI_API_KEY", "OPENAI", "openai"):
        monkeypatch.delenv(var, raising=False)

    cfg = tmp_path / "default.yaml"
    cfg.write_text(
        f"""
        store:
          path: "{tmp_path / 'store.json'}"
        logging:
          level: error
        secrets:
          method: env
          mapping: {{}}
        storage:
          transcripts_dir: "{tmp_path / 'sessions'}"
          resume: null
        """,
        encoding="utf-8",
    )
    return TestClient(web_app.create_app(cfg, console_logging=False))


def test_chat_keeps_history_per_session(client):
    r = client.post("/api/chat", json={"message": "2+2?"})
    body = r.json()
    assert body["success"] is True and body["reply"] == "4"
    sid = body["session_id"]

    r = client.post("/api/chat", json={"session_id": sid, "message": "and 3+3?"})
    assert r.json()["session_id"] == sid
    assert [m.content for m in FakeOllama.seen[-1]] == ["2+2?", "4", "and 3+3?"]


def test_new_sessions_are_distinct(client):
    a = client.post("/api/session").json()["session_id"]
    b = client.post("/api/session").json()["session_id"]
    assert a != b


def test_chat_reports_missing_credential(client):
    client.put("/api/config/selectedProvider", json={"value": "openai"})
    body = client.post("/api/chat", json={"message": "hi"}).json()
    assert body["success"] is False
    assert "not configured" in body["error"]


def test_empty_message_is_rejected(client):
    assert client.post("/api/chat", json={"message": "  "}).status_code == 400


def test_stream_returns_text_and_appends_errors(client):
    r = client.post("/api/stream", json={"message": "2+2?"})
    assert r.status_code == 200
    assert r.text == "4"
    assert r.headers["X-Session-Id"]

    FakeOllama.fail_after_first = True
    r = client.post("/api/stream", json={"message": "again"})
    assert r.text.startswith("4")
    assert "\n[error] connection reset" in r.text


def test_config_endpoints_mask_keys(client):
    client.put("/api/config/openaiApiKey", json={"value": "sk-abcdef123456"})
    data = client.get("/api/config").json()
    assert data["openaiApiKey"] == "sk-…3456"
    assert data["selectedProvider"] == "ollama"

    assert client.get("/api/config/openaiApiKey").json()["value"] == "sk-…3456"
    assert client.get("/api/config/theme").json() == {"key": "theme", "value": "dark"}


def test_plugin_endpoints(client):
    r = client.post("/api/plugins", json={"id": "git", "name": "Git", "version": "1.0.0"})
    assert r.json()["success"] is True

    plugins = client.get("/api/plugins").json()["plugins"]
    assert plugins == [{"id": "git", "name": "Git", "version": "1.0.0", "enabled": True}]

    assert client.post("/api/plugins/git/toggle").json()["enabled"] is False
    assert client.post("/api/plugins/nope/toggle").status_code == 404

    client.delete("/api/plugins/git")
    assert client.get("/api/plugins").json()["plugins"] == []


def test_ollama_models_endpoint(client, monkeypatch):
    class FakeLister:
        def __init__(self, base_url, timeout=None):
            self.base_url = base_url

        def list_models(self):
            if "down" in self.base_url:
                raise TransportError("connection refused", provider="ollama")
            return [{"name": "gemma2:2b"}]

        def close(self):
            pass

    monkeypatch.setattr(web_app, "OllamaClient", FakeLister)

    body = client.get("/api/ollama/models").json()
    assert body == {"success": True, "models": [{"name": "gemma2:2b"}]}

    body = client.get("/api/ollama/models", params={"base_url": "http://down:11434"}).json()
    assert body["success"] is False and "refused" in body["error"]
