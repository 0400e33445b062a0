# tests/unit/test_ollama_adapter.py

from __future__ import annotations
import json
import sys
from pathlib import Path
from typing import Any, Dict, List
import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from cordex.core.errors import TransportError
from cordex.core.messages import Message
from cordex.providers.ollama_adapter import OllamaClient, format_messages


def ndjson(*objs: Dict[str, Any]) -> bytes:
    return ("\n".join(json.dumps(o) for o in objs) + "\n").encode("utf-8")


def make_client(handler) -> OllamaClient:
    return OllamaClient(base_url="http://ollama.test/", transport=httpx.MockTransport(handler))


def test_stream_chat_yields_message_content_until_done():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = ndjson(
            {"message": {"role": "assistant", "content": "The answer"}, "done": False},
            {"message": {"role": "assistant", "content": ""}, "done": False},
            {"message": {"role": "assistant", "content": " is 4"}, "done": False},
            {"message": {"role": "assistant", "content": ""}, "done": True},
            {"message": {"role": "assistant", "content": "ignored"}, "done": False},
        )
        return httpx.Response(200, content=body)

    client = make_client(handler)
    pieces = list(client.stream_chat([Message("user", "2+2?")], "gemma2:2b"))

    assert pieces == ["The answer", " is 4"]
    req = seen[0]
    assert req.method == "POST"
    assert str(req.url) == "http://ollama.test/api/chat"
    payload = json.loads(req.content)
    assert payload == {"model": "gemma2:2b", "messages": [{"role": "user", "content": "2+2?"}], "stream": True}


def test_images_are_sent_as_bare_base64():
    wire = format_messages([Message("user", "see", images=("data:image/png;base64,AAAA", "BBBB"))])
    assert wire == [{"role": "user", "content": "see", "images": ["AAAA", "BBBB"]}]


def test_error_line_mid_stream_raises_after_earlier_chunks():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=ndjson(
            {"message": {"content": "partial"}, "done": False},
            {"error": "model ran out of memory"},
        ))

    got = []
    with pytest.raises(TransportError, match="out of memory"):
        for piece in make_client(handler).stream_chat([Message("user", "hi")], "llama3"):
            got.append(piece)
    assert got == ["partial"]


def test_non_2xx_status_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "model 'nope' not found"})

    with pytest.raises(TransportError) as ei:
        list(make_client(handler).stream_chat([Message("user", "hi")], "nope"))

    assert ei.value.status_code == 404
    assert "not found" in str(ei.value)


def test_malformed_line_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b'{"message": {"content": "ok"}}\nnot json\n')

    with pytest.raises(TransportError, match="Malformed"):
        list(make_client(handler).stream_chat([Message("user", "hi")], "llama3"))


def test_connection_failure_raises_transport_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="refused") as ei:
        list(make_client(handler).stream_chat([Message("user", "hi")], "llama3"))
    assert ei.value.provider == "ollama"


def test_list_models_reads_tags():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(200, json={"models": [{"name": "gemma2:2b"}, {"name": "llama3:8b"}]})

    models = make_client(handler).list_models()
    assert [m["name"] for m in models] == ["gemma2:2b", "llama3:8b"]


def test_create_uses_credential_as_base_url():
    client = OllamaClient.create("http://gpu-box:11434/")
    try:
        assert client.base_url == "http://gpu-box:11434"
        assert client.provider == "ollama"
    finally:
        client.close()
