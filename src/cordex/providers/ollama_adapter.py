# src/cordex/providers/ollama_adapter.py
from __future__ import annotations
import json
from typing import Any, Dict, Iterator, List, Optional, Sequence

import httpx

from cordex.core.errors import TransportError
from cordex.core.messages import Message
from cordex.providers.images import strip_data_uri_prefix
from cordex.providers.registry import ProviderRegistry

DEFAULT_OLLAMA = "http://localhost:11434"


def format_messages(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    wire: List[Dict[str, Any]] = []
    for m in messages:
        md: Dict[str, Any] = {"role": m.role, "content": m.content}
        if m.images:
            # Ollama wants bare base64, not data-URIs
            md["images"] = [strip_data_uri_prefix(img) for img in m.images]
        wire.append(md)
    return wire


def _error_text(r: httpx.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        return r.text.strip() or r.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return r.text.strip()


@ProviderRegistry.register("ollama")
class OllamaClient:
    """
    Local-inference client for the Ollama HTTP API.
    The credential is the server base URL; no API key is involved.
    Timeouts are disabled by default since local models can take a long time
    to produce the first token.
    """
    provider = "ollama"
    credential_key = "ollamaBaseUrl"
    credential_label = "Ollama server URL"

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        client_kwargs: Dict[str, Any] = {"base_url": self.base_url, "timeout": timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self.http = httpx.Client(**client_kwargs)

    @classmethod
    def create(cls, credential: str) -> "OllamaClient":
        return cls(base_url=credential)

    def close(self) -> None:
        self.http.close()

    def stream_chat(self, messages: Sequence[Message], model: str) -> Iterator[str]:
        payload = {"model": model, "messages": format_messages(messages), "stream": True}
        try:
            with self.http.stream("POST", "/api/chat", json=payload) as r:
                if r.status_code >= 400:
                    r.read()
                    raise TransportError(
                        f"ollama request failed ({r.status_code}): {_error_text(r)}",
                        provider=self.provider,
                        status_code=r.status_code,
                    )
                # each line: {"message": {"role": "assistant", "content": "Δ"}, "done": bool, ...}
                for line in r.iter_lines():
                    if not line.strip():
                        continue
                    try:
                        obj = json.loads(line)
                    except ValueError as e:
                        raise TransportError(f"Malformed stream line from ollama: {line[:80]!r}", provider=self.provider) from e
                    if obj.get("error"):
                        raise TransportError(str(obj["error"]), provider=self.provider)
                    piece = (obj.get("message") or {}).get("content")
                    if piece:
                        yield piece
                    if obj.get("done"):
                        break
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__, provider=self.provider) from e

    def list_models(self) -> List[Dict[str, Any]]:
        """Models installed on the server, as reported by /api/tags."""
        try:
            r = self.http.get("/api/tags")
        except httpx.HTTPError as e:
            raise TransportError(str(e) or type(e).__name__, provider=self.provider) from e
        if r.status_code >= 400:
            raise TransportError(
                f"ollama request failed ({r.status_code}): {_error_text(r)}",
                provider=self.provider,
                status_code=r.status_code,
            )
        try:
            data = r.json()
        except ValueError as e:
            raise TransportError("Malformed /api/tags response from ollama", provider=self.provider) from e
        return list(data.get("models") or [])
