# src/cordex/providers/openai_adapter.py
from __future__ import annotations
from typing import Any, Dict, Iterator, List, Optional, Sequence

from openai import OpenAI, OpenAIError

from cordex.core.errors import TransportError
from cordex.core.messages import Message
from cordex.providers.registry import ProviderRegistry

MAX_OUTPUT_TOKENS = 4096


def _transport_error(exc: Exception, provider: str) -> TransportError:
    """
    Convert OpenAI SDK exceptions into a neutral TransportError.
    The SDK wraps connection failures too, so one base class covers both.
    """
    status = getattr(exc, "status_code", None)
    msg = str(exc)
    if status is not None:
        msg = f"{provider} request failed ({int(status)}): {msg}"
    return TransportError(msg, provider=provider, status_code=status)


def _delta_text(chunk: Any) -> Optional[str]:
    # Role-only and usage-only chunks carry no text delta
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return None
    delta = getattr(choices[0], "delta", None)
    return getattr(delta, "content", None)


def format_messages(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    """Messages with images become a text part followed by one image_url part per image."""
    out: List[Dict[str, Any]] = []
    for m in messages:
        if m.images:
            parts: List[Dict[str, Any]] = [{"type": "text", "text": m.content}]
            parts.extend({"type": "image_url", "image_url": {"url": img}} for img in m.images)
            out.append({"role": m.role, "content": parts})
        else:
            out.append({"role": m.role, "content": m.content})
    return out


@ProviderRegistry.register("openai")
class OpenAICompatibleClient:
    """
    Chat-completions streaming client.
    Subclasses reuse the same request/response shape against another base URL.
    """
    provider = "openai"
    credential_key = "openaiApiKey"
    credential_label = "OpenAI API key"
    base_url: Optional[str] = None

    def __init__(self, api_key: str, *, base_url: Optional[str] = None, timeout: Optional[float] = None):
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        base_url = base_url or self.base_url
        if base_url:
            client_kwargs["base_url"] = base_url
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = OpenAI(**client_kwargs)

    @classmethod
    def create(cls, credential: str) -> "OpenAICompatibleClient":
        return cls(api_key=credential)

    def stream_chat(self, messages: Sequence[Message], model: str) -> Iterator[str]:
        try:
            stream = self.client.chat.completions.create(
                model=model,
                messages=format_messages(messages),
                stream=True,
                max_tokens=MAX_OUTPUT_TOKENS,
            )
        except OpenAIError as e:
            raise _transport_error(e, self.provider) from e

        try:
            for chunk in stream:
                piece = _delta_text(chunk)
                if piece:
                    yield piece
        except OpenAIError as e:
            raise _transport_error(e, self.provider) from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()


@ProviderRegistry.register("deepseek")
class DeepSeekClient(OpenAICompatibleClient):
    provider = "deepseek"
    credential_key = "deepseekApiKey"
    credential_label = "DeepSeek API key"
    base_url = "https://api.deepseek.com"


@ProviderRegistry.register("qwen")
class QwenClient(OpenAICompatibleClient):
    # DashScope compatible mode
    provider = "qwen"
    credential_key = "qwenApiKey"
    credential_label = "Qwen API key"
    base_url = "https://dashscope.aliyuncs.com/compatible-mode/v1"
