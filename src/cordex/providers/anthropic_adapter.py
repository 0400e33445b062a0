# src/cordex/providers/anthropic_adapter.py
from __future__ import annotations
import logging
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from anthropic import Anthropic, AnthropicError

from cordex.core.errors import TransportError, UnparseableImage
from cordex.core.messages import Message
from cordex.providers.images import ImagePayload
from cordex.providers.openai_adapter import MAX_OUTPUT_TOKENS
from cordex.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def _content(m: Message) -> Union[str, List[Dict[str, Any]]]:
    if not m.images:
        return m.content
    parts: List[Dict[str, Any]] = [{"type": "text", "text": m.content}]
    for img in m.images:
        try:
            payload = ImagePayload.from_data_uri(img)
        except UnparseableImage as e:
            logger.debug("Dropping image: %s", e)
            continue
        parts.append({
            "type": "image",
            "source": {"type": "base64", "media_type": payload.media_type, "data": payload.data},
        })
    # Every image failed to parse: send text only
    return parts if len(parts) > 1 else m.content


def format_messages(messages: Sequence[Message]) -> Tuple[Optional[str], List[Dict[str, Any]]]:
    """
    Split a conversation into (system prompt, turns).

    The first system message fills the separate system slot. Any later
    system message is kept as a ``user`` turn so its text still reaches the
    model, since turns may only be user/assistant.
    """
    system: Optional[str] = None
    turns: List[Dict[str, Any]] = []
    for m in messages:
        role = m.role
        if role == "system":
            if system is None:
                system = m.content
                continue
            role = "user"
        turns.append({"role": role, "content": _content(m)})
    return system, turns


@ProviderRegistry.register("anthropic")
class AnthropicClient:
    """Streaming Messages API client."""
    provider = "anthropic"
    credential_key = "anthropicApiKey"
    credential_label = "Anthropic API key"

    def __init__(self, api_key: str, *, timeout: Optional[float] = None):
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self.client = Anthropic(**client_kwargs)

    @classmethod
    def create(cls, credential: str) -> "AnthropicClient":
        return cls(api_key=credential)

    def _build_args(self, messages: Sequence[Message], model: str) -> Dict[str, Any]:
        system, turns = format_messages(messages)
        args: Dict[str, Any] = {
            "model": model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "messages": turns,
            "stream": True,
        }
        if system:
            args["system"] = system
        return args

    def stream_chat(self, messages: Sequence[Message], model: str) -> Iterator[str]:
        try:
            stream = self.client.messages.create(**self._build_args(messages, model))
        except AnthropicError as e:
            raise TransportError(str(e), provider=self.provider, status_code=getattr(e, "status_code", None)) from e

        try:
            for event in stream:
                # message_start/stop, content_block_start/stop and non-text deltas are ignored
                if getattr(event, "type", None) != "content_block_delta":
                    continue
                delta = getattr(event, "delta", None)
                if getattr(delta, "type", None) != "text_delta":
                    continue
                text = getattr(delta, "text", None)
                if text:
                    yield text
        except AnthropicError as e:
            raise TransportError(str(e), provider=self.provider, status_code=getattr(e, "status_code", None)) from e
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
