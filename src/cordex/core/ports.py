from __future__ import annotations
from typing import Any, Callable, Iterator, Optional, Protocol, Sequence

from .messages import Message

Sink = Callable[[str], None]


class ConfigAccessor(Protocol):
    """
    Read-only view of the persisted settings the core needs
    (selectedProvider, selectedModel, per-provider keys, ollamaBaseUrl).
    """

    def get(self, key: str) -> Any:
        ...


class ProviderClient(Protocol):
    """
    Interface the adapter uses to talk to one LLM backend family.
    """

    # Provider name, used in logs and error messages
    provider: str

    def stream_chat(self, messages: Sequence[Message], model: str) -> Iterator[str]:
        """
        Streaming call. Yields non-empty text fragments in emission order.
        Closing the iterator closes the underlying HTTP stream.
        """
        ...


class ChatService(Protocol):
    def chat(self, messages: Sequence[Any], on_chunk: Sink, cancel: Optional[Any] = None) -> str:
        ...
