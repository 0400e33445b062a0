from __future__ import annotations
from typing import Optional


class ChatError(Exception):
    """Base class for chat failures surfaced to the calling layer."""


class MissingCredential(ChatError):
    """
    The selected provider's API key or base URL is absent/empty.
    Raised before any network call, so no chunks are ever delivered.
    """

    def __init__(self, provider: str, key: str, message: Optional[str] = None):
        self.provider = provider
        self.key = key
        super().__init__(message or f"'{key}' is not configured for provider '{provider}'.")


class TransportError(ChatError):
    """
    Network failure, non-2xx response, malformed stream or a provider-side
    error reported mid-stream. Chunks already delivered stay delivered.
    """

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class UnparseableImage(ChatError):
    """An image string does not match the data-URI form a provider needs."""
