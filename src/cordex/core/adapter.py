from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

from cordex.providers.registry import Provider, ProviderRegistry
from .errors import MissingCredential
from .messages import as_messages
from .ports import ConfigAccessor, ProviderClient, Sink
from .streaming import CancelToken, relay

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = Provider.OLLAMA
DEFAULT_MODEL = "gemma2:2b"


@dataclass
class _CacheEntry:
    fingerprint: str
    client: ProviderClient


class ChatAdapter:
    """
    Single entry point for chatting with whichever provider is selected.

    - provider and model are read from ``config`` on every call
    - unknown/absent providers (and ones without a client, e.g. gemini)
      fall back to the local Ollama client
    - one client per provider is cached and reused while its credential
      (API key or base URL) is unchanged; a new credential rebuilds it
    """

    def __init__(self, config: ConfigAccessor):
        self.config = config
        self._clients: Dict[Provider, _CacheEntry] = {}
        ProviderRegistry.ensure_imports()

    def selection(self) -> Tuple[Provider, str]:
        raw = self.config.get("selectedProvider")
        provider = Provider.parse(raw)
        if provider is None or not ProviderRegistry.has(provider):
            if raw:
                logger.warning("No client for provider %r; falling back to %s", raw, DEFAULT_PROVIDER.value)
            provider = DEFAULT_PROVIDER
        model = self.config.get("selectedModel") or DEFAULT_MODEL
        return provider, str(model)

    def client_for(self, provider: Provider) -> ProviderClient:
        klass = ProviderRegistry.get(provider)
        raw = self.config.get(klass.credential_key)
        credential = str(raw).strip() if raw else ""
        if not credential:
            raise MissingCredential(
                provider.value,
                klass.credential_key,
                f"{klass.credential_label} not configured ('{klass.credential_key}'). Please set it in Settings.",
            )

        entry = self._clients.get(provider)
        if entry is None or entry.fingerprint != credential:
            if entry is not None:
                logger.debug("Credential for %s changed; rebuilding client", provider.value)
            # In-flight calls keep the instance they already captured
            entry = _CacheEntry(fingerprint=credential, client=klass.create(credential))
            self._clients[provider] = entry
        return entry.client

    def invalidate(self, provider: Optional[Provider] = None) -> None:
        """Drop cached clients so the next call rebuilds them."""
        if provider is None:
            self._clients.clear()
        else:
            self._clients.pop(provider, None)

    def chat(self, messages: Sequence[Any], on_chunk: Sink, cancel: Optional[CancelToken] = None) -> str:
        """
        Stream one reply for ``messages`` (oldest first).
        ``on_chunk`` receives each text fragment in order; the full text is
        returned once the provider stream is drained.
        Raises MissingCredential before any request, TransportError on
        network/provider failures.
        """
        provider, model = self.selection()
        client = self.client_for(provider)
        msgs = as_messages(messages)
        logger.info("Chat via %s model=%s (%d messages)", provider.value, model, len(msgs))
        return relay(client.stream_chat(msgs, model), on_chunk, cancel)
