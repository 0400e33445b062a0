from __future__ import annotations
from enum import Enum
from typing import Any, Callable, Dict, Optional, Type
from importlib import import_module


class Provider(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OLLAMA = "ollama"
    DEEPSEEK = "deepseek"
    QWEN = "qwen"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: Any) -> Optional["Provider"]:
        """Case-insensitive lookup; None for absent or unknown values."""
        if isinstance(value, Provider):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class ProviderRegistry:
    """
    Maps each provider to the client class that speaks its wire protocol.
    Client classes expose ``credential_key`` (the config key holding the API
    key or base URL) and ``create(credential)``.
    """
    _classes: Dict[Provider, Type] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[Type], Type]:
        provider = Provider(name.lower())
        def deco(klass: Type) -> Type:
            cls._classes[provider] = klass
            return klass
        return deco

    @classmethod
    def get(cls, name: Any) -> Type:
        provider = Provider.parse(name)
        if provider is None or provider not in cls._classes:
            raise KeyError(f"Provider '{name}' not registered")
        return cls._classes[provider]

    @classmethod
    def has(cls, name: Any) -> bool:
        provider = Provider.parse(name)
        return provider is not None and provider in cls._classes

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in clients so their @register decorators run.
        Call once at bootstrap before get().
        """
        import_module("cordex.providers.openai_adapter")
        import_module("cordex.providers.anthropic_adapter")
        import_module("cordex.providers.ollama_adapter")
