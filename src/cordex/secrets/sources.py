# src/cordex/secrets/sources.py

from __future__ import annotations
from typing import Protocol, Optional, Dict, Iterable, List, Union
import logging
import os, sys, subprocess

import keyring
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)


class SecretSource(Protocol):
    def get(self, service: str) -> Optional[str]: ...


class EnvSource:
    def get(self, service: str) -> Optional[str]:
        # Allow mapping to be an explicit env var key OR a service name
        # 1) exact env var name
        val = os.getenv(service)
        if val:
            return val.strip()
        # 2) derived names
        for key in (f"{service.upper()}_API_KEY", service.upper()):
            val = os.getenv(key)
            if val:
                return val.strip()
        return None


class SystemKeyringSource:
    def get(self, service: str) -> Optional[str]:
        try:
            cred = keyring.get_credential(service, None)
            if cred and getattr(cred, "password", None):
                return cred.password.strip()
            for account in ("API_KEY", f"{service.upper()}_API_KEY", "default", service):
                val = keyring.get_password(service, account)
                if val:
                    return val.strip()
        except KeyringError as e:
            logger.debug("Keyring lookup for %s failed: %s", service, e)
        if sys.platform == "darwin":
            p = subprocess.run(
                ["security", "find-generic-password", "-s", service, "-w"],
                capture_output=True, text=True, check=False
            )
            if p.returncode == 0 and p.stdout.strip():
                return p.stdout.strip()
        return None


_ALLOWED_METHODS = {"env", "keyring"}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(method, str):
        methods = [method]
    else:
        methods = list(method)
    norm = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        if name == "env":
            sources.append(EnvSource())
        elif name == "keyring":
            sources.append(SystemKeyringSource())
    return sources


# Config-store credential keys -> provider names used for secret lookups
CREDENTIAL_PROVIDERS: Dict[str, str] = {
    "openaiApiKey": "openai",
    "anthropicApiKey": "anthropic",
    "deepseekApiKey": "deepseek",
    "qwenApiKey": "qwen",
    "geminiApiKey": "gemini",
}


class SecretsResolver:
    """
    Resolve secrets using one or more methods in order.
    mapping: per-provider map of names -> service/env-key
      e.g. { "openai": { "api_key": "openai" } } or { "openai": { "api_key": "OPENAI_API_KEY" } }
    """
    def __init__(self, method: Union[str, Iterable[str]], mapping: Dict[str, Dict[str, str]] | None = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, provider: str, name: str = "api_key") -> Optional[str]:
        service = self._map.get(provider, {}).get(name, provider)
        for src in self._sources:
            val = src.get(service)
            if val:
                return val
        return None

    def credential(self, config_key: str) -> Optional[str]:
        """API key for a config-store key such as 'openaiApiKey', if any source has one."""
        provider = CREDENTIAL_PROVIDERS.get(config_key)
        if provider is None:
            return None
        return self.secret(provider)
