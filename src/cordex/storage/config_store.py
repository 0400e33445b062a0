from __future__ import annotations
import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "cordex-config.json"

DEFAULTS: Dict[str, Any] = {
    "selectedProvider": "ollama",
    "selectedModel": "gemma2:2b",
    "ollamaBaseUrl": "http://localhost:11434",
    "theme": "dark",
    "fontSize": 14,
    "autoSave": True,
    "defaultLayout": "agent",
    "enableSuggestions": True,
    "plugins": [],
}

KNOWN_KEYS = (
    "openaiApiKey", "anthropicApiKey", "deepseekApiKey", "qwenApiKey", "geminiApiKey",
    "ollamaBaseUrl", "ollamaModel", "selectedProvider", "selectedModel",
    "theme", "fontSize", "autoSave", "defaultLayout", "enableSuggestions", "plugins",
)

SECRET_KEYS = ("openaiApiKey", "anthropicApiKey", "deepseekApiKey", "qwenApiKey", "geminiApiKey")


@dataclass
class Plugin:
    id: str
    name: str
    version: str
    enabled: bool = True
    author: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Plugin":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in raw.items() if k in names})

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def mask(value: Any) -> Any:
    if not value or not isinstance(value, str):
        return value
    return value[:3] + "…" + value[-4:] if len(value) > 10 else "****"


class ConfigStore:
    """
    Settings persisted as one JSON document (defaults merged with the file).

    Every ``set`` writes the whole document back. Load and save failures are
    logged and never raised, so a broken file degrades to defaults.
    If ``secrets`` is given, empty API-key values fall back to it
    (environment / system keyring).
    """

    def __init__(self, path: Path, secrets=None):
        self.path = Path(path)
        self._secrets = secrets
        self._data: Dict[str, Any] = self._load()

    def _defaults(self) -> Dict[str, Any]:
        return json.loads(json.dumps(DEFAULTS))

    def _load(self) -> Dict[str, Any]:
        data = self._defaults()
        if not self.path.exists():
            return data
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error("Failed to load config %s: %s", self.path, e)
            return data
        if not isinstance(raw, dict):
            logger.error("Ignoring config %s: top level is not an object", self.path)
            return data
        data.update(raw)
        return data

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to save config %s: %s", self.path, e)

    def get(self, key: str) -> Any:
        value = self._data.get(key)
        if not value and self._secrets is not None and key in SECRET_KEYS:
            return self._secrets.credential(key)
        return value

    def set(self, key: str, value: Any) -> None:
        if key not in KNOWN_KEYS:
            logger.warning("Setting unknown config key %r", key)
        self._data[key] = value
        self._save()

    def all(self, masked: bool = False) -> Dict[str, Any]:
        data = json.loads(json.dumps(self._data))
        if masked:
            for key in SECRET_KEYS:
                if key in data:
                    data[key] = mask(data[key])
        return data

    # Plugin registry

    def plugins(self) -> List[Plugin]:
        return [Plugin.from_dict(p) for p in self._data.get("plugins") or []]

    def _store_plugins(self, plugins: List[Plugin]) -> None:
        self._data["plugins"] = [p.to_dict() for p in plugins]
        self._save()

    def add_plugin(self, plugin: Plugin) -> None:
        """Insert, or replace the plugin with the same id in place."""
        plugins = self.plugins()
        for i, existing in enumerate(plugins):
            if existing.id == plugin.id:
                plugins[i] = plugin
                break
        else:
            plugins.append(plugin)
        self._store_plugins(plugins)

    def remove_plugin(self, plugin_id: str) -> None:
        self._store_plugins([p for p in self.plugins() if p.id != plugin_id])

    def toggle_plugin(self, plugin_id: str) -> Optional[Plugin]:
        plugins = self.plugins()
        for p in plugins:
            if p.id == plugin_id:
                p.enabled = not p.enabled
                self._store_plugins(plugins)
                return p
        return None
