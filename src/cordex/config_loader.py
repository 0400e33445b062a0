# src/cordex/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml


class ConfigError(ValueError):
    pass


_LEVELS = ("debug", "info", "warning", "error", "critical")


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is bool and not isinstance(cur, bool):
        raise ConfigError(f"'{dotted}' must be a boolean")
    if typ is str and not isinstance(cur, str):
        raise ConfigError(f"'{dotted}' must be a string")
    return cur


def load_config(path: Path) -> Dict[str, Any]:
    """
    Load the application settings YAML (where the config store lives,
    logging, secrets lookup). Provider/model choices live in the config
    store, not here.
    """
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    # Validate required keys (no defaults here)
    _require(raw, "store.path", str)
    _require(raw, "logging.level", str)

    level = str(raw["logging"]["level"]).lower()
    if level not in _LEVELS:
        raise ConfigError(f"Unknown logging.level '{level}' (expected one of {list(_LEVELS)}).")
    raw["logging"]["level"] = level.upper()

    runtime = raw.get("runtime")
    if runtime is not None:
        if not isinstance(runtime, dict):
            raise ConfigError("'runtime' must be a mapping")
        if "stream" in runtime:
            _require(raw, "runtime.stream", bool)

    secrets = raw.get("secrets") or {}
    if not isinstance(secrets, dict):
        raise ConfigError("'secrets' must be a mapping")
    raw["secrets"] = secrets

    # Leave paths as provided; resolve them later in bootstrap/composition
    return raw
