from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
import logging
from dotenv import load_dotenv

from .config_loader import load_config
from .core.adapter import ChatAdapter
from .logging_config import init_logging
from .providers.registry import ProviderRegistry
from .secrets.sources import SecretsResolver
from .storage.config_store import ConfigStore
from .storage.transcript import Transcript

logger = logging.getLogger(__name__)


def _resolve(raw: Optional[str], base: Path) -> Optional[Path]:
    if not raw:
        return None
    p = Path(raw).expanduser()
    return p if p.is_absolute() else (base / p).resolve()


def build_app(config_path: Path, *, console_logging: bool = True, with_transcript: bool = True) -> Dict[str, Any]:
    """
    Composition root: load YAML settings, set up logging, build the config
    store (with secrets fallback), the chat adapter and a transcript.
    Relative paths in the YAML resolve against the YAML's directory.
    Returns: dict with cfg, paths, store, adapter, transcript.
    """
    load_dotenv()
    cfg = load_config(config_path)
    config_dir = config_path.resolve().parent

    # ----- Logging -----
    log_cfg = cfg["logging"]
    log_dir = _resolve(log_cfg.get("dir"), config_dir)
    init_logging(log_dir, level=log_cfg["level"], also_console=console_logging)

    # ----- Secrets + config store -----
    secrets_cfg = cfg.get("secrets") or {}
    resolver = None
    if secrets_cfg.get("method"):
        resolver = SecretsResolver(method=secrets_cfg["method"], mapping=secrets_cfg.get("mapping") or {})

    store_path = _resolve(cfg["store"]["path"], config_dir)
    store = ConfigStore(store_path, secrets=resolver)

    # ----- Chat adapter -----
    ProviderRegistry.ensure_imports()  # make sure built-ins register
    adapter = ChatAdapter(store)

    # ----- Transcript -----
    storage = cfg.get("storage") or {}
    transcripts_dir = _resolve(storage.get("transcripts_dir"), config_dir)
    transcript = None
    if with_transcript:
        transcript = Transcript(
            system_prompt=storage.get("system_prompt"),
            session_id=storage.get("resume"),
            root_dir=transcripts_dir,
            header_meta={"config_path": str(config_path)},
        )

    logger.debug("Config store at %s; transcripts at %s", store_path, transcripts_dir or "memory")
    return {
        "cfg": cfg,
        "paths": {"config_dir": config_dir, "store": store_path, "transcripts_dir": transcripts_dir, "log_dir": log_dir},
        "store": store,
        "adapter": adapter,
        "transcript": transcript,
    }
