from __future__ import annotations
import logging, logging.handlers, sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

DEFAULT_LOG_FILENAME = "cordex.log"
DEFAULT_LOG_MAX_BYTES = 2 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 3


class _FileFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s | %(levelname)s | %(name)s | %(message)s", "%Y-%m-%d %H:%M:%S")


def init_logging(log_dir: Optional[Path] = None, level: str = "INFO", log_name: str = DEFAULT_LOG_FILENAME,
                 max_bytes: int = DEFAULT_LOG_MAX_BYTES, backup_count: int = DEFAULT_LOG_BACKUP_COUNT,
                 also_console: bool = True) -> Optional[Path]:
    """
    Configure the root logger: rotating file under ``log_dir`` (if given)
    plus a Rich console handler on stderr. Safe to call more than once.
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    # Clear old handlers to support re-init in tests
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(lvl)

    log_path: Optional[Path] = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / log_name
        fh = logging.handlers.RotatingFileHandler(str(log_path), maxBytes=max_bytes, backupCount=backup_count,
                                                  encoding="utf-8", delay=True)
        fh.setFormatter(_FileFormatter())
        fh.setLevel(lvl)
        root.addHandler(fh)

    if also_console:
        ch = RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=False)
        ch.setLevel(lvl)
        root.addHandler(ch)

    # Reduce noise from chatty libs
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "urllib3", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    install_excepthook()
    logging.getLogger(__name__).debug("Logging initialized → %s", log_path or "console")
    return log_path


def install_excepthook():
    def _hook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        logging.getLogger("uncaught").error("Uncaught exception", exc_info=(exc_type, exc, tb))
    sys.excepthook = _hook
