# tests/unit/test_config_loader.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest
from textwrap import dedent

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from cordex.config_loader import load_config, ConfigError  # type: ignore


def write_yaml(p: Path, text: str) -> Path:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(dedent(text).lstrip("\n").rstrip() + "\n", encoding="utf-8")
    return p


def test_load_config_ok(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        store: { path: cordex-config.json }
        logging: { level: Debug }
        storage: { transcripts_dir: sessions, resume: null }
        runtime: { stream: true }
        """,
    )
    data = load_config(cfg)
    assert data["logging"]["level"] == "DEBUG"   # normalised
    assert data["secrets"] == {}
    # loader leaves paths as provided (bootstrap resolves them)
    assert data["store"]["path"] == "cordex-config.json"
    assert data["storage"]["transcripts_dir"] == "sessions"


def test_load_config_missing_key(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        logging: { level: info }         # missing store.path
        runtime: { stream: true }
        """,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_load_config_type_error(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        store: { path: cordex-config.json }
        logging: { level: info }
        runtime: { stream: "yes" }   # wrong type
        """,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_load_config_unknown_level(tmp_path: Path):
    cfg = write_yaml(
        tmp_path / "config" / "default.yaml",
        """
        store: { path: cordex-config.json }
        logging: { level: chatty }
        """,
    )
    with pytest.raises(ConfigError):
        load_config(cfg)


def test_load_config_missing_file(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")
