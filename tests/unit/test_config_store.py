# tests/unit/test_config_store.py

from __future__ import annotations
import sys, json
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from cordex.storage.config_store import CONFIG_FILENAME, DEFAULTS, ConfigStore, Plugin, mask


class FakeSecrets:
    def __init__(self, values):
        self.values = values

    def credential(self, key):
        return self.values.get(key)


def test_defaults_when_file_missing(tmp_path: Path):
    store = ConfigStore(tmp_path / CONFIG_FILENAME)
    assert store.get("selectedProvider") == "ollama"
    assert store.get("selectedModel") == "gemma2:2b"
    assert store.get("ollamaBaseUrl") == "http://localhost:11434"
    assert store.get("openaiApiKey") is None
    assert store.plugins() == []


def test_set_persists_whole_document(tmp_path: Path):
    path = tmp_path / "nested" / CONFIG_FILENAME
    store = ConfigStore(path)
    store.set("selectedProvider", "anthropic")
    store.set("fontSize", 16)

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["selectedProvider"] == "anthropic"
    assert on_disk["fontSize"] == 16
    assert on_disk["theme"] == DEFAULTS["theme"]

    reloaded = ConfigStore(path)
    assert reloaded.get("selectedProvider") == "anthropic"


def test_broken_file_falls_back_to_defaults(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    path.write_text("{not json", encoding="utf-8")
    assert ConfigStore(path).get("selectedProvider") == "ollama"

    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert ConfigStore(path).get("selectedModel") == "gemma2:2b"


def test_empty_key_falls_back_to_secrets(tmp_path: Path):
    secrets = FakeSecrets({"openaiApiKey": "sk-from-env"})
    store = ConfigStore(tmp_path / CONFIG_FILENAME, secrets=secrets)
    assert store.get("openaiApiKey") == "sk-from-env"

    store.set("openaiApiKey", "sk-stored")
    assert store.get("openaiApiKey") == "sk-stored"
    # non-secret keys never consult secrets
    assert store.get("theme") == "dark"


def test_all_masks_api_keys(tmp_path: Path):
    store = ConfigStore(tmp_path / CONFIG_FILENAME)
    store.set("anthropicApiKey", "sk-ant-1234567890")
    data = store.all(masked=True)
    assert data["anthropicApiKey"] == "sk-…7890"
    assert store.all()["anthropicApiKey"] == "sk-ant-1234567890"
    assert mask("short") == "****"
    assert mask("") == ""


def test_plugin_registry(tmp_path: Path):
    path = tmp_path / CONFIG_FILENAME
    store = ConfigStore(path)
    store.add_plugin(Plugin(id="git", name="Git", version="1.0.0", author="me"))
    store.add_plugin(Plugin(id="lint", name="Lint", version="0.1.0"))
    # same id replaces in place
    store.add_plugin(Plugin(id="git", name="Git Tools", version="1.1.0"))

    assert [(p.id, p.name) for p in store.plugins()] == [("git", "Git Tools"), ("lint", "Lint")]

    toggled = store.toggle_plugin("lint")
    assert toggled is not None and toggled.enabled is False
    assert store.toggle_plugin("missing") is None

    store.remove_plugin("git")
    reloaded = ConfigStore(path)
    assert [p.to_dict() for p in reloaded.plugins()] == [
        {"id": "lint", "name": "Lint", "version": "0.1.0", "enabled": False}
    ]
