"""
Tests for the configuration system
"""

from pathlib import Path

import pytest
import yaml

from flideck_core.config import (
    FlideckConfig,
    add_to_history,
    collapse_path,
    expand_path,
    find_config_file,
    load_config,
    save_config,
)

ENV_VARS = (
    "FLIDECK_PRESENTATIONS_ROOT",
    "FLIDECK_HOST",
    "FLIDECK_PORT",
    "FLIDECK_LOG_LEVEL",
    "FLIDECK_GROUPED_THRESHOLD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write(path: Path, data) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))
    return path


class TestLoadConfig:
    """YAML loading and overrides."""

    def test_defaults(self, temp_dir):
        config = load_config(temp_dir / "missing.yaml")
        assert config.server.port == 5201
        assert config.display.grouped_threshold == 15
        assert config.manifest.filename == "index.json"
        assert config.config_path is None

    def test_values_from_file(self, temp_dir):
        path = _write(temp_dir / "flideck.yaml", {
            "presentations_root": "~/decks",
            "history": ["~/old"],
            "server": {"port": 6000},
            "display": {"grouped_threshold": 5},
            "sync": {"strategy": "addOnly", "infer_groups": True},
        })
        config = load_config(path)
        assert config.presentations_root == "~/decks"
        assert config.root_path == (Path.home() / "decks").resolve()
        assert config.history == ["~/old"]
        assert config.server.port == 6000
        assert config.server.host == "127.0.0.1"
        assert config.display.grouped_threshold == 5
        assert config.sync.strategy == "addOnly"
        assert config.sync.infer_groups is True
        assert config.config_path == str(path)

    def test_env_overrides(self, temp_dir, monkeypatch):
        path = _write(temp_dir / "flideck.yaml", {"server": {"port": 6000}})
        monkeypatch.setenv("FLIDECK_PORT", "7000")
        monkeypatch.setenv("FLIDECK_PRESENTATIONS_ROOT", str(temp_dir))
        monkeypatch.setenv("FLIDECK_LOG_LEVEL", "debug")
        config = load_config(path)
        assert config.server.port == 7000
        assert config.presentations_root == str(temp_dir)
        assert config.logging.level == "DEBUG"

    def test_bad_values_fall_back(self, temp_dir, monkeypatch):
        path = _write(temp_dir / "flideck.yaml", {
            "logging": {"level": "LOUD"},
            "sync": {"strategy": "mirror"},
            "display": {"grouped_threshold": -1},
            "history": [f"/p{i}" for i in range(15)],
        })
        monkeypatch.setenv("FLIDECK_GROUPED_THRESHOLD", "many")
        config = load_config(path)
        assert config.logging.level == "INFO"
        assert config.sync.strategy == "merge"
        assert config.display.grouped_threshold == 15
        assert len(config.history) == 10

    def test_broken_yaml_uses_defaults(self, temp_dir):
        path = temp_dir / "flideck.yaml"
        path.write_text("server: [unclosed")
        assert load_config(path).server.port == 5201


class TestConfigFiles:
    """Discovery and saving."""

    def test_find_config_searches_upward(self, temp_dir):
        path = _write(temp_dir / ".flideck" / "flideck.yaml", {})
        nested = temp_dir / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == path.resolve()

    def test_save_round_trip(self, temp_dir):
        config = FlideckConfig(presentations_root="~/decks", history=["~/old"])
        config.server.port = 6100
        path = temp_dir / "out" / "flideck.yaml"
        save_config(config, path)
        loaded = load_config(path)
        assert loaded.presentations_root == "~/decks"
        assert loaded.history == ["~/old"]
        assert loaded.server.port == 6100


class TestPaths:
    """Home expansion and history."""

    def test_expand_and_collapse(self):
        home = str(Path.home())
        assert expand_path("~/decks") == f"{home}/decks"
        assert expand_path("/abs") == "/abs"
        assert collapse_path(f"{home}/decks") == "~/decks"
        assert collapse_path(home) == "~"
        assert collapse_path("/elsewhere") == "/elsewhere"

    def test_history_is_deduplicated_and_capped(self):
        config = FlideckConfig()
        for i in range(12):
            add_to_history(config, f"/p{i}")
        add_to_history(config, "/p5")
        assert config.history[0] == "/p5"
        assert config.history.count("/p5") == 1
        assert len(config.history) == 10
