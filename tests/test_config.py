"""
Tests for configuration loading.

Author: Chainshell Team
License: MIT
"""

import os
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from chainshell.config import (
    LoggingConfig,
    NodeConfig,
    ShellConfig,
    load_config,
    read_env_overrides,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate from real CHAINSHELL_* variables and any .env file."""
    for key in list(os.environ):
        if key.startswith("CHAINSHELL_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


class TestModels:
    """Test suite for configuration models."""

    def test_defaults(self):
        config = ShellConfig()
        assert config.node.node_type == "peer"
        assert config.node.difficulty_bits == 16
        assert config.node.sync_timeout is None
        assert config.storage.block_store_path.name == "blockchain.sqlite"
        assert config.log_file == config.storage.data_dir / "logs" / "chainshell.log"

    def test_difficulty_bounds(self):
        with pytest.raises(ValidationError):
            NodeConfig(difficulty_bits=40)

    def test_invalid_peer(self):
        with pytest.raises(ValidationError):
            NodeConfig(peers=["not a peer"])

    def test_log_level_normalized(self):
        assert LoggingConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            LoggingConfig(log_level="LOUD")


class TestLoading:
    """Test suite for files and environment overrides."""

    def test_yaml_round_trip(self, tmp_path):
        path = tmp_path / "chainshell.yaml"
        ShellConfig(node=NodeConfig(difficulty_bits=4, peers=["ws://a:1"])).to_yaml(path)

        assert yaml.safe_load(path.read_text())["node"]["difficulty_bits"] == 4
        loaded = load_config(path)
        assert loaded.node.difficulty_bits == 4
        assert loaded.node.peers == ["ws://a:1"]

    def test_json_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"node": {"node_type": "central"}}')
        assert load_config(path).node.node_type == "central"

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown config format"):
            load_config(tmp_path / "config.toml")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "chainshell.yaml"
        ShellConfig(node=NodeConfig(difficulty_bits=4)).to_yaml(path)
        monkeypatch.setenv("CHAINSHELL_NODE__DIFFICULTY_BITS", "8")
        monkeypatch.setenv("CHAINSHELL_NODE__PEERS", "ws://a:1, b:2")

        config = load_config(path)
        assert config.node.difficulty_bits == 8
        assert config.node.peers == ["ws://a:1", "b:2"]

    def test_read_env_overrides_nesting(self, monkeypatch):
        monkeypatch.setenv("CHAINSHELL_STORAGE__DATA_DIR", "/tmp/chain")
        monkeypatch.setenv("CHAINSHELL_COLOR", "false")
        overrides = read_env_overrides()
        assert overrides == {"storage": {"data_dir": "/tmp/chain"}, "color": "false"}

        config = ShellConfig.from_env()
        assert config.storage.data_dir == Path("/tmp/chain")
        assert config.color is False

    def test_dotenv_loaded(self, tmp_path):
        """Test that a .env file in the working directory is read."""
        (tmp_path / ".env").write_text("CHAINSHELL_NODE__BLOCK_REWARD=25\n")
        try:
            config = load_config()
        finally:
            os.environ.pop("CHAINSHELL_NODE__BLOCK_REWARD", None)
        assert config.node.block_reward == 25
