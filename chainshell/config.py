"""
Chainshell Configuration System

Pydantic v2-based configuration with YAML/JSON support and environment overrides.

Features:
- Type-safe configuration models
- YAML/JSON file loading
- Environment variable overrides (CHAINSHELL_SECTION__KEY)
- ``.env`` loading via python-dotenv

Author: Chainshell Team
License: MIT
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import find_dotenv, load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, field_validator


DEFAULT_DATA_DIR = Path.home() / ".cache" / "chainshell"


# =============================================================================
# Node Configuration
# =============================================================================


class NodeConfig(BaseModel):
    """Configuration for the local node."""

    node_type: Literal["peer", "central"] = Field(
        default="peer",
        description="Run as an ordinary peer or as the central node",
    )

    peers: list[str] = Field(
        default_factory=list,
        description="Peer URLs announced on connect (ws://host:port)",
    )

    difficulty_bits: int = Field(
        default=16,
        ge=0,
        le=32,
        description="Leading zero bits required of a block hash",
    )

    block_reward: int = Field(
        default=10,
        ge=0,
        description="Coinbase value paid to the miner of a block",
    )

    sync_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds to wait for network sync (None waits forever)",
    )

    @field_validator("peers")
    @classmethod
    def validate_peers(cls, v: list[str]) -> list[str]:
        """Peers must be host:port, optionally with a scheme."""
        for url in v:
            location = url.split("://", 1)[-1].rstrip("/")
            host, _, port = location.rpartition(":")
            if not host or not port.isdigit():
                raise ValueError(f"Invalid peer address: {url}")
        return v


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Locations of persisted state."""

    data_dir: Path = Field(
        default=DEFAULT_DATA_DIR,
        description="Root directory for chain data, keys and logs",
    )

    block_store_file: str = Field(
        default="blockchain.sqlite",
        description="SQLite block store file name inside data_dir",
    )

    keychain_dir_name: str = Field(
        default="keychain",
        description="Keychain directory name inside data_dir",
    )

    @property
    def block_store_path(self) -> Path:
        return self.data_dir / self.block_store_file

    @property
    def keychain_path(self) -> Path:
        return self.data_dir / self.keychain_dir_name

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Log sink settings."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum level written to the log file",
    )

    log_file: Path | None = Field(
        default=None,
        description="Log file path (defaults to <data_dir>/logs/chainshell.log)",
    )

    rotation: str = Field(default="10 MB", description="Log rotation size/time")

    retention: str = Field(default="14 days", description="Log retention period")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


# =============================================================================
# Main Configuration
# =============================================================================


class ShellConfig(BaseModel):
    """Complete chainshell configuration."""

    node: NodeConfig = Field(default_factory=NodeConfig, description="Node configuration")

    storage: StorageConfig = Field(default_factory=StorageConfig, description="Storage configuration")

    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")

    color: bool = Field(default=True, description="Style terminal output (NO_COLOR overrides)")

    prompt: str = Field(default="> ", min_length=1, description="Interactive prompt")

    @property
    def log_file(self) -> Path:
        return self.logging.log_file or self.storage.log_dir / "chainshell.log"

    @classmethod
    def from_yaml(cls, path: str | Path) -> ShellConfig:
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML file

        Returns:
            ShellConfig instance
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        logger.info(f"Loaded configuration from {path}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: str | Path) -> ShellConfig:
        """Load configuration from JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        logger.info(f"Loaded configuration from {path}")
        return cls(**data)

    @classmethod
    def from_env(cls, prefix: str = "CHAINSHELL_") -> ShellConfig:
        """
        Load configuration from environment variables.

        Environment variables should be in the format:
        CHAINSHELL_NODE__DIFFICULTY_BITS=8
        CHAINSHELL_STORAGE__DATA_DIR=/tmp/chain

        Args:
            prefix: Environment variable prefix
        """
        return cls(**read_env_overrides(prefix))

    def to_yaml(self, path: str | Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            path: Path to YAML file
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(
                self.model_dump(mode="json"),
                f,
                default_flow_style=False,
                sort_keys=False,
            )

        logger.info(f"Saved configuration to {path}")


# =============================================================================
# Configuration Factory
# =============================================================================


def read_env_overrides(prefix: str = "CHAINSHELL_") -> dict[str, Any]:
    """Collect ``PREFIX_SECTION__KEY=value`` variables into a nested dict."""
    config_dict: dict[str, Any] = {}

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        parts = key[len(prefix):].lower().split("__")

        current = config_dict
        for part in parts[:-1]:
            current = current.setdefault(part, {})

        # Lists arrive comma separated; pydantic coerces the scalars
        if parts[-1] == "peers":
            current[parts[-1]] = [p.strip() for p in value.split(",") if p.strip()]
        else:
            current[parts[-1]] = value

    return config_dict


def _deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "CHAINSHELL_",
) -> ShellConfig:
    """
    Load configuration.

    Priority (highest first):
    1. Environment variables (after loading ``.env``)
    2. Explicit config file (YAML or JSON)
    3. Defaults

    Args:
        config_path: Path to config file (YAML or JSON)
        env_prefix: Environment variable prefix

    Returns:
        ShellConfig instance
    """
    load_dotenv(find_dotenv(usecwd=True))

    data: dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        if path.suffix in (".yaml", ".yml"):
            data = ShellConfig.from_yaml(path).model_dump()
        elif path.suffix == ".json":
            data = ShellConfig.from_json(path).model_dump()
        else:
            raise ValueError(f"Unknown config format: {path.suffix}")

    overrides = read_env_overrides(env_prefix)
    if overrides:
        logger.info(f"Applying environment overrides (prefix={env_prefix})")

    return ShellConfig(**_deep_merge(data, overrides))


__all__ = [
    "NodeConfig",
    "StorageConfig",
    "LoggingConfig",
    "ShellConfig",
    "read_env_overrides",
    "load_config",
]
