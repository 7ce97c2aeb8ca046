"""Configuration utilities for s3chunk CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from s3chunk.core.config import StoreConfig

CONFIG_KEYS = ("backend", "endpoint_url", "region", "profile", "local_root")


def get_config_dir() -> Path:
    """Get the configuration directory for s3chunk.

    Returns:
        Path to ~/.s3chunk or equivalent.
    """
    return Path.home() / ".s3chunk"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def load_config() -> dict[str, str]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, str]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def build_store_config(**overrides: Any) -> StoreConfig:
    """Build the store configuration from the config file and CLI options.

    Options given on the command line (non-None values in `overrides`)
    win over values stored in the config file.

    Args:
        **overrides: Any of CONFIG_KEYS.

    Returns:
        StoreConfig for this run.

    Raises:
        ValueError: If the resulting configuration is invalid.
    """
    stored = load_config()
    values: dict[str, Any] = {key: stored[key] for key in CONFIG_KEYS if stored.get(key)}
    values.update({key: value for key, value in overrides.items() if value is not None})
    return StoreConfig(**values)


def get_backup_index_dir() -> Path:
    """Get the directory holding the backup index."""
    return get_config_dir()
