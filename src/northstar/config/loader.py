"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from northstar.config.models import NorthStarConfig
from northstar.config.paths import get_config_path
from northstar.errors import ConfigError


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("northstar.toml"),  # Current directory
        get_config_path(),  # ~/.northstar/config.toml (or NORTHSTAR_HOME)
    ]


def _resolve_env_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Fill the embeddings API key from the environment when not configured."""
    section = config.setdefault("embeddings", {})
    if section.get("api_key") is None:
        value = os.environ.get("OPENAI_API_KEY")
        if value:
            section["api_key"] = SecretStr(value)
    return config


def load_config(path: Path | None = None) -> NorthStarConfig:
    """Load configuration from a TOML file.

    Args:
        path: Explicit path to config file. If None, searches default
            locations and falls back to defaults when none exists.

    Returns:
        Validated NorthStarConfig instance.

    Raises:
        FileNotFoundError: If an explicit path does not exist.
        ConfigError: If the config file is not valid TOML or has bad values.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in _get_default_config_paths():
            expanded = default_path.expanduser()
            if expanded.exists():
                config_path = expanded
                break

    raw_config: dict[str, Any] = {}
    if config_path is not None:
        try:
            with config_path.open("rb") as f:
                raw_config = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    raw_config = _resolve_env_secrets(raw_config)

    try:
        return NorthStarConfig.model_validate(raw_config)
    except PydanticValidationError as e:
        source = config_path or "defaults"
        raise ConfigError(f"Invalid configuration in {source}: {e}") from e


def get_default_config() -> NorthStarConfig:
    """Get a default configuration for development/testing."""
    return NorthStarConfig()
