"""Centralized path management for North Star.

All state (config, data, logs) is stored under a single base directory.
The base directory can be overridden with the NORTHSTAR_HOME environment
variable.

Default locations:
- Linux/macOS: ~/.northstar
- Windows: %USERPROFILE%\\.northstar
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "NORTHSTAR_HOME"


@lru_cache(maxsize=1)
def get_northstar_home() -> Path:
    """Get the base directory for all North Star data.

    Resolution order:
    1. NORTHSTAR_HOME environment variable (if set)
    2. Platform default (~/.northstar)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".northstar"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_northstar_home() / "config.toml"


def get_data_path() -> Path:
    """Get the data directory path (graph, vectors, session state)."""
    return get_northstar_home() / "data"


def get_logs_path() -> Path:
    """Get the default logs directory path."""
    return get_northstar_home() / "logs"


def get_all_paths() -> dict[str, Path]:
    """Get all standard paths for debugging/display."""
    return {
        "home": get_northstar_home(),
        "config": get_config_path(),
        "data": get_data_path(),
        "logs": get_logs_path(),
    }
