"""Configuration module."""

from northstar.config.loader import get_default_config, load_config
from northstar.config.models import (
    BudgetConfig,
    EmbeddingsConfig,
    NorthStarConfig,
    RetrievalConfig,
    SessionConfig,
    StorageConfig,
)
from northstar.config.paths import (
    get_config_path,
    get_data_path,
    get_logs_path,
    get_northstar_home,
)
from northstar.errors import ConfigError

__all__ = [
    "BudgetConfig",
    "ConfigError",
    "EmbeddingsConfig",
    "NorthStarConfig",
    "RetrievalConfig",
    "SessionConfig",
    "StorageConfig",
    "get_config_path",
    "get_data_path",
    "get_default_config",
    "get_logs_path",
    "get_northstar_home",
    "load_config",
]
