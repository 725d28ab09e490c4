"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging (Loguru)
- Terminal output (Rich)
"""

from .config import (
    Config,
    LibraryConfig,
    PlayerConfig,
    WatcherConfig,
    LoggingConfig,
    load_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    create_default_config,
)
from .output import get_console, safe_print, setup_loguru, setup_from_config, log

__all__ = [
    # Config
    "Config",
    "LibraryConfig",
    "PlayerConfig",
    "WatcherConfig",
    "LoggingConfig",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    # Output
    "get_console",
    "safe_print",
    "setup_loguru",
    "setup_from_config",
    "log",
]
