"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging and operator output (Loguru)
- Console management (Rich)
"""

from .config import (
    Config,
    create_default_config,
    ensure_directories,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .console import get_console, safe_print
from .output import log, setup_loguru

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "create_default_config",
    "ensure_directories",
    # Output
    "log",
    "setup_loguru",
    # Console
    "get_console",
    "safe_print",
]
