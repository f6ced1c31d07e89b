"""Core."""

from .config import (
    GatewayConfig,
    build_config,
    flatten_config,
    load_config_file,
    load_config_from_file,
)
from .logging import LOG_LEVELS, configure_logging

__all__ = [
    # Config
    "GatewayConfig",
    "build_config",
    "flatten_config",
    "load_config_file",
    "load_config_from_file",
    # Logging
    "configure_logging",
    "LOG_LEVELS",
]
