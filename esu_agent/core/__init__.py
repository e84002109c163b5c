"""
ESU Activation Agent - Core Module
"""

from .config import Config, get_config
from .logger import Logger, get_logger, setup_logger
from .errors import EsuError, EnvironmentCheckError, InventoryQueryError, ConfigurationError

__all__ = [
    "Config", "get_config", "Logger", "get_logger", "setup_logger",
    "EsuError", "EnvironmentCheckError", "InventoryQueryError", "ConfigurationError",
]
