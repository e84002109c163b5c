"""
Exception types for the ESU Activation Agent.
"""


class EsuError(Exception):
    """Base class for all agent errors."""


class EnvironmentCheckError(EsuError):
    """The process is not elevated or the OS is not supported."""


class InventoryQueryError(EsuError):
    """Every license inventory provider failed."""


class ConfigurationError(EsuError):
    """Configuration is missing, malformed or still holds template values."""
