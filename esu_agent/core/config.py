"""
Configuration Management for the ESU Activation Agent

Handles loading, validation, and access to configuration settings.
Defaults live in this module; a YAML config file and ESU_* environment
variables can override them.
"""

import os
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional
from dataclasses import dataclass, field

import yaml

from .errors import ConfigurationError


# Default paths
DEFAULT_CONFIG_PATH = Path("C:/ProgramData/EsuActivation/config.yaml")
DEFAULT_DATA_DIR = Path("C:/ProgramData/EsuActivation")

ENV_KEY_PREFIX = "ESU_KEY_"


def _default_product_keys() -> Dict[str, str]:
    # Template values; replace with the organisation's MAK keys before deployment
    return {
        "Year1": "BBBBB-BBBBB-BBBBB-BBBBB-BBBBB",
        "Year2": "CCCCC-CCCCC-CCCCC-CCCCC-CCCCC",
        "Year3": "DDDDD-DDDDD-DDDDD-DDDDD-DDDDD",
    }


def _default_activation_ids() -> Dict[str, str]:
    return {
        "f520e45e-7413-4a34-a497-d2765967d094": "Year1",
        "1043add5-23b1-4afb-9a0f-64343c8f3f8d": "Year2",
        "83d49986-add3-41d7-ba33-87c7bfb5c0fb": "Year3",
    }


@dataclass
class EsuConfig:
    """ESU keys and activation identifiers."""
    product_keys: Dict[str, str] = field(default_factory=_default_product_keys)
    activation_ids: Dict[str, str] = field(default_factory=_default_activation_ids)
    settle_delay_seconds: float = 10

    @property
    def known_activation_ids(self) -> FrozenSet[str]:
        return frozenset(aid.lower() for aid in self.activation_ids)

    def label_for(self, activation_id: str) -> Optional[str]:
        """Year label for an activation identifier, case-insensitive."""
        wanted = (activation_id or "").lower()
        for aid, label in self.activation_ids.items():
            if aid.lower() == wanted:
                return label
        return None

    def activation_id_for(self, label: str) -> Optional[str]:
        """Activation identifier for a year label, via the reverse map."""
        for aid, year in self.activation_ids.items():
            if year == label:
                return aid.lower()
        return None


@dataclass
class ToolConfig:
    """External command locations."""
    slmgr_path: str = "C:\\Windows\\System32\\slmgr.vbs"
    cscript_path: str = "cscript.exe"
    powershell_path: str = "powershell.exe"
    timeout_seconds: int = 120


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    verbose: bool = False
    local_enabled: bool = True
    local_path: str = "C:\\ProgramData\\EsuActivation\\logs"
    max_size_mb: int = 10
    backup_count: int = 5


class Config:
    """
    Main configuration class for the ESU Activation Agent.

    Loads configuration from YAML file with support for:
    - Environment variable overrides (ESU_* prefix)
    - Default values
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self.data_dir = DEFAULT_DATA_DIR

        # Initialize with defaults
        self.esu = EsuConfig()
        self.tools = ToolConfig()
        self.logging = LoggingConfig()

        if self.config_path.exists():
            self.load()

        self._apply_env_overrides()

    def load(self) -> None:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid config file {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")

        self._load_section(data, 'esu', self.esu)
        self._load_section(data, 'tools', self.tools)
        self._load_section(data, 'logging', self.logging)

    def _load_section(self, data: Dict, section: str, config_obj: Any) -> None:
        """Load a configuration section into a dataclass."""
        if section not in data:
            return

        section_data = data[section]
        if not isinstance(section_data, dict):
            return

        for key, value in section_data.items():
            attr_name = key.replace('-', '_')
            if not hasattr(config_obj, attr_name):
                continue
            if attr_name in ('product_keys', 'activation_ids'):
                if not isinstance(value, dict):
                    raise ConfigurationError(f"'{section}.{key}' must be a mapping")
                # A bare "Year1:" loads as None; keep it empty so validation rejects it
                value = {str(k): "" if v is None else str(v) for k, v in value.items()}
            elif attr_name == 'settle_delay_seconds':
                try:
                    value = float(value)
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(f"'{section}.{key}' is not a number: {value!r}") from e
            setattr(config_obj, attr_name, value)

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides (ESU_* prefix)."""
        for name, value in os.environ.items():
            if not name.upper().startswith(ENV_KEY_PREFIX):
                continue
            suffix = name[len(ENV_KEY_PREFIX):]
            if not suffix:
                continue
            # Match existing labels case-insensitively so ESU_KEY_YEAR1 hits "Year1"
            label = next(
                (existing for existing in self.esu.product_keys if existing.upper() == suffix.upper()),
                suffix
            )
            self.esu.product_keys[label] = value

        if os.environ.get('ESU_SETTLE_DELAY'):
            try:
                self.esu.settle_delay_seconds = float(os.environ['ESU_SETTLE_DELAY'])
            except ValueError as e:
                raise ConfigurationError(f"ESU_SETTLE_DELAY is not a number: {os.environ['ESU_SETTLE_DELAY']}") from e

        if os.environ.get('ESU_VERBOSE'):
            self.logging.verbose = os.environ['ESU_VERBOSE'].lower() in ('1', 'true', 'yes', 'on')

        if os.environ.get('ESU_LOG_DIR'):
            self.logging.local_path = os.environ['ESU_LOG_DIR']


# Global configuration instance
_config: Optional[Config] = None


def get_config(config_path: Optional[Path] = None) -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config(config_path)
    return _config


def reload_config(config_path: Optional[Path] = None) -> Config:
    """Reload configuration from file."""
    global _config
    _config = None
    return get_config(config_path)
