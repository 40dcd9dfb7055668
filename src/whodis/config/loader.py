"""Configuration loader for the updater.

Settings are layered, later layers winning: built-in defaults, the YAML or
JSON configuration file, ``WHODIS_<SECTION>_<KEY>`` environment variables and
finally explicit overrides (the command line).
"""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from .schema import (
    LoggingConfig,
    ServerConfig,
    SigningConfig,
    TransportConfig,
    UpdateConfig,
    WhodisConfig,
    create_default_config,
)

ENV_PREFIX = "WHODIS_"

SECTIONS = {
    "server": ServerConfig,
    "update": UpdateConfig,
    "signing": SigningConfig,
    "transport": TransportConfig,
    "logging": LoggingConfig,
}

_PARSERS: Dict[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge override into a copy of base, recursing into nested sections."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def convert_env_value(value: str) -> Any:
    """Interpret an environment string as int, float, boolean or text."""
    for number_type in (int, float):
        try:
            return number_type(value)
        except ValueError:
            pass

    lowered = value.lower()
    if lowered in ("true", "yes", "on"):
        return True
    if lowered in ("false", "no", "off"):
        return False
    return value


class ConfigLoader:
    """Configuration loader merging defaults, file, environment and overrides."""

    def __init__(self, config_file: Optional[str] = None, env_prefix: str = ENV_PREFIX):
        """Initialize configuration loader.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            env_prefix: Prefix of environment variable overrides
        """
        self.config_file = config_file
        self.env_prefix = env_prefix

    def load_config(self, overrides: Optional[Dict[str, Any]] = None) -> WhodisConfig:
        """Load and validate the layered configuration.

        Args:
            overrides: Highest-priority settings, e.g. from the command line

        Returns:
            Validated configuration

        Raises:
            FileNotFoundError: If config file is specified but not found
            ValueError: If configuration is invalid
            yaml.YAMLError: If YAML parsing fails
            json.JSONDecodeError: If JSON parsing fails
        """
        layers = [asdict(create_default_config())]
        if self.config_file:
            layers.append(self._load_from_file(self.config_file))
        layers.append(self._env_overrides())
        if overrides:
            layers.append(overrides)

        config_dict: Dict[str, Any] = {}
        for layer in layers:
            config_dict = deep_merge(config_dict, layer)

        return self._dict_to_config(config_dict)

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Read a configuration file, choosing the parser by extension.

        Files without a known extension are read as YAML, which also covers
        JSON documents.
        """
        path = Path(file_path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        parser = _PARSERS.get(path.suffix.lower(), yaml.safe_load)
        result = parser(path.read_text(encoding="utf-8"))

        if result is None:
            return {}
        if not isinstance(result, dict):
            raise ValueError(f"Configuration file must contain a mapping: {file_path}")
        return result

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> WhodisConfig:
        """Build the dataclass tree, turning unknown settings into ValueError."""
        unknown = sorted(set(config_dict) - set(SECTIONS))
        if unknown:
            raise ValueError(f"Unknown configuration sections: {', '.join(unknown)}")

        sections = {}
        for name, section_class in SECTIONS.items():
            values = config_dict.get(name) or {}
            try:
                sections[name] = section_class(**values)
            except TypeError as e:
                raise ValueError(f"Invalid configuration in [{name}]: {e}") from e
        return WhodisConfig(**sections)

    def _env_overrides(self) -> Dict[str, Any]:
        """Overrides from variables such as WHODIS_TRANSPORT_UDP_TIMEOUT=5."""
        overrides: Dict[str, Dict[str, Any]] = {}
        for env_key, env_value in os.environ.items():
            if not env_key.startswith(self.env_prefix):
                continue

            section, _, key = env_key[len(self.env_prefix) :].lower().partition("_")
            if section in SECTIONS and key:
                overrides.setdefault(section, {})[key] = convert_env_value(env_value)
        return overrides

