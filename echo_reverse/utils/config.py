"""
Configuration management for Echo Reverse.

Loads configuration from YAML files with environment variable
interpolation, merges it over the built-in defaults and validates it.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import soundfile as sf
import yaml

from echo_reverse.utils.errors import ConfigurationError


CONFIG_SCHEMA: Dict[str, Dict[str, Any]] = {
    "audio.sample_rate": {"type": int, "required": True},
    "audio.channels": {"type": int, "required": True},
    "audio.block_size": {"type": int},
    "audio.chunk_format": {"type": str},
    "visualization.fft_size": {"type": int, "required": True},
    "visualization.frame_rate": {"type": (int, float), "required": True},
    "visualization.fade_alpha": {"type": (int, float)},
    "visualization.baseline_alpha": {"type": (int, float)},
    "export.filename": {"type": str, "required": True},
    "logging.level": {"type": str},
}


class ConfigManager:
    """
    Manages application configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Configuration validation
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            )

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._config = manager._interpolate(manager._config)
        return manager

    def _interpolate(self, value: Any) -> Any:
        """Recursively replace ${ENV_VAR} patterns in strings."""
        if isinstance(value, dict):
            return {key: self._interpolate(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._interpolate(item) for item in value]
        if isinstance(value, str):
            return self._env_pattern.sub(self._replace_env, value)
        return value

    @staticmethod
    def _replace_env(match: re.Match) -> str:
        value = os.environ.get(match.group(1))
        if value is None:
            return match.group(0)  # Keep original if not found
        return value

    def get(self, key: str, default: Any = None, required: bool = False) -> Any:
        """
        Get configuration value using dot notation.

        Example:
            config.get("visualization.fft_size", default=2048)
        """
        value = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split('.')
        current = self._config

        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def merge(self, overrides: Dict[str, Any]) -> None:
        """Deep-merge another configuration dictionary into this one."""
        self._config = _deep_merge(self._config, overrides)

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "audio.sample_rate": {"type": int, "required": True},
                "visualization.fade_alpha": {"type": (int, float)},
            }

        Raises:
            ConfigurationError: If validation fails
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            # bool is an int subclass; never accept it for numeric settings
            if expected_type and (
                not isinstance(value, expected_type) or isinstance(value, bool)
            ):
                raise ConfigurationError(
                    f"Invalid type for {key}: got {type(value).__name__}",
                    config_key=key
                )


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file merged over the defaults.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml" then "config.yaml"

    Returns:
        Dict[str, Any]: Validated configuration dictionary

    Raises:
        ConfigurationError: Missing file, invalid value or a chunk format
                            libsndfile cannot write
    """
    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("config.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break
    elif not Path(config_path).exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            config_key=config_path
        )

    manager = ConfigManager(get_default_config())
    if config_path:
        manager.merge(ConfigManager.from_file(Path(config_path)).to_dict())

    manager.validate(CONFIG_SCHEMA)

    chunk_format = manager.get("audio.chunk_format")
    if chunk_format is not None:
        if chunk_format.upper() not in sf.available_formats():
            raise ConfigurationError(
                f"Unsupported audio.chunk_format: {chunk_format}",
                config_key="audio.chunk_format"
            )
        manager.set("audio.chunk_format", chunk_format.upper())

    return manager.to_dict()


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            "sample_rate": 48000,
            "channels": 1,
            "block_size": 0,
            "chunk_format": "FLAC",
            "input_device": None,
            "output_device": None,
        },
        "visualization": {
            "fft_size": 2048,
            "frame_rate": 60,
            "width": 600,
            "height": 160,
            "fade_alpha": 0.2,
            "baseline_alpha": 0.1,
            "line_width": 2,
        },
        "export": {
            "filename": "reversed-audio.wav",
            "directory": ".",
        },
        "logging": {
            "level": "INFO",
            "format": "text",
            "file": None,
        },
    }
