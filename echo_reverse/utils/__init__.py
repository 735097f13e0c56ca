"""
Utility modules for configuration, logging, and error handling.
"""

from echo_reverse.utils.errors import (
    EchoReverseError,
    DeviceUnavailableError,
    DecodeError,
    EncodeError,
    PreconditionError,
    ConfigurationError,
    AudioContextError,
)
from echo_reverse.utils.logging import (
    get_logger,
    setup_logging,
    setup_logging_from_config,
    JSONFormatter,
)
from echo_reverse.utils.config import ConfigManager, load_config, get_default_config

__all__ = [
    "EchoReverseError",
    "DeviceUnavailableError",
    "DecodeError",
    "EncodeError",
    "PreconditionError",
    "ConfigurationError",
    "AudioContextError",
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
    "JSONFormatter",
    "ConfigManager",
    "load_config",
    "get_default_config",
]
