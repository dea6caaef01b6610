"""Configuration management for the marketplace engine."""

from .duration import DurationParseError, parse_duration
from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_config, validate_config_file
from .models import (
    AppConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MatchingConfig,
    NotificationsConfig,
    OffersConfig,
    ScoringRules,
)

__all__ = [
    # Loader functions
    "load_config",
    "parse_config",
    "validate_config_file",
    "load_environment_config",
    "parse_duration",
    # Configuration models
    "AppConfig",
    "MatchingConfig",
    "ScoringRules",
    "OffersConfig",
    "NotificationsConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
    "DurationParseError",
]
