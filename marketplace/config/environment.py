"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/marketplace.db"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
        notifications_background: Optional[bool] = None,
    ):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.log_level = log_level
        self.environment = environment or "local"
        # None means "use the config file value"
        self.notifications_background = notifications_background


def load_environment_config() -> EnvironmentConfig:
    """Load and validate environment variables.

    All variables are optional:
    - DATABASE_URL: SQLAlchemy database URL (default: sqlite:///./data/marketplace.db)
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Environment label added to every log record
    - NOTIFICATIONS_BACKGROUND: true/false, overrides notifications.background

    Raises:
        ConfigurationError: If a variable holds an invalid value
    """
    errors = []

    database_url = os.getenv("DATABASE_URL")
    log_level = os.getenv("LOG_LEVEL")
    environment = os.getenv("ENVIRONMENT")
    background_raw = os.getenv("NOTIFICATIONS_BACKGROUND")

    if database_url is not None and "://" not in database_url:
        errors.append(f"Invalid DATABASE_URL: '{database_url}'. Expected a URL like sqlite:///path.db")

    if log_level and log_level.upper() not in _VALID_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(_VALID_LEVELS)}"
        )

    notifications_background = None
    if background_raw is not None and background_raw.strip():
        lowered = background_raw.strip().lower()
        if lowered in _TRUE_VALUES:
            notifications_background = True
        elif lowered in _FALSE_VALUES:
            notifications_background = False
        else:
            errors.append(
                f"Invalid NOTIFICATIONS_BACKGROUND: '{background_raw}'. Use true or false."
            )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and adjust the values",
                "Unset variables you do not need; all of them are optional",
            ],
        )

    return EnvironmentConfig(
        database_url=database_url,
        log_level=log_level.upper() if log_level else None,
        environment=environment,
        notifications_background=notifications_background,
    )
