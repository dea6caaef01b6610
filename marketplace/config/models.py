"""Configuration schema models using Pydantic."""

from datetime import timedelta
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class ScoringRules(BaseModel):
    """Weights and thresholds of the rule-based company scoring model."""

    category_weight: int = Field(40, ge=0, description="Bonus when a service matches the category")
    same_city_weight: int = Field(30, ge=0, description="Bonus when the company is in the same city")
    same_country_weight: int = Field(
        20, ge=0, description="Bonus when only the country matches"
    )
    tag_weight: int = Field(5, ge=0, description="Bonus per overlapping tag")
    tag_cap: int = Field(15, ge=0, description="Maximum total tag bonus")
    top_rated_threshold: float = Field(4.5, ge=0, le=5)
    top_rated_bonus: int = Field(10, ge=0)
    highly_rated_threshold: float = Field(4.0, ge=0, le=5)
    highly_rated_bonus: int = Field(5, ge=0)
    experience_threshold: int = Field(
        10, ge=1, description="Completed projects needed for the experience bonus"
    )
    experience_bonus: int = Field(5, ge=0)

    @model_validator(mode="after")
    def validate_rating_thresholds(self):
        """The 'top rated' tier must sit above the 'highly rated' tier."""
        if self.top_rated_threshold < self.highly_rated_threshold:
            raise ValueError(
                "top_rated_threshold must be greater than or equal to highly_rated_threshold"
            )
        return self


class MatchingConfig(BaseModel):
    """Limits applied by the matcher."""

    candidate_limit: int = Field(
        20, ge=1, le=500, description="Companies fetched by the coarse filter before scoring"
    )
    result_limit: int = Field(10, ge=1, le=100, description="Ranked matches returned")

    @model_validator(mode="after")
    def validate_limits(self):
        if self.result_limit > self.candidate_limit:
            raise ValueError("result_limit cannot exceed candidate_limit")
        return self


class OffersConfig(BaseModel):
    """Offer lifecycle settings."""

    validity_period: str = Field("7d", description="How long a new offer stays acceptable")

    @field_validator("validity_period")
    @classmethod
    def validate_validity_period(cls, v: str) -> str:
        try:
            parse_duration(v)
        except DurationParseError as e:
            raise ValueError(str(e)) from e
        return v

    @property
    def validity(self) -> timedelta:
        """Validity period as a timedelta."""
        return parse_duration(self.validity_period)


class NotificationsConfig(BaseModel):
    """Notification dispatch settings."""

    background: bool = Field(
        True, description="Emit notifications on a worker thread instead of inline"
    )
    max_workers: int = Field(2, ge=1, le=16, description="Worker threads for background emits")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the marketplace engine."""

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    scoring: ScoringRules = Field(default_factory=ScoringRules)
    offers: OffersConfig = Field(default_factory=OffersConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
