"""
Configuration management for the document change tracking engine.

Handles environment variables, configuration file loading, and provides
default settings with validation for the poller, debounce window, health
thresholds and logging.
"""

import logging.config
from datetime import tzinfo
from enum import Enum
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from doc_change_tracker.models.change import ChangeType
from doc_change_tracker.models.exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Logging level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TrackerConfig(BaseSettings):
    """
    Central configuration class for the tracking engine.

    Handles all configuration options with environment variable support,
    validation, and sensible defaults for development and production use.
    """

    model_config = SettingsConfigDict(
        env_prefix="DOC_TRACKER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Polling Configuration ===
    polling_enabled: bool = Field(default=True, description="Run the periodic poller when the service starts")
    poll_interval_seconds: float = Field(default=30.0, gt=0.0, le=3600.0, description="Seconds between poll ticks")
    poll_batch_size: int = Field(
        default=200, ge=1, le=200, description="Tokens per provider metadata call (the provider caps at 200)"
    )
    max_concurrent_batches: int = Field(default=4, ge=1, le=32, description="Provider batch calls in flight")
    fetch_timeout_seconds: float = Field(default=10.0, gt=0.0, le=120.0, description="Timeout per provider call")
    max_consecutive_failures: int = Field(
        default=3, ge=1, le=100, description="Consecutive fetch failures before a document enters error status"
    )

    # === Debounce Configuration ===
    debounce_window_seconds: float = Field(
        default=60.0, ge=0.0, le=3600.0, description="Window in which repeated changes are coalesced"
    )
    debounced_change_types: list[ChangeType] = Field(
        default=[ChangeType.SAME_EDITOR_EDIT],
        description="Change types subject to the debounce window",
    )

    # === Webhook Configuration ===
    webhook_subscriptions_enabled: bool = Field(
        default=True, description="Register provider push subscriptions on watch"
    )

    # === Token Validation ===
    min_token_length: int = Field(default=10, ge=1, le=64, description="Minimum accepted document token length")

    # === Notification Configuration ===
    notification_timezone: str = Field(default="UTC", description="IANA timezone used to render edit times")
    recent_changes_limit: int = Field(default=10, ge=1, le=200, description="Default change history page size")

    # === Health Configuration ===
    health_max_poll_staleness_seconds: float | None = Field(
        default=None, gt=0.0, description="Oldest unpolled duration before health degrades (default 3x interval)"
    )
    health_degraded_error_ratio: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Error/tracked ratio above which health degrades"
    )
    health_unhealthy_error_ratio: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Error/tracked ratio above which health is unhealthy"
    )
    metrics_window_seconds: float = Field(
        default=3600.0, gt=0.0, description="Window for notifications_sent_last_window"
    )

    # === Logging Configuration ===
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")
    log_file: Path | None = Field(default=None, description="Log file path (stdout if None)")
    log_format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s", description="Log message format"
    )

    @field_validator('notification_timezone')
    @classmethod
    def validate_notification_timezone(cls, v):
        """Ensure the timezone name resolves."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @model_validator(mode='after')
    def validate_debounce_policy(self):
        """Edits by different people must always surface, so they can never be debounced."""
        if ChangeType.DIFFERENT_EDITOR_EDIT in self.debounced_change_types:
            raise ConfigurationError(
                "different_editor_edit cannot be debounced",
                config_key="debounced_change_types",
                expected_type="subset of same_editor_edit, rename, metadata_only",
                actual_value=[t.value for t in self.debounced_change_types],
            )
        return self

    @model_validator(mode='after')
    def validate_health_ratios(self):
        """Ensure the degraded threshold does not exceed the unhealthy threshold."""
        if self.health_degraded_error_ratio > self.health_unhealthy_error_ratio:
            raise ConfigurationError(
                "health_degraded_error_ratio cannot exceed health_unhealthy_error_ratio",
                config_key="health_degraded_error_ratio",
                expected_type="float <= health_unhealthy_error_ratio",
                actual_value=self.health_degraded_error_ratio,
            )
        return self

    @property
    def poll_staleness_threshold(self) -> float:
        """Seconds without a poll after which a document counts as stale."""
        if self.health_max_poll_staleness_seconds is not None:
            return self.health_max_poll_staleness_seconds
        return self.poll_interval_seconds * 3

    @property
    def timezone(self) -> tzinfo:
        """Resolved notification timezone."""
        return ZoneInfo(self.notification_timezone)

    def get_log_config(self) -> dict[str, Any]:
        """Get logging configuration dictionary."""
        config = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"standard": {"format": self.log_format}},
            "handlers": {
                "default": {
                    "level": self.log_level.value,
                    "formatter": "standard",
                    "class": "logging.StreamHandler" if not self.log_file else "logging.FileHandler",
                }
            },
            "loggers": {
                "doc_change_tracker": {"handlers": ["default"], "level": self.log_level.value, "propagate": False}
            },
        }

        if self.log_file:
            config["handlers"]["default"]["filename"] = str(self.log_file)

        return config

    def configure_logging(self) -> None:
        """Apply the logging configuration to the package logger."""
        logging.config.dictConfig(self.get_log_config())


# Global configuration instance
_config: TrackerConfig | None = None


def get_config() -> TrackerConfig:
    """
    Get the global configuration instance.

    Creates a new instance on first call and reuses it for subsequent calls.
    """
    global _config
    if _config is None:
        _config = TrackerConfig()
    return _config


def reload_config() -> TrackerConfig:
    """
    Force reload the configuration from environment/files.

    Useful for testing or when configuration needs to be updated at runtime.
    """
    global _config
    _config = TrackerConfig()
    return _config


def set_config(config: TrackerConfig) -> None:
    """
    Set a custom configuration instance.

    Primarily used for testing or advanced configuration scenarios.
    """
    global _config
    _config = config
