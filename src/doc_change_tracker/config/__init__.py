"""Configuration management and settings."""

from doc_change_tracker.config.settings import LogLevel, TrackerConfig, get_config, reload_config, set_config

__all__ = ["TrackerConfig", "LogLevel", "get_config", "reload_config", "set_config"]
