"""Unit tests for tracker configuration."""

from zoneinfo import ZoneInfo

import pytest
from doc_change_tracker.config import TrackerConfig, get_config, reload_config, set_config
from doc_change_tracker.models import ChangeType, ConfigurationError
from pydantic import ValidationError


class TestTrackerConfig:
    """Test cases for TrackerConfig."""

    def test_defaults(self):
        """Test default values."""
        config = TrackerConfig()

        assert config.poll_interval_seconds == 30.0
        assert config.poll_batch_size == 200
        assert config.debounce_window_seconds == 60.0
        assert config.debounced_change_types == [ChangeType.SAME_EDITOR_EDIT]
        assert config.health_degraded_error_ratio == 0.2
        assert config.min_token_length == 10

    def test_environment_override(self, monkeypatch):
        """Test loading values from prefixed environment variables."""
        monkeypatch.setenv("DOC_TRACKER_POLL_INTERVAL_SECONDS", "5")
        monkeypatch.setenv("DOC_TRACKER_DEBOUNCED_CHANGE_TYPES", '["same_editor_edit", "rename"]')

        config = TrackerConfig()

        assert config.poll_interval_seconds == 5.0
        assert config.debounced_change_types == [ChangeType.SAME_EDITOR_EDIT, ChangeType.RENAME]

    def test_different_editor_cannot_be_debounced(self):
        """Test that configuration debouncing different-editor edits is rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            TrackerConfig(debounced_change_types=[ChangeType.SAME_EDITOR_EDIT, ChangeType.DIFFERENT_EDITOR_EDIT])

        assert exc_info.value.context["config_key"] == "debounced_change_types"

    def test_health_ratio_ordering(self):
        """Test that degraded ratio cannot exceed unhealthy ratio."""
        with pytest.raises(ConfigurationError):
            TrackerConfig(health_degraded_error_ratio=0.6, health_unhealthy_error_ratio=0.4)

    def test_batch_size_capped(self):
        """Test that batches larger than the provider limit are rejected."""
        with pytest.raises(ValidationError):
            TrackerConfig(poll_batch_size=201)

    def test_poll_interval_must_be_positive(self):
        """Test poll interval constraint."""
        with pytest.raises(ValidationError):
            TrackerConfig(poll_interval_seconds=0)

    def test_unknown_timezone_rejected(self):
        """Test timezone validation."""
        with pytest.raises(ValidationError) as exc_info:
            TrackerConfig(notification_timezone="Mars/Olympus_Mons")

        assert "Unknown timezone" in str(exc_info.value)

    def test_timezone_resolution(self):
        """Test the resolved timezone property."""
        config = TrackerConfig(notification_timezone="Asia/Shanghai")

        assert config.timezone == ZoneInfo("Asia/Shanghai")

    def test_staleness_threshold(self):
        """Test staleness default and override."""
        assert TrackerConfig(poll_interval_seconds=20).poll_staleness_threshold == 60.0
        assert TrackerConfig(health_max_poll_staleness_seconds=45).poll_staleness_threshold == 45.0

    def test_log_config(self, tmp_path):
        """Test logging configuration generation."""
        config = TrackerConfig(log_level="DEBUG")
        log_config = config.get_log_config()

        assert log_config["handlers"]["default"]["class"] == "logging.StreamHandler"
        assert log_config["loggers"]["doc_change_tracker"]["level"] == "DEBUG"

        log_file = tmp_path / "tracker.log"
        file_config = TrackerConfig(log_file=log_file).get_log_config()

        assert file_config["handlers"]["default"]["class"] == "logging.FileHandler"
        assert file_config["handlers"]["default"]["filename"] == str(log_file)


class TestConfigAccessors:
    """Test cases for the module-level configuration accessors."""

    def test_set_and_get_config(self):
        """Test replacing the global configuration."""
        custom = TrackerConfig(poll_interval_seconds=12)
        try:
            set_config(custom)
            assert get_config() is custom
        finally:
            reload_config()

    def test_reload_config(self, monkeypatch):
        """Test reloading picks up environment changes."""
        monkeypatch.setenv("DOC_TRACKER_DEBOUNCE_WINDOW_SECONDS", "15")

        config = reload_config()

        assert config.debounce_window_seconds == 15.0
        assert get_config() is config
        monkeypatch.delenv("DOC_TRACKER_DEBOUNCE_WINDOW_SECONDS")
        reload_config()
