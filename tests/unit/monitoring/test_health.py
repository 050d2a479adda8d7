"""Unit tests for health reporting."""

import pytest
from conftest import T0
from doc_change_tracker.config import TrackerConfig
from doc_change_tracker.models import HealthStatus, PollResult
from doc_change_tracker.monitoring import HealthReporter
from doc_change_tracker.tracking import TrackingStore

TOKENS = [f"doxcnHealth{i:06d}" for i in range(5)]


class TestHealthReporter:
    """Test cases for HealthReporter."""

    @pytest.fixture
    def store(self, clock):
        store = TrackingStore(clock=clock)
        for token in TOKENS:
            store.register(token, "docx", "oc_1")
        return store

    @pytest.fixture
    def reporter(self, config, store, clock):
        return HealthReporter(config, store, clock=clock)

    def fail(self, store, token, times=3):
        for _ in range(times):
            store.record_poll_failure(token, "boom", max_failures=3)

    def test_empty_store_is_healthy(self, config, clock):
        """Test the snapshot with nothing tracked."""
        snapshot = HealthReporter(config, TrackingStore(clock=clock), clock=clock).snapshot()

        assert snapshot.status == HealthStatus.HEALTHY
        assert snapshot.tracked_count == 0
        assert snapshot.avg_time_since_last_poll is None
        assert snapshot.oldest_unpolled_duration is None

    def test_freshness_metrics(self, reporter, store, clock):
        """Test average and oldest time since last poll."""
        clock.advance(20)
        for token in TOKENS[:4]:
            store.record_poll_success(token)
        clock.advance(10)

        snapshot = reporter.snapshot()

        assert snapshot.tracked_count == 5
        assert snapshot.oldest_unpolled_duration == 30.0
        assert snapshot.avg_time_since_last_poll == pytest.approx((10.0 * 4 + 30.0) / 5)
        assert snapshot.status == HealthStatus.HEALTHY

    def test_degraded_when_poller_falls_behind(self, reporter, clock, config):
        """Test the staleness threshold."""
        clock.advance(config.poll_staleness_threshold + 1)

        snapshot = reporter.snapshot()

        assert snapshot.status == HealthStatus.DEGRADED
        assert any("unpolled" in reason for reason in snapshot.reasons)

    def test_staleness_ignored_when_polling_disabled(self, store, clock):
        """Test push-only deployments are not degraded by staleness."""
        config = TrackerConfig(polling_enabled=False)
        clock.advance(10_000)

        assert HealthReporter(config, store, clock=clock).snapshot().status == HealthStatus.HEALTHY

    def test_degraded_on_error_ratio(self, reporter, store):
        """Test the degraded error ratio."""
        self.fail(store, TOKENS[0])
        self.fail(store, TOKENS[1])

        snapshot = reporter.snapshot()

        assert snapshot.error_count == 2
        assert snapshot.error_ratio == 0.4
        assert snapshot.status == HealthStatus.DEGRADED

    def test_unhealthy_on_high_error_ratio(self, reporter, store):
        """Test the unhealthy error ratio."""
        for token in TOKENS[:3]:
            self.fail(store, token)

        assert reporter.snapshot().status == HealthStatus.UNHEALTHY

    def test_notifications_window(self, reporter, clock, config):
        """Test that old notifications fall out of the window."""
        reporter.record_notification_sent(T0)
        clock.advance(config.metrics_window_seconds / 2)
        reporter.record_notification_sent()

        assert reporter.snapshot().notifications_sent_last_window == 2

        clock.advance(config.metrics_window_seconds / 2 + 1)
        assert reporter.snapshot().notifications_sent_last_window == 1

    def test_counters_in_snapshot(self, reporter, clock):
        """Test that process-wide counters are reported."""
        reporter.record_tick(PollResult(started_at=T0, duration_seconds=0.25))
        reporter.record_poll_failure(2)
        reporter.record_webhook_event()
        reporter.record_webhook_event(dropped=True)
        reporter.record_suppressed()

        snapshot = reporter.snapshot()

        assert snapshot.ticks == 1
        assert snapshot.last_tick_at == T0
        assert snapshot.last_tick_duration_seconds == 0.25
        assert snapshot.poll_failures == 2
        assert snapshot.webhook_events_received == 2
        assert snapshot.webhook_events_dropped == 1
        assert snapshot.notifications_suppressed == 1
        assert reporter.get_stats()["status"] == "healthy"
