"""
Health and metrics reporting for the tracking engine.

Aggregates per-document freshness from the tracking store with process-wide
counters fed by the pipeline, the poller and the webhook ingestor.
"""

import logging
from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from doc_change_tracker.config.settings import TrackerConfig
from doc_change_tracker.models import HealthSnapshot, HealthStatus, PollResult, TrackingStatus
from doc_change_tracker.tracking.store import TrackingStore, utc_now

logger = logging.getLogger(__name__)


class HealthReporter:
    """
    Collects tracking metrics and derives an overall health status.

    Health degrades when the poller falls behind (the stalest document has
    not been polled for longer than the staleness threshold) or when too
    many tracked documents are in error status.
    """

    def __init__(self, config: TrackerConfig, store: TrackingStore, clock: Callable[[], datetime] | None = None):
        """
        Initialize the reporter.

        Args:
            config: Tracker configuration with health thresholds
            store: Tracking store to read freshness from
            clock: Time source, defaults to the UTC wall clock
        """
        self.config = config
        self.store = store
        self._clock = clock or utc_now
        self._notification_times: deque[datetime] = deque()
        self._last_tick: PollResult | None = None
        self._counters = {
            "ticks": 0,
            "poll_failures": 0,
            "webhook_events_received": 0,
            "webhook_events_dropped": 0,
            "changes_detected": 0,
            "notifications_suppressed": 0,
            "notifications_failed": 0,
            "persistence_failures": 0,
        }

    # Recording

    def record_tick(self, result: PollResult) -> None:
        """Record a completed poller tick."""
        self._counters["ticks"] += 1
        self._last_tick = result

    def record_poll_failure(self, count: int = 1) -> None:
        """Count failed token fetches."""
        self._counters["poll_failures"] += count

    def record_webhook_event(self, dropped: bool = False) -> None:
        """Count an inbound push event."""
        self._counters["webhook_events_received"] += 1
        if dropped:
            self._counters["webhook_events_dropped"] += 1

    def record_change_detected(self) -> None:
        """Count an accepted observation that was a real change."""
        self._counters["changes_detected"] += 1

    def record_suppressed(self) -> None:
        """Count a change coalesced by the debounce window."""
        self._counters["notifications_suppressed"] += 1

    def record_notification_sent(self, now: datetime | None = None) -> None:
        """Record a dispatched change notification."""
        self._notification_times.append(now or self._clock())

    def record_notification_failed(self) -> None:
        """Count a notification the transport did not accept."""
        self._counters["notifications_failed"] += 1

    def record_persistence_failure(self) -> None:
        """Count a change event the persistence collaborator did not store."""
        self._counters["persistence_failures"] += 1

    @property
    def counters(self) -> dict[str, int]:
        """Copy of the process-wide counters."""
        return self._counters.copy()

    # Reporting

    def notifications_in_window(self, now: datetime | None = None) -> int:
        """Count notifications dispatched within the metrics window."""
        now = now or self._clock()
        cutoff = now - timedelta(seconds=self.config.metrics_window_seconds)
        while self._notification_times and self._notification_times[0] < cutoff:
            self._notification_times.popleft()
        return sum(1 for sent_at in self._notification_times if sent_at <= now)

    def snapshot(self, now: datetime | None = None) -> HealthSnapshot:
        """
        Build a health snapshot.

        Returns:
            HealthSnapshot with freshness, error and notification metrics
        """
        now = now or self._clock()
        documents = self.store.list()

        tracked_count = len(documents)
        error_count = sum(1 for document in documents if document.status == TrackingStatus.ERROR)
        push_count = sum(1 for document in documents if document.push_enabled)

        ages = [max((now - document.last_seen_at()).total_seconds(), 0.0) for document in documents]
        avg_age = sum(ages) / len(ages) if ages else None
        oldest_age = max(ages) if ages else None

        status, reasons = self._evaluate(tracked_count, error_count, oldest_age)
        last_tick = self._last_tick

        return HealthSnapshot(
            status=status,
            reasons=reasons,
            tracked_count=tracked_count,
            error_count=error_count,
            avg_time_since_last_poll=avg_age,
            oldest_unpolled_duration=oldest_age,
            notifications_sent_last_window=self.notifications_in_window(now),
            window_seconds=self.config.metrics_window_seconds,
            push_subscribed_count=push_count,
            last_tick_at=last_tick.started_at if last_tick else None,
            last_tick_duration_seconds=last_tick.duration_seconds if last_tick else None,
            generated_at=now,
            **self._counters,
        )

    def _evaluate(
        self, tracked_count: int, error_count: int, oldest_age: float | None
    ) -> tuple[HealthStatus, list[str]]:
        """Derive status and reasons from the thresholds."""
        status = HealthStatus.HEALTHY
        reasons: list[str] = []

        if tracked_count:
            ratio = error_count / tracked_count
            if ratio > self.config.health_unhealthy_error_ratio:
                status = HealthStatus.UNHEALTHY
                reasons.append(f"{error_count}/{tracked_count} documents in error status")
            elif ratio > self.config.health_degraded_error_ratio:
                status = HealthStatus.DEGRADED
                reasons.append(f"{error_count}/{tracked_count} documents in error status")

        threshold = self.config.poll_staleness_threshold
        if self.config.polling_enabled and oldest_age is not None and oldest_age > threshold:
            if status == HealthStatus.HEALTHY:
                status = HealthStatus.DEGRADED
            reasons.append(f"Oldest unpolled document is {oldest_age:.0f}s old (threshold {threshold:.0f}s)")

        if status != HealthStatus.HEALTHY:
            logger.debug("Tracking health %s: %s", status.value, "; ".join(reasons))
        return status, reasons

    def get_stats(self) -> dict[str, Any]:
        """Snapshot as a plain dictionary, for logging and status commands."""
        return self.snapshot().model_dump(mode="json")
