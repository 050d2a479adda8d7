"""
The single change pipeline shared by the poller and the webhook ingestor.

observation -> store.observe (stale rejection) -> detect -> debounce ->
notify every watching channel -> report a ChangeEvent to persistence.

Neither ingestion path implements any of these steps on its own.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from doc_change_tracker.config.settings import TrackerConfig
from doc_change_tracker.core.interfaces import IChangeEventStore, INotifier
from doc_change_tracker.models import ChangeEvent, Observation
from doc_change_tracker.models.exceptions import PersistenceWriteError
from doc_change_tracker.monitoring.health import HealthReporter
from doc_change_tracker.tracking.change_detector import detect, format_change_summary
from doc_change_tracker.tracking.debounce import Debouncer
from doc_change_tracker.tracking.store import TrackingStore, utc_now

logger = logging.getLogger(__name__)


class PipelineOutcome(str, Enum):
    """What happened to one observation."""

    UNKNOWN_DOCUMENT = "unknown_document"
    STALE = "stale"
    SEEDED = "seeded"
    UNCHANGED = "unchanged"
    SUPPRESSED = "suppressed"
    NOTIFIED = "notified"


class ChangePipeline:
    """
    Applies observations to the tracking store and dispatches notifications.

    Store mutations are synchronous and atomic; notification and persistence
    are awaited afterwards, outside the store lock, and their failures are
    isolated to the observation being processed.
    """

    def __init__(
        self,
        config: TrackerConfig,
        store: TrackingStore,
        debouncer: Debouncer,
        notifier: INotifier,
        change_store: IChangeEventStore | None,
        reporter: HealthReporter,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config
        self.store = store
        self.debouncer = debouncer
        self.notifier = notifier
        self.change_store = change_store
        self.reporter = reporter
        self._clock = clock or utc_now

    async def process(self, observation: Observation) -> PipelineOutcome:
        """
        Run one observation through the pipeline.

        Args:
            observation: Normalized observation from either ingestion path

        Returns:
            PipelineOutcome describing what happened
        """
        token = observation.token
        now = self._clock()

        transition = self.store.observe(token, observation.state, observation.source, now)
        if not transition.known:
            logger.debug("Ignoring %s observation for untracked document %s", observation.source.value, token)
            return PipelineOutcome.UNKNOWN_DOCUMENT
        if not transition.applied:
            return PipelineOutcome.STALE
        if transition.previous is None:
            logger.info("Baseline seeded for %s (edited by %s)", token, observation.state.editor_id)
            return PipelineOutcome.SEEDED

        change = detect(
            transition.previous,
            observation.state,
            change_hint=observation.change_hint,
            token=token,
            source=observation.source,
        )
        if change is None:
            return PipelineOutcome.UNCHANGED

        self.reporter.record_change_detected()

        claim = self.debouncer.claim(token, change, now)
        if claim is None:
            logger.debug("Document %s was unwatched while processing a change", token)
            return PipelineOutcome.UNKNOWN_DOCUMENT
        if not claim.allowed:
            self.reporter.record_suppressed()
            return PipelineOutcome.SUPPRESSED

        message = format_change_summary(
            change,
            title=claim.title,
            tz=self.config.timezone,
            suppressed_count=claim.suppressed_count,
        )
        logger.info(
            "Change detected for %s via %s: %s by %s",
            token,
            change.source.value,
            change.change_type.value,
            change.current.editor_id,
        )

        await self._dispatch(token, claim.channel_ids, message, now)

        event = ChangeEvent.from_result(
            change, detected_at=now, title=claim.title, suppressed_count=claim.suppressed_count
        )
        await self._persist(event)
        return PipelineOutcome.NOTIFIED

    async def _dispatch(self, token: str, channel_ids: list[str], message: str, now: datetime) -> int:
        """
        Fan a notification out to every watching channel.

        Returns:
            Number of channels that accepted the message
        """
        if not channel_ids:
            return 0

        results = await asyncio.gather(
            *(self.notifier.notify(channel_id, message) for channel_id in channel_ids),
            return_exceptions=True,
        )

        delivered = 0
        for channel_id, result in zip(channel_ids, results, strict=True):
            if isinstance(result, Exception):
                self.reporter.record_notification_failed()
                logger.error("Failed to notify %s about %s: %s", channel_id, token, result)
            elif result is False:
                self.reporter.record_notification_failed()
                logger.error("Notifier rejected notification to %s about %s", channel_id, token)
            else:
                delivered += 1

        if delivered:
            self.reporter.record_notification_sent(now)
            logger.info("Notification for %s sent to %d/%d channel(s)", token, delivered, len(channel_ids))
        return delivered

    async def _persist(self, event: ChangeEvent) -> bool:
        """Report a change event; failures are logged and swallowed."""
        if self.change_store is None:
            return False

        try:
            stored = await self.change_store.log_change_event(event)
            if not stored:
                raise PersistenceWriteError(
                    "Change event was not stored", token=event.token, operation="log_change_event"
                )
            return True
        except PersistenceWriteError as e:
            self.reporter.record_persistence_failure()
            logger.error("Failed to record change event for %s: %s", event.token, e)
        except Exception as e:
            self.reporter.record_persistence_failure()
            error = PersistenceWriteError(
                f"Change event write failed: {e}", token=event.token, operation="log_change_event", underlying_error=e
            )
            logger.error("Failed to record change event for %s: %s", event.token, error)
        return False
