"""
Periodic reconciliation of tracked documents against provider metadata.

Every tick snapshots the tracked tokens, fetches their metadata in batches
and feeds each snapshot through the shared change pipeline. Failures are
isolated per token and never abort the tick.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from doc_change_tracker.config.settings import TrackerConfig
from doc_change_tracker.core.interfaces import IDocumentProvider
from doc_change_tracker.models import (
    DetectionSource,
    DocType,
    DocumentMetadata,
    Observation,
    PollResult,
    TrackingStatus,
)
from doc_change_tracker.models.exceptions import MonitoringError, NotTrackedError, ProviderFetchError
from doc_change_tracker.monitoring.health import HealthReporter
from doc_change_tracker.monitoring.pipeline import ChangePipeline, PipelineOutcome
from doc_change_tracker.tracking.store import TrackingStore, utc_now

logger = logging.getLogger(__name__)

FetchOutcome = DocumentMetadata | ProviderFetchError


@dataclass
class _TickTally:
    """Mutable counters for one tick."""

    batches: int = 0
    succeeded: int = 0
    failed: int = 0
    changes_detected: int = 0
    notifications_sent: int = 0
    suppressed: int = 0
    failed_tokens: list[str] = field(default_factory=list)

    def count(self, outcome: PipelineOutcome) -> None:
        if outcome in (PipelineOutcome.NOTIFIED, PipelineOutcome.SUPPRESSED):
            self.changes_detected += 1
        if outcome == PipelineOutcome.NOTIFIED:
            self.notifications_sent += 1
        elif outcome == PipelineOutcome.SUPPRESSED:
            self.suppressed += 1


class DocumentPoller:
    """
    Polling service for tracked documents.

    Ticks never overlap: the background loop runs them sequentially and a
    manual tick() waits for any tick already in flight.
    """

    def __init__(
        self,
        config: TrackerConfig,
        store: TrackingStore,
        provider: IDocumentProvider,
        pipeline: ChangePipeline,
        reporter: HealthReporter,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the poller.

        Args:
            config: Tracker configuration (interval, batching, timeouts)
            store: Tracking store to snapshot tokens from
            provider: Document provider to fetch metadata from
            pipeline: Shared change pipeline
            reporter: Health reporter for tick and failure metrics
            clock: Time source, defaults to the UTC wall clock
        """
        self.config = config
        self.store = store
        self.provider = provider
        self.pipeline = pipeline
        self.reporter = reporter
        self._clock = clock or utc_now

        self._tick_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    # Lifecycle

    def start(self) -> None:
        """
        Start the background polling loop.

        Raises:
            MonitoringError: If no event loop is running
        """
        if self.is_running:
            logger.debug("Poller already running")
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise MonitoringError(
                "Poller must be started from a running event loop", operation="start_polling", underlying_error=e
            ) from e

        self._task = loop.create_task(self._run(), name="doc-change-poller")
        logger.info("Polling started every %ss", self.config.poll_interval_seconds)

    async def stop(self) -> None:
        """Stop the polling loop, cancelling an in-flight tick."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Polling stopped")

    @property
    def is_running(self) -> bool:
        """Check if the background loop is active."""
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        """Run ticks on a fixed interval."""
        interval = self.config.poll_interval_seconds
        while True:
            started = time.monotonic()
            try:
                await self.tick()
            except Exception as e:
                logger.error("Unexpected error during poll tick: %s", e)

            elapsed = time.monotonic() - started
            await asyncio.sleep(max(interval - elapsed, 0.0))

    # Ticks

    async def tick(self) -> PollResult:
        """
        Poll every tracked document once.

        Returns:
            PollResult with counts for the tick
        """
        async with self._tick_lock:
            return await self._run_tick()

    async def _run_tick(self) -> PollResult:
        started_at = self._clock()
        started = time.monotonic()

        # Registrations during the tick apply from the next tick on
        targets = self.store.poll_targets()
        tally = _TickTally()

        if targets:
            logger.debug("Polling %d document(s)", len(targets))
            size = self.config.poll_batch_size
            batches = [targets[i : i + size] for i in range(0, len(targets), size)]
            tally.batches = len(batches)

            semaphore = asyncio.Semaphore(self.config.max_concurrent_batches)
            await asyncio.gather(*(self._poll_batch(batch, semaphore, tally) for batch in batches))

        result = PollResult(
            started_at=started_at,
            duration_seconds=time.monotonic() - started,
            documents_polled=len(targets),
            batches=tally.batches,
            succeeded=tally.succeeded,
            failed=tally.failed,
            changes_detected=tally.changes_detected,
            notifications_sent=tally.notifications_sent,
            suppressed=tally.suppressed,
            failed_tokens=tally.failed_tokens,
        )
        self.reporter.record_tick(result)

        if targets:
            logger.info(
                "Poll completed in %.2fs (%d ok, %d failed, %d notified, %d debounced)",
                result.duration_seconds,
                result.succeeded,
                result.failed,
                result.notifications_sent,
                result.suppressed,
            )
        return result

    async def _poll_batch(
        self, batch: Sequence[tuple[str, DocType]], semaphore: asyncio.Semaphore, tally: _TickTally
    ) -> None:
        """Fetch one batch and process every token in it."""
        async with semaphore:
            outcomes = await self._fetch_batch(batch)

        for token, _ in batch:
            outcome = outcomes.get(token)
            if not isinstance(outcome, DocumentMetadata):
                if not isinstance(outcome, ProviderFetchError):
                    outcome = ProviderFetchError("Provider returned no metadata", token=token)
                self._record_failure(token, outcome, tally)
                continue

            tally.succeeded += 1
            try:
                tally.count(await self._apply(token, outcome))
            except Exception as e:
                logger.error("Error processing poll result for %s: %s", token, e)

    async def _apply(self, token: str, metadata: DocumentMetadata) -> PipelineOutcome:
        """Record the fetch and run the snapshot through the pipeline."""
        if not self.store.record_poll_success(token, self._clock()):
            # Unwatched while the fetch was in flight
            return PipelineOutcome.UNKNOWN_DOCUMENT

        observation = Observation(token=token, state=metadata.to_state(), source=DetectionSource.POLL)
        return await self.pipeline.process(observation)

    def _record_failure(self, token: str, error: ProviderFetchError, tally: _TickTally) -> None:
        tally.failed += 1
        tally.failed_tokens.append(token)
        self.reporter.record_poll_failure()

        status = self.store.record_poll_failure(token, error.message, self.config.max_consecutive_failures)
        if status == TrackingStatus.ERROR:
            logger.error("Failed to fetch metadata for %s: %s", token, error)
        else:
            logger.warning("Failed to fetch metadata for %s: %s", token, error)

    # Provider access

    async def _fetch_batch(self, batch: Sequence[tuple[str, DocType]]) -> dict[str, FetchOutcome]:
        """
        Fetch metadata for a batch with a bounded timeout.

        A batch-level error (as opposed to per-token errors reported by the
        provider) falls back to fetching each token on its own.
        """
        timeout = self.config.fetch_timeout_seconds
        try:
            results = await asyncio.wait_for(self.provider.fetch_metadata_batch(list(batch)), timeout)
            if not isinstance(results, dict):
                raise TypeError(f"Batch fetch returned {type(results).__name__}, expected a mapping")
        except TimeoutError:
            return {
                token: ProviderFetchError(f"Metadata fetch timed out after {timeout}s", token=token, timed_out=True)
                for token, _ in batch
            }
        except Exception as e:
            if len(batch) == 1:
                token = batch[0][0]
                return {token: self._as_fetch_error(token, e)}
            logger.warning("Batch fetch of %d documents failed (%s), retrying individually", len(batch), e)
            return await self._fetch_individually(batch)

        outcomes: dict[str, FetchOutcome] = {}
        for token, _ in batch:
            result = results.get(token)
            if isinstance(result, DocumentMetadata):
                outcomes[token] = result
            elif isinstance(result, BaseException):
                outcomes[token] = self._as_fetch_error(token, result)
            else:
                outcomes[token] = ProviderFetchError("Provider returned no metadata", token=token)
        return outcomes

    async def _fetch_individually(self, batch: Sequence[tuple[str, DocType]]) -> dict[str, FetchOutcome]:
        results = await asyncio.gather(*(self._fetch_one(token, doc_type) for token, doc_type in batch))
        return {token: result for (token, _), result in zip(batch, results, strict=True)}

    async def _fetch_one(self, token: str, doc_type: DocType) -> FetchOutcome:
        timeout = self.config.fetch_timeout_seconds
        try:
            return await asyncio.wait_for(self.provider.fetch_metadata(token, doc_type), timeout)
        except TimeoutError:
            return ProviderFetchError(f"Metadata fetch timed out after {timeout}s", token=token, timed_out=True)
        except Exception as e:
            return self._as_fetch_error(token, e)

    @staticmethod
    def _as_fetch_error(token: str, error: BaseException) -> ProviderFetchError:
        if isinstance(error, ProviderFetchError):
            return error
        return ProviderFetchError(
            f"Metadata fetch failed: {error}",
            token=token,
            underlying_error=error if isinstance(error, Exception) else None,
        )

    async def refresh(self, token: str) -> PipelineOutcome:
        """
        Check one tracked document immediately, outside the tick schedule.

        Raises:
            NotTrackedError: If the document is not tracked
            ProviderFetchError: If the fetch fails
        """
        document = self.store.get(token)
        if document is None:
            raise NotTrackedError(f"Document {token} is not being tracked", token=token)

        outcome = await self._fetch_one(token, document.doc_type)
        if isinstance(outcome, ProviderFetchError):
            self.reporter.record_poll_failure()
            self.store.record_poll_failure(token, outcome.message, self.config.max_consecutive_failures)
            raise outcome
        return await self._apply(token, outcome)
