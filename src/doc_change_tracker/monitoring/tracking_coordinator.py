"""
Tracking coordinator: the entry point used by the chat command layer.

Wires the tracking store, the change pipeline, the poller, the webhook
ingestor and the health reporter together, and exposes watch/unwatch,
listing, status and history operations.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from doc_change_tracker.config.settings import TrackerConfig
from doc_change_tracker.core.interfaces import IChangeEventStore, IDocumentProvider, INotifier
from doc_change_tracker.models import (
    AckStatus,
    ChangeEvent,
    CommandAck,
    DocType,
    HealthSnapshot,
    TrackedDocument,
    TrackedDocumentSummary,
    Watcher,
)
from doc_change_tracker.models.exceptions import (
    MonitoringError,
    NotTrackedError,
    ProviderFetchError,
    SubscriptionError,
)
from doc_change_tracker.monitoring.health import HealthReporter
from doc_change_tracker.monitoring.pipeline import ChangePipeline, PipelineOutcome
from doc_change_tracker.monitoring.poller import DocumentPoller
from doc_change_tracker.monitoring.webhook_ingestor import WebhookIngestor
from doc_change_tracker.tracking.change_detector import summarize_changes
from doc_change_tracker.tracking.debounce import DebouncePolicy, Debouncer
from doc_change_tracker.tracking.references import parse_document_reference
from doc_change_tracker.tracking.store import TrackingStore, utc_now

logger = logging.getLogger(__name__)

POLLING_FALLBACK_WARNING = "Real-time updates are unavailable for this document; changes will be detected by polling"


class TrackingCoordinator:
    """
    Process-scoped owner of the tracking engine.

    All collaborators are injected; nothing here is a module-level singleton.
    Call start() once the event loop is running and stop() on shutdown.
    """

    def __init__(
        self,
        config: TrackerConfig,
        provider: IDocumentProvider,
        notifier: INotifier,
        change_store: IChangeEventStore | None = None,
        store: TrackingStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the coordinator.

        Args:
            config: Tracker configuration
            provider: Document provider for metadata and push subscriptions
            notifier: Chat transport for change notifications
            change_store: Optional change history persistence
            store: Optional tracking store (created from config if not provided)
            clock: Time source, defaults to the UTC wall clock
        """
        self.config = config
        self.provider = provider
        self.notifier = notifier
        self.change_store = change_store
        self._clock = clock or utc_now

        self.store = store or TrackingStore(min_token_length=config.min_token_length, clock=self._clock)
        self.reporter = HealthReporter(config, self.store, clock=self._clock)

        policy = DebouncePolicy.from_settings(config.debounce_window_seconds, config.debounced_change_types)
        self.debouncer = Debouncer(self.store, policy)
        self.pipeline = ChangePipeline(
            config, self.store, self.debouncer, notifier, change_store, self.reporter, clock=self._clock
        )
        self.poller = DocumentPoller(config, self.store, provider, self.pipeline, self.reporter, clock=self._clock)
        self.webhooks = WebhookIngestor(self.store, self.pipeline, self.reporter)

    # Lifecycle

    async def start(self) -> None:
        """
        Start background polling.

        Raises:
            MonitoringError: If polling cannot be started
        """
        if not self.config.polling_enabled:
            logger.info("Polling disabled in configuration, relying on push events only")
            return

        try:
            self.poller.start()
        except MonitoringError:
            raise
        except Exception as e:
            logger.error("Failed to start tracking: %s", e)
            raise MonitoringError(
                f"Failed to start tracking: {e}", operation="start_tracking", underlying_error=e
            ) from e
        logger.info("Document change tracking started (%d document(s) tracked)", len(self.store))

    async def stop(self) -> None:
        """
        Stop background polling.

        Raises:
            MonitoringError: If polling cannot be stopped cleanly
        """
        try:
            await self.poller.stop()
        except Exception as e:
            logger.error("Error stopping tracking: %s", e)
            raise MonitoringError("Failed to stop tracking", operation="stop_tracking", underlying_error=e) from e

    @property
    def is_running(self) -> bool:
        return self.poller.is_running

    # Commands

    async def watch(
        self,
        reference: str,
        doc_type: str | DocType | None,
        channel_id: str,
        requested_by: str = "unknown",
    ) -> CommandAck:
        """
        Start tracking a document for a channel.

        Args:
            reference: Document token or URL
            doc_type: Document type; inferred from the URL or token when omitted
            channel_id: Chat channel to notify
            requested_by: User who issued the command

        Returns:
            CommandAck describing the outcome

        Raises:
            InvalidTokenError: If the token is empty or malformed
        """
        token, inferred_type = parse_document_reference(reference)
        watcher = Watcher(channel_id=channel_id, requested_by=requested_by)
        registration = self.store.register_watcher(token, doc_type or inferred_type, watcher)
        document = registration.document

        if not registration.watcher_added:
            return CommandAck(
                ok=True,
                status=AckStatus.ALREADY_WATCHED,
                token=document.token,
                doc_type=document.doc_type,
                message=f"Already tracking {self._display_name(document)} in this channel",
                push_enabled=document.push_enabled,
            )

        push_enabled = document.push_enabled
        warning = None
        if registration.created and self.config.webhook_subscriptions_enabled:
            push_enabled, warning = await self._subscribe(document)

        logger.info("Channel %s is now watching %s (requested by %s)", channel_id, document.token, requested_by)
        return CommandAck(
            ok=True,
            status=AckStatus.WATCHING,
            token=document.token,
            doc_type=document.doc_type,
            message=f"Now tracking {self._display_name(document)}",
            push_enabled=push_enabled,
            warning=warning,
        )

    async def unwatch(self, reference: str, channel_id: str) -> CommandAck:
        """
        Stop tracking a document for a channel.

        An unknown token or channel yields a NOT_TRACKED acknowledgement
        rather than an exception.
        """
        token, _ = parse_document_reference(reference)
        removal = self.store.remove_watcher(token, channel_id)

        if not removal.removed:
            error = NotTrackedError(
                f"Document {token} is not being tracked in this channel", token=token, channel_id=channel_id
            )
            logger.info("Unwatch ignored: %s", error)
            return CommandAck.from_error(error, token=token, status=AckStatus.NOT_TRACKED)

        document = removal.document
        if removal.entry_removed and document.subscription_id:
            await self._unsubscribe(document)

        logger.info("Channel %s stopped watching %s", channel_id, token)
        return CommandAck(
            ok=True,
            status=AckStatus.UNWATCHED,
            token=token,
            doc_type=document.doc_type,
            message=f"Stopped tracking {self._display_name(document)}",
            push_enabled=document.push_enabled and not removal.entry_removed,
            document_removed=removal.entry_removed,
        )

    def list_tracked(self, channel_id: str | None = None) -> list[TrackedDocumentSummary]:
        """
        List tracked documents, optionally only those a channel watches.

        Returns:
            Summaries ordered by registration time
        """
        documents = self.store.list()
        if channel_id is not None:
            documents = [document for document in documents if document.is_watched_by(channel_id)]
        documents.sort(key=lambda document: document.registered_at)
        return [TrackedDocumentSummary.from_document(document) for document in documents]

    def status(self) -> HealthSnapshot:
        """Current health snapshot."""
        return self.reporter.snapshot()

    def get_stats(self) -> dict[str, Any]:
        """Health snapshot and configuration highlights as a plain dictionary."""
        return {
            "running": self.is_running,
            "poll_interval_seconds": self.config.poll_interval_seconds,
            "debounce_window_seconds": self.config.debounce_window_seconds,
            "health": self.reporter.get_stats(),
        }

    # Ingestion

    async def handle_webhook(self, raw_event: dict[str, Any]) -> PipelineOutcome | None:
        """Feed a provider push event into the change pipeline."""
        return await self.webhooks.on_event(raw_event)

    async def check(self, reference: str) -> dict[str, Any]:
        """
        Check one document immediately, outside the polling schedule.

        Returns:
            Dictionary with status and the pipeline outcome or the error
        """
        token, _ = parse_document_reference(reference)
        try:
            outcome = await self.poller.refresh(token)
        except (NotTrackedError, ProviderFetchError) as e:
            logger.warning("Manual check of %s failed: %s", token, e)
            return {"status": "failed", "token": token, "error": e.message, "error_code": e.error_code}

        return {"status": "success", "token": token, "outcome": outcome.value}

    # History

    async def get_recent_changes(self, reference: str, limit: int | None = None) -> list[ChangeEvent]:
        """
        Recent notified changes of a document, newest first.

        Returns an empty list when no change store is configured or the
        store cannot be read.
        """
        if self.change_store is None:
            return []

        token, _ = parse_document_reference(reference)
        limit = limit or self.config.recent_changes_limit
        try:
            return await self.change_store.get_recent_changes(token, limit)
        except Exception as e:
            logger.error("Failed to read change history for %s: %s", token, e)
            return []

    async def get_change_summary(self, reference: str, limit: int | None = None) -> dict[str, Any]:
        """Editor and interval analytics over a document's recent changes."""
        return summarize_changes(await self.get_recent_changes(reference, limit))

    # Push subscriptions

    async def _subscribe(self, document: TrackedDocument) -> tuple[bool, str | None]:
        """
        Register a provider push subscription for a newly tracked document.

        Returns:
            (push_enabled, warning)
        """
        token = document.token
        try:
            subscription_id = await self.provider.subscribe(token, document.doc_type)
        except Exception as e:
            error = e if isinstance(e, SubscriptionError) else SubscriptionError(
                f"Push subscription failed: {e}", token=token, operation="subscribe", underlying_error=e
            )
            logger.warning("Falling back to polling for %s: %s", token, error)
            return False, POLLING_FALLBACK_WARNING

        if not self.store.set_subscription(token, subscription_id):
            # Unwatched while the subscription was being created
            document = document.model_copy(update={"subscription_id": subscription_id})
            await self._unsubscribe(document)
            return False, None

        logger.info("Push subscription %s active for %s", subscription_id, token)
        return True, None

    async def _unsubscribe(self, document: TrackedDocument) -> None:
        """Remove a push subscription; failures are logged, never raised."""
        try:
            await self.provider.unsubscribe(document.subscription_id, document.token, document.doc_type)
            logger.info("Push subscription %s removed for %s", document.subscription_id, document.token)
        except Exception as e:
            error = SubscriptionError(
                f"Failed to remove push subscription: {e}",
                token=document.token,
                operation="unsubscribe",
                underlying_error=e,
            )
            logger.warning("%s", error)

    @staticmethod
    def _display_name(document: TrackedDocument) -> str:
        if document.title:
            return f'"{document.title}" ({document.token})'
        return document.token
