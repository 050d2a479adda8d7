"""
In-memory registry of watched documents and their last known state.

The store is the only shared mutable resource of the engine. The poller
timer and webhook request handlers both mutate it, so every read-modify-write
happens under a single re-entrant lock and callers only ever receive detached
copies of the entries.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from doc_change_tracker.models import (
    DetectionSource,
    DocType,
    DocumentState,
    TrackedDocument,
    TrackingStatus,
    Watcher,
)
from doc_change_tracker.tracking.references import normalize_doc_type, validate_token

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Registration:
    """Outcome of registering a watcher."""

    document: TrackedDocument
    created: bool
    watcher_added: bool


@dataclass(frozen=True)
class Removal:
    """Outcome of removing a watcher."""

    removed: bool
    entry_removed: bool = False
    document: TrackedDocument | None = None


@dataclass(frozen=True)
class StateTransition:
    """Atomic result of offering an observation to the store."""

    applied: bool
    previous: DocumentState | None = None
    known: bool = True


@dataclass(frozen=True)
class NotificationClaim:
    """Atomic result of a debounce decision for one change."""

    allowed: bool
    suppressed_count: int = 0
    channel_ids: list[str] = field(default_factory=list)
    title: str | None = None


class TrackingStore:
    """
    Registry of tracked documents keyed by token.

    Tokens are unique: registering an already tracked token adds a watcher.
    An entry whose last watcher leaves is removed immediately.
    """

    def __init__(self, min_token_length: int = 10, clock: Callable[[], datetime] | None = None):
        """
        Initialize the store.

        Args:
            min_token_length: Minimum accepted token length
            clock: Time source, defaults to the UTC wall clock
        """
        self.min_token_length = min_token_length
        self._clock = clock or utc_now
        self._documents: dict[str, TrackedDocument] = {}
        self._lock = threading.RLock()

    # Registration

    def register(self, token: str, doc_type: str | DocType | None, watcher: Watcher | str) -> TrackedDocument:
        """
        Register a watcher for a document.

        Idempotent per (token, watcher).

        Raises:
            InvalidTokenError: If the token is empty or malformed
        """
        return self.register_watcher(token, doc_type, watcher).document

    def register_watcher(
        self, token: str, doc_type: str | DocType | None, watcher: Watcher | str
    ) -> Registration:
        """Register a watcher and report whether the entry or the watcher is new."""
        token = validate_token(token, self.min_token_length)
        if isinstance(watcher, str):
            watcher = Watcher(channel_id=watcher)

        with self._lock:
            document = self._documents.get(token)
            created = document is None
            if document is None:
                document = TrackedDocument(
                    token=token,
                    doc_type=normalize_doc_type(doc_type),
                    registered_at=self._clock(),
                )
                self._documents[token] = document
                logger.info("Started tracking %s (%s)", token, document.doc_type.value)

            watcher_added = watcher not in document.watchers
            if watcher_added:
                document.watchers.add(watcher)
                logger.debug("Added watcher %s to %s", watcher, token)

            return Registration(document=document.model_copy(deep=True), created=created, watcher_added=watcher_added)

    def unregister(self, token: str, watcher: Watcher | str) -> bool:
        """
        Remove a watcher from a document.

        A bare channel id removes every watcher of that channel. Removing the
        last watcher removes the entry.

        Returns:
            False if the token or the watcher is unknown
        """
        return self.remove_watcher(token, watcher).removed

    def remove_watcher(self, token: str, watcher: Watcher | str) -> Removal:
        """Remove a watcher and hand back the entry if it was dropped."""
        with self._lock:
            document = self._documents.get(token)
            if document is None:
                return Removal(removed=False)

            if isinstance(watcher, Watcher):
                matching = {watcher} & document.watchers
            else:
                matching = {w for w in document.watchers if w.channel_id == watcher}

            if not matching:
                return Removal(removed=False, document=document.model_copy(deep=True))

            document.watchers -= matching
            logger.debug("Removed %d watcher(s) from %s", len(matching), token)

            if document.watchers:
                return Removal(removed=True, document=document.model_copy(deep=True))

            del self._documents[token]
            detached = document.model_copy(deep=True)
            detached.status = TrackingStatus.DEREGISTERING
            logger.info("Stopped tracking %s (no watchers left)", token)
            return Removal(removed=True, entry_removed=True, document=detached)

    def collect_garbage(self) -> list[TrackedDocument]:
        """Drop entries that have no watchers left."""
        with self._lock:
            orphaned = [token for token, document in self._documents.items() if not document.watchers]
            removed = []
            for token in orphaned:
                document = self._documents.pop(token)
                document.status = TrackingStatus.DEREGISTERING
                removed.append(document)
            if removed:
                logger.info("Garbage collected %d unwatched document(s)", len(removed))
            return removed

    # Lookup

    def get(self, token: str) -> TrackedDocument | None:
        """Get a detached copy of a tracked document."""
        with self._lock:
            document = self._documents.get(token)
            return document.model_copy(deep=True) if document else None

    def poll_targets(self) -> list[tuple[str, DocType]]:
        """Snapshot of (token, doc_type) pairs that should be polled."""
        with self._lock:
            return [
                (document.token, document.doc_type)
                for document in self._documents.values()
                if document.watchers and document.status != TrackingStatus.DEREGISTERING
            ]

    def __contains__(self, token: object) -> bool:
        with self._lock:
            return token in self._documents

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    # State updates

    def update_state(
        self,
        token: str,
        new_state: DocumentState,
        source: DetectionSource = DetectionSource.POLL,
        now: datetime | None = None,
    ) -> bool:
        """
        Offer an observation, applying the stale-observation rule.

        Returns:
            True if the state was applied
        """
        return self.observe(token, new_state, source, now).applied

    def observe(
        self,
        token: str,
        new_state: DocumentState,
        source: DetectionSource = DetectionSource.POLL,
        now: datetime | None = None,
    ) -> StateTransition:
        """
        Offer an observation and return the previous state atomically.

        The first observation seeds the baseline. Afterwards only strictly
        newer edit times are applied; older ones and redeliveries are
        rejected. Unknown tokens are never recreated.
        """
        now = now or self._clock()
        with self._lock:
            document = self._documents.get(token)
            if document is None:
                return StateTransition(applied=False, known=False)

            if source == DetectionSource.PUSH:
                document.last_webhook_at = now

            previous = document.last_known_state
            if previous is not None and new_state.edited_at <= previous.edited_at:
                logger.debug(
                    "Rejected stale observation for %s (%s <= %s)", token, new_state.edited_at, previous.edited_at
                )
                return StateTransition(applied=False, previous=previous)

            document.last_known_state = new_state
            if new_state.title:
                document.title = new_state.title
            if previous is None:
                document.baseline_at = now
                logger.debug("Seeded baseline for %s at %s", token, new_state.edited_at)

            return StateTransition(applied=True, previous=previous)

    def claim_notification(
        self,
        token: str,
        decide: Callable[[datetime | None], bool],
        now: datetime | None = None,
    ) -> NotificationClaim | None:
        """
        Make a debounce decision and record its outcome atomically.

        Args:
            token: Document token
            decide: Receives the debounce anchor (last notification, else the
                baseline time) and returns whether to notify
            now: Decision time

        Returns:
            The claim, or None if the token is no longer tracked
        """
        now = now or self._clock()
        with self._lock:
            document = self._documents.get(token)
            if document is None:
                return None

            anchor = document.last_notified_at or document.baseline_at
            if not decide(anchor):
                document.suppressed_changes += 1
                return NotificationClaim(allowed=False, suppressed_count=document.suppressed_changes)

            suppressed = document.suppressed_changes
            document.last_notified_at = now
            document.suppressed_changes = 0
            return NotificationClaim(
                allowed=True,
                suppressed_count=suppressed,
                channel_ids=document.channel_ids,
                title=document.title,
            )

    def record_poll_success(self, token: str, now: datetime | None = None) -> bool:
        """Mark a successful fetch, clearing failure counters and error status."""
        now = now or self._clock()
        with self._lock:
            document = self._documents.get(token)
            if document is None:
                return False

            document.last_polled_at = now
            document.consecutive_failures = 0
            document.last_error = None
            if document.status == TrackingStatus.ERROR:
                document.status = TrackingStatus.ACTIVE
                logger.info("Document %s recovered from error status", token)
            return True

    def record_poll_failure(self, token: str, error: str, max_failures: int) -> TrackingStatus | None:
        """
        Count a failed fetch.

        Returns:
            The document's status afterwards, or None if it is no longer tracked
        """
        with self._lock:
            document = self._documents.get(token)
            if document is None:
                return None

            document.consecutive_failures += 1
            document.last_error = error
            if document.consecutive_failures >= max_failures and document.status == TrackingStatus.ACTIVE:
                document.status = TrackingStatus.ERROR
                logger.warning(
                    "Document %s entered error status after %d consecutive failures",
                    token,
                    document.consecutive_failures,
                )
            return document.status

    def set_subscription(self, token: str, subscription_id: str | None) -> bool:
        """Record the provider push subscription of a document."""
        with self._lock:
            document = self._documents.get(token)
            if document is None:
                return False
            document.subscription_id = subscription_id
            return True

    def list(self) -> list[TrackedDocument]:
        """Get detached copies of all tracked documents."""
        with self._lock:
            return [document.model_copy(deep=True) for document in self._documents.values()]
