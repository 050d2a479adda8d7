"""
In-memory change history store.
"""

import logging
import threading
from collections import deque
from typing import Any

from doc_change_tracker.core.interfaces import IChangeEventStore
from doc_change_tracker.models import ChangeEvent
from doc_change_tracker.models.exceptions import PersistenceWriteError

logger = logging.getLogger(__name__)


class InMemoryChangeEventStore(IChangeEventStore):
    """
    Change history kept in process memory.

    Keeps the most recent events per document, bounded by max_events_per_document.
    Suitable for tests and single-process deployments; history is lost on restart.
    """

    def __init__(self, max_events_per_document: int = 100):
        """Initialize the store with a per-document history bound."""
        if max_events_per_document < 1:
            raise ValueError("max_events_per_document must be at least 1")

        self.max_events_per_document = max_events_per_document
        self._events: dict[str, deque[ChangeEvent]] = {}
        self._lock = threading.Lock()

    async def log_change_event(self, event: ChangeEvent) -> bool:
        """Append a change event to the document's history."""
        try:
            with self._lock:
                history = self._events.setdefault(event.token, deque(maxlen=self.max_events_per_document))
                history.append(event.model_copy())
        except Exception as e:
            raise PersistenceWriteError(
                f"Failed to store change event: {e}",
                token=event.token,
                operation="log_change_event",
                underlying_error=e,
            ) from e

        logger.debug("Stored %s event for %s", event.change_type.value, event.token)
        return True

    async def get_recent_changes(self, token: str, limit: int = 10) -> list[ChangeEvent]:
        """Most recent events for a document, newest first."""
        if limit <= 0:
            return []

        with self._lock:
            history = list(self._events.get(token, ()))
        return [event.model_copy() for event in reversed(history[-limit:])]

    async def clear(self, token: str | None = None) -> None:
        """Drop the history of one document, or of all documents."""
        with self._lock:
            if token is None:
                self._events.clear()
            else:
                self._events.pop(token, None)

    async def health_check(self) -> dict[str, Any]:
        """Report store size."""
        with self._lock:
            return {
                "status": "healthy",
                "documents": len(self._events),
                "events": sum(len(history) for history in self._events.values()),
            }
