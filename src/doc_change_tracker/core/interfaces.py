"""
Abstract interfaces for the collaborators of the tracking engine.

These interfaces define the contracts for the document provider, the change
history store and the chat notifier, enabling dependency injection for
testing with fake implementations.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Sequence

from doc_change_tracker.models import ChangeEvent, DocType, DocumentMetadata


class IDocumentProvider(ABC):
    """Interface for the remote document platform."""

    @abstractmethod
    async def fetch_metadata(self, token: str, doc_type: DocType) -> DocumentMetadata:
        """
        Fetch the current edit metadata of one document.

        Args:
            token: Document token
            doc_type: Canonical document type

        Returns:
            Metadata snapshot for the document

        Raises:
            ProviderFetchError: If the document cannot be fetched
        """
        pass

    async def fetch_metadata_batch(
        self, requests: Sequence[tuple[str, DocType]]
    ) -> dict[str, DocumentMetadata | Exception]:
        """
        Fetch metadata for several documents in one round trip.

        The default implementation fans out to fetch_metadata concurrently;
        providers with a native batch endpoint should override it. Per-token
        failures are returned as exception values rather than raised, so one
        bad document never hides the others.

        Args:
            requests: (token, doc_type) pairs

        Returns:
            Mapping of token to metadata or to the exception raised for it
        """
        results = await asyncio.gather(
            *(self.fetch_metadata(token, doc_type) for token, doc_type in requests),
            return_exceptions=True,
        )
        return {token: result for (token, _), result in zip(requests, results, strict=True)}

    @abstractmethod
    async def subscribe(self, token: str, doc_type: DocType) -> str:
        """
        Register a push subscription for document change events.

        Args:
            token: Document token
            doc_type: Canonical document type

        Returns:
            Provider subscription identifier

        Raises:
            SubscriptionError: If the subscription cannot be created
        """
        pass

    @abstractmethod
    async def unsubscribe(self, subscription_id: str, token: str, doc_type: DocType) -> None:
        """
        Remove a push subscription.

        Args:
            subscription_id: Identifier returned by subscribe
            token: Document token
            doc_type: Canonical document type

        Raises:
            SubscriptionError: If the subscription cannot be removed
        """
        pass


class IChangeEventStore(ABC):
    """Interface for the change history persistence collaborator."""

    @abstractmethod
    async def log_change_event(self, event: ChangeEvent) -> bool:
        """
        Record a dispatched change.

        Args:
            event: Change event to record

        Returns:
            True if the event was stored
        """
        pass

    @abstractmethod
    async def get_recent_changes(self, token: str, limit: int = 10) -> list[ChangeEvent]:
        """
        Get the most recent recorded changes of a document, newest first.

        Args:
            token: Document token
            limit: Maximum number of events to return

        Returns:
            List of change events
        """
        pass


class INotifier(ABC):
    """Interface for the chat transport that delivers notifications."""

    @abstractmethod
    async def notify(self, channel_id: str, message: str) -> bool:
        """
        Send a notification message to a chat channel.

        Args:
            channel_id: Target chat channel
            message: Rendered notification text

        Returns:
            True if the transport accepted the message
        """
        pass
