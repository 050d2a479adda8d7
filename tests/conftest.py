"""Shared fakes and fixtures for the tracking engine tests."""

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

import pytest
from doc_change_tracker.config import TrackerConfig
from doc_change_tracker.core.interfaces import IDocumentProvider, INotifier
from doc_change_tracker.models import DocType, DocumentMetadata
from doc_change_tracker.monitoring import TrackingCoordinator
from doc_change_tracker.storage import InMemoryChangeEventStore

T0 = datetime(2024, 5, 1, 9, 0, 0, tzinfo=UTC)

TOKEN_A = "doxcnAAAAAAAAAAAAAAAA"
TOKEN_B = "doxcnBBBBBBBBBBBBBBBB"


class MutableClock:
    """Deterministic time source."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


class FakeProvider(IDocumentProvider):
    """In-memory document provider with switchable failures."""

    def __init__(self):
        self.documents: dict[str, DocumentMetadata] = {}
        self.failing: set[str] = set()
        self.delay = 0.0
        self.batch_error: Exception | None = None
        self.subscribe_error: Exception | None = None
        self.unsubscribe_error: Exception | None = None
        self.batch_calls: list[list[str]] = []
        self.fetch_calls: list[str] = []
        self.subscribed: list[str] = []
        self.unsubscribed: list[str] = []

    def set_document(
        self,
        token: str,
        edited_at: datetime,
        editor_id: str,
        title: str | None = "Design Doc",
        revision: str | None = None,
    ) -> DocumentMetadata:
        metadata = DocumentMetadata(
            token=token, edited_at=edited_at, editor_id=editor_id, title=title, revision=revision
        )
        self.documents[token] = metadata
        return metadata

    async def fetch_metadata(self, token: str, doc_type: DocType) -> DocumentMetadata:
        self.fetch_calls.append(token)
        if self.delay:
            await asyncio.sleep(self.delay)
        if token in self.failing:
            raise RuntimeError(f"provider unavailable for {token}")
        if token not in self.documents:
            raise KeyError(token)
        return self.documents[token]

    async def fetch_metadata_batch(
        self, requests: Sequence[tuple[str, DocType]]
    ) -> dict[str, DocumentMetadata | Exception]:
        self.batch_calls.append([token for token, _ in requests])
        if self.batch_error is not None:
            raise self.batch_error
        return await super().fetch_metadata_batch(requests)

    async def subscribe(self, token: str, doc_type: DocType) -> str:
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.subscribed.append(token)
        return f"sub-{token}"

    async def unsubscribe(self, subscription_id: str, token: str, doc_type: DocType) -> None:
        if self.unsubscribe_error is not None:
            raise self.unsubscribe_error
        self.unsubscribed.append(subscription_id)


class RecordingNotifier(INotifier):
    """Notifier that records messages and can fail per channel."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []
        self.failing_channels: set[str] = set()
        self.rejecting_channels: set[str] = set()

    async def notify(self, channel_id: str, message: str) -> bool:
        if channel_id in self.failing_channels:
            raise ConnectionError(f"chat API unreachable for {channel_id}")
        if channel_id in self.rejecting_channels:
            return False
        self.messages.append((channel_id, message))
        return True

    def for_channel(self, channel_id: str) -> list[str]:
        return [message for channel, message in self.messages if channel == channel_id]


@pytest.fixture
def clock():
    """Clock starting at T0."""
    return MutableClock()


@pytest.fixture
def config():
    """Tracker configuration with test-friendly timeouts."""
    return TrackerConfig(
        poll_interval_seconds=30.0,
        debounce_window_seconds=60.0,
        fetch_timeout_seconds=0.5,
        max_consecutive_failures=3,
    )


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def change_store():
    return InMemoryChangeEventStore()


@pytest.fixture
def coordinator(config, provider, notifier, change_store, clock):
    """Coordinator wired to the fakes."""
    return TrackingCoordinator(config, provider, notifier, change_store=change_store, clock=clock)
