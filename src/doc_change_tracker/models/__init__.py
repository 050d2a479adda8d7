"""Data models and schemas for the tracking engine."""

from doc_change_tracker.models.change import ChangeEvent, ChangeResult, ChangeType, DetectionSource, Observation
from doc_change_tracker.models.document import (
    DocType,
    DocumentMetadata,
    DocumentState,
    TrackedDocument,
    TrackingStatus,
    Watcher,
)
from doc_change_tracker.models.exceptions import (
    BaseError,
    ConfigurationError,
    InvalidTokenError,
    MonitoringError,
    NotTrackedError,
    PersistenceWriteError,
    ProviderFetchError,
    SubscriptionError,
)
from doc_change_tracker.models.results import (
    AckStatus,
    CommandAck,
    HealthSnapshot,
    HealthStatus,
    PollResult,
    TrackedDocumentSummary,
)

__all__ = [
    "DocType",
    "DocumentMetadata",
    "DocumentState",
    "TrackedDocument",
    "TrackingStatus",
    "Watcher",
    "ChangeEvent",
    "ChangeResult",
    "ChangeType",
    "DetectionSource",
    "Observation",
    "AckStatus",
    "CommandAck",
    "HealthSnapshot",
    "HealthStatus",
    "PollResult",
    "TrackedDocumentSummary",
    "BaseError",
    "ConfigurationError",
    "InvalidTokenError",
    "MonitoringError",
    "NotTrackedError",
    "PersistenceWriteError",
    "ProviderFetchError",
    "SubscriptionError",
]
