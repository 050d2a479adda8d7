"""
Data models for tracked documents and their observed state.

These models represent the per-document registry entries kept by the
tracking store and the metadata snapshots returned by the document provider.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class DocType(str, Enum):
    """Canonical document types understood by the provider."""

    DOCX = "docx"
    DOC = "doc"
    SHEET = "sheet"
    BITABLE = "bitable"
    WIKI = "wiki"
    MINDNOTE = "mindnote"
    SLIDES = "slides"
    FILE = "file"


class TrackingStatus(str, Enum):
    """Tracking status of a registered document."""

    ACTIVE = "active"
    ERROR = "error"
    DEREGISTERING = "deregistering"


def _ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so comparisons never mix naive and aware values."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Watcher(BaseModel):
    """A (chat channel, requester) pair that receives notifications for a document."""

    channel_id: str = Field(..., min_length=1, description="Chat channel to notify")
    requested_by: str = Field(default="unknown", description="User who issued the watch command")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"{self.channel_id}({self.requested_by})"


class DocumentState(BaseModel):
    """
    Last observed edit metadata of a document.

    This is the shape both ingestion paths reduce to: a poll fetch and a
    webhook push each produce one DocumentState per observation.
    """

    edited_at: datetime = Field(..., description="When the document was last edited")
    editor_id: str = Field(..., description="User id of the last editor")
    revision: str | None = Field(None, description="Provider revision marker, if available")
    title: str | None = Field(None, description="Document title at observation time")

    model_config = ConfigDict(frozen=True)

    @field_validator('edited_at')
    @classmethod
    def validate_edited_at(cls, v):
        """Normalize naive timestamps to UTC."""
        return _ensure_aware(v)


class DocumentMetadata(BaseModel):
    """Metadata snapshot returned by the document provider for one token."""

    token: str = Field(..., min_length=1, description="Provider document token")
    edited_at: datetime = Field(..., description="Latest modification time")
    editor_id: str = Field(default="unknown", description="Latest modifier user id")
    doc_type: DocType = Field(default=DocType.DOCX, description="Document type reported by the provider")
    title: str | None = Field(None, description="Document title, None when the provider omits it")
    owner_id: str | None = Field(None, description="Owner user id")
    revision: str | None = Field(None, description="Revision marker, if the provider exposes one")

    @field_validator('edited_at')
    @classmethod
    def validate_edited_at(cls, v):
        """Normalize naive timestamps to UTC."""
        return _ensure_aware(v)

    def to_state(self) -> DocumentState:
        """Reduce the metadata to the observation state shape."""
        return DocumentState(
            edited_at=self.edited_at,
            editor_id=self.editor_id,
            revision=self.revision,
            title=self.title,
        )


class TrackedDocument(BaseModel):
    """
    A document registered for change tracking.

    One entry exists per token. Multiple chat channels can watch the same
    document; notifications fan out to every watcher's channel.
    """

    token: str = Field(..., min_length=1, description="Provider document token (unique key)")
    doc_type: DocType = Field(..., description="Canonical document type")
    watchers: set[Watcher] = Field(default_factory=set, description="Channels watching this document")
    title: str | None = Field(None, description="Last known document title")
    last_known_state: DocumentState | None = Field(None, description="Last accepted observation")
    last_notified_at: datetime | None = Field(None, description="When the last notification was dispatched")
    baseline_at: datetime | None = Field(None, description="When the first observation seeded the state")
    registered_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the first watcher registered",
    )
    last_polled_at: datetime | None = Field(None, description="Last successful poll fetch")
    last_webhook_at: datetime | None = Field(None, description="Last accepted push event")
    status: TrackingStatus = Field(default=TrackingStatus.ACTIVE, description="Tracking status")
    subscription_id: str | None = Field(None, description="Provider push subscription, None when polling only")
    consecutive_failures: int = Field(default=0, ge=0, description="Consecutive poll fetch failures")
    last_error: str | None = Field(None, description="Most recent fetch error message")
    suppressed_changes: int = Field(default=0, ge=0, description="Changes coalesced since the last notification")

    @computed_field
    @property
    def channel_ids(self) -> list[str]:
        """Distinct channels to notify, in stable order."""
        return sorted({watcher.channel_id for watcher in self.watchers})

    @computed_field
    @property
    def push_enabled(self) -> bool:
        """Whether a provider push subscription is active for this document."""
        return self.subscription_id is not None

    def is_watched_by(self, channel_id: str) -> bool:
        """Check if any watcher of this document belongs to the channel."""
        return any(watcher.channel_id == channel_id for watcher in self.watchers)

    def last_seen_at(self) -> datetime:
        """Most recent time the document was confirmed fresh by a poll, else its registration time."""
        return self.last_polled_at or self.registered_at

    def __str__(self) -> str:
        """String representation showing token, status and watcher count."""
        return f"TrackedDocument({self.token}, {self.status.value}, {len(self.watchers)} watchers)"

    model_config = ConfigDict(validate_assignment=True)
