"""
Result models returned by the poller, the health reporter and the command layer.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field

from doc_change_tracker.models.document import DocType, TrackedDocument, TrackingStatus
from doc_change_tracker.models.exceptions import BaseError


class PollResult(BaseModel):
    """Summary of one poller tick."""

    started_at: datetime = Field(..., description="Tick start time")
    duration_seconds: float = Field(default=0.0, ge=0.0, description="Wall time spent in the tick")
    documents_polled: int = Field(default=0, ge=0, description="Tokens in the tick snapshot")
    batches: int = Field(default=0, ge=0, description="Provider batch calls issued")
    succeeded: int = Field(default=0, ge=0, description="Tokens fetched successfully")
    failed: int = Field(default=0, ge=0, description="Tokens whose fetch failed or timed out")
    changes_detected: int = Field(default=0, ge=0, description="Accepted observations that were real changes")
    notifications_sent: int = Field(default=0, ge=0, description="Changes that passed debounce and were dispatched")
    suppressed: int = Field(default=0, ge=0, description="Changes coalesced by the debounce window")
    failed_tokens: list[str] = Field(default_factory=list, description="Tokens whose fetch failed")

    @computed_field
    @property
    def success_rate(self) -> float:
        """Fraction of polled tokens fetched successfully (1.0 for an empty tick)."""
        if self.documents_polled == 0:
            return 1.0
        return self.succeeded / self.documents_polled


class HealthStatus(str, Enum):
    """Overall tracking health."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthSnapshot(BaseModel):
    """Process-wide tracking freshness and error metrics."""

    status: HealthStatus = Field(..., description="Overall health")
    reasons: list[str] = Field(default_factory=list, description="Why health is not healthy")
    tracked_count: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0, description="Documents in error status")
    avg_time_since_last_poll: float | None = Field(None, description="Seconds, averaged over tracked documents")
    oldest_unpolled_duration: float | None = Field(None, description="Seconds since the stalest document was polled")
    notifications_sent_last_window: int = Field(default=0, ge=0)
    window_seconds: float = Field(..., gt=0, description="Length of the notification window")
    push_subscribed_count: int = Field(default=0, ge=0, description="Documents with an active push subscription")
    ticks: int = Field(default=0, ge=0)
    last_tick_at: datetime | None = None
    last_tick_duration_seconds: float | None = None
    poll_failures: int = Field(default=0, ge=0)
    webhook_events_received: int = Field(default=0, ge=0)
    webhook_events_dropped: int = Field(default=0, ge=0)
    changes_detected: int = Field(default=0, ge=0)
    notifications_suppressed: int = Field(default=0, ge=0)
    notifications_failed: int = Field(default=0, ge=0)
    persistence_failures: int = Field(default=0, ge=0)
    generated_at: datetime = Field(..., description="Snapshot time")

    @computed_field
    @property
    def error_ratio(self) -> float:
        """Fraction of tracked documents in error status."""
        if self.tracked_count == 0:
            return 0.0
        return self.error_count / self.tracked_count


class AckStatus(str, Enum):
    """Outcome of a watch/unwatch command."""

    WATCHING = "watching"
    ALREADY_WATCHED = "already_watched"
    UNWATCHED = "unwatched"
    NOT_TRACKED = "not_tracked"


class CommandAck(BaseModel):
    """Acknowledgement returned to the command layer for watch/unwatch."""

    ok: bool = Field(..., description="Whether the command took effect")
    status: AckStatus = Field(..., description="Command outcome")
    token: str = Field(..., description="Document token the command targeted")
    doc_type: DocType | None = Field(None, description="Canonical document type")
    message: str = Field(default="", description="User-facing message")
    push_enabled: bool = Field(default=False, description="Whether push-based tracking is active")
    warning: str | None = Field(None, description="Non-fatal problem the user should know about")
    error_code: str | None = Field(None, description="Error code when ok is False")
    document_removed: bool = Field(default=False, description="Whether the last watcher left and tracking stopped")

    @classmethod
    def from_error(cls, error: BaseError, token: str, status: AckStatus) -> "CommandAck":
        """Build a failed acknowledgement from a user-facing error."""
        return cls(ok=False, status=status, token=token, message=error.message, error_code=error.error_code)


class TrackedDocumentSummary(BaseModel):
    """What a channel sees when it lists its watched documents."""

    token: str
    doc_type: DocType
    title: str | None = None
    status: TrackingStatus
    watcher_count: int = Field(..., ge=0)
    push_enabled: bool = False
    last_editor_id: str | None = None
    last_edited_at: datetime | None = None
    last_notified_at: datetime | None = None
    registered_at: datetime

    @classmethod
    def from_document(cls, document: TrackedDocument) -> "TrackedDocumentSummary":
        """Summarize a tracked document."""
        state = document.last_known_state
        return cls(
            token=document.token,
            doc_type=document.doc_type,
            title=document.title,
            status=document.status,
            watcher_count=len(document.watchers),
            push_enabled=document.push_enabled,
            last_editor_id=state.editor_id if state else None,
            last_edited_at=state.edited_at if state else None,
            last_notified_at=document.last_notified_at,
            registered_at=document.registered_at,
        )
