"""
Data models for observations, detected changes and change events.

An Observation is what either ingestion path produces, a ChangeResult is
what the change detector derives from it, and a ChangeEvent is what gets
handed to the persistence collaborator once a notification is dispatched.
"""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from doc_change_tracker.models.document import DocumentState


class ChangeType(str, Enum):
    """Classification of a detected document change."""

    SAME_EDITOR_EDIT = "same_editor_edit"
    DIFFERENT_EDITOR_EDIT = "different_editor_edit"
    RENAME = "rename"
    METADATA_ONLY = "metadata_only"


class DetectionSource(str, Enum):
    """Where an observation came from."""

    PUSH = "push"
    POLL = "poll"


class Observation(BaseModel):
    """A normalized snapshot of a document's edit metadata."""

    token: str = Field(..., min_length=1, description="Provider document token")
    state: DocumentState = Field(..., description="Observed edit metadata")
    source: DetectionSource = Field(..., description="Ingestion path that produced the observation")
    change_hint: ChangeType | None = Field(
        None, description="Change classification asserted by the source (e.g. a rename event)"
    )
    event_id: str | None = Field(None, description="Provider event id for pushed observations")

    model_config = ConfigDict(frozen=True)


class ChangeResult(BaseModel):
    """Outcome of comparing an observation with the previously stored state."""

    token: str = Field(..., description="Provider document token")
    change_type: ChangeType = Field(..., description="Change classification")
    previous: DocumentState = Field(..., description="State before the change")
    current: DocumentState = Field(..., description="State after the change")
    source: DetectionSource = Field(default=DetectionSource.POLL, description="Ingestion path")

    model_config = ConfigDict(frozen=True)

    @computed_field
    @property
    def editor_changed(self) -> bool:
        """Whether a different person made this change."""
        return self.previous.editor_id != self.current.editor_id

    @computed_field
    @property
    def title_changed(self) -> bool:
        """Whether the document title changed."""
        return (
            self.previous.title is not None
            and self.current.title is not None
            and self.previous.title != self.current.title
        )


class ChangeEvent(BaseModel):
    """
    A dispatched change, handed to the persistence collaborator.

    The core never stores these; it only reports them.
    """

    token: str = Field(..., description="Provider document token")
    change_type: ChangeType = Field(..., description="Change classification")
    editor_id: str = Field(..., description="Editor responsible for the change")
    edited_at: datetime = Field(..., description="When the change was made")
    detected_via: DetectionSource = Field(..., description="Ingestion path that detected the change")
    previous_editor_id: str | None = Field(None, description="Editor of the previous state")
    previous_edited_at: datetime | None = Field(None, description="Timestamp of the previous state")
    title: str | None = Field(None, description="Document title at detection time")
    suppressed_count: int = Field(default=0, ge=0, description="Earlier edits coalesced into this event")
    detected_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the engine detected the change",
    )

    @classmethod
    def from_result(
        cls,
        result: ChangeResult,
        detected_at: datetime,
        title: str | None = None,
        suppressed_count: int = 0,
    ) -> "ChangeEvent":
        """Build the event for a change that is about to be notified."""
        return cls(
            token=result.token,
            change_type=result.change_type,
            editor_id=result.current.editor_id,
            edited_at=result.current.edited_at,
            detected_via=result.source,
            previous_editor_id=result.previous.editor_id,
            previous_edited_at=result.previous.edited_at,
            title=title or result.current.title,
            suppressed_count=suppressed_count,
            detected_at=detected_at,
        )
