"""
Change detection between a stored document state and a new observation.

Everything here is pure: no I/O, no clock, no store access. Both the poller
and the webhook ingestor reach these functions through the shared pipeline.
"""

from collections import Counter
from collections.abc import Sequence
from datetime import UTC, datetime, tzinfo
from typing import Any

from doc_change_tracker.models import ChangeEvent, ChangeResult, ChangeType, DetectionSource, DocumentState

_HINTED_TYPES = (ChangeType.RENAME, ChangeType.METADATA_ONLY)

_CHANGE_VERBS = {
    ChangeType.SAME_EDITOR_EDIT: "edited",
    ChangeType.DIFFERENT_EDITOR_EDIT: "edited",
    ChangeType.RENAME: "renamed",
    ChangeType.METADATA_ONLY: "updated",
}


def detect(
    previous: DocumentState | None,
    observed: DocumentState,
    change_hint: ChangeType | None = None,
    token: str = "",
    source: DetectionSource = DetectionSource.POLL,
) -> ChangeResult | None:
    """
    Decide whether an observation is a meaningful change.

    The first observation only seeds a baseline, and anything not strictly
    newer than the stored state is stale or a duplicate.

    Classification order:
        1. a different editor is always ``different_editor_edit``
        2. a source hint of rename/metadata-only is trusted
        3. a changed title with an unchanged revision marker is a ``rename``
        4. an unchanged revision marker otherwise is ``metadata_only``
        5. anything else is a ``same_editor_edit``

    Args:
        previous: Stored state, None if nothing was observed yet
        observed: New observation
        change_hint: Classification asserted by the source, if any
        token: Document token carried into the result
        source: Ingestion path carried into the result

    Returns:
        ChangeResult, or None when there is nothing to report
    """
    if previous is None:
        return None
    if observed.edited_at <= previous.edited_at:
        return None

    same_revision = previous.revision is not None and previous.revision == observed.revision
    title_changed = previous.title is not None and observed.title is not None and previous.title != observed.title

    if observed.editor_id != previous.editor_id:
        change_type = ChangeType.DIFFERENT_EDITOR_EDIT
    elif change_hint in _HINTED_TYPES:
        change_type = change_hint
    elif same_revision and title_changed:
        change_type = ChangeType.RENAME
    elif same_revision:
        change_type = ChangeType.METADATA_ONLY
    else:
        change_type = ChangeType.SAME_EDITOR_EDIT

    return ChangeResult(token=token, change_type=change_type, previous=previous, current=observed, source=source)


def format_timestamp(value: datetime, tz: tzinfo = UTC) -> str:
    """Render a timestamp in the given timezone with an explicit UTC offset."""
    return value.astimezone(tz).isoformat(sep=" ", timespec="seconds")


def format_change_summary(
    result: ChangeResult,
    title: str | None = None,
    tz: tzinfo = UTC,
    suppressed_count: int = 0,
) -> str:
    """
    Format a human-readable notification message for a change.

    Args:
        result: Detected change
        title: Document title, falls back to the observed title or the token
        tz: Timezone used to render the edit time
        suppressed_count: Earlier edits coalesced into this notification

    Returns:
        Multi-line message text
    """
    name = title or result.current.title or result.token
    verb = _CHANGE_VERBS[result.change_type]

    lines = [f"Document \"{name}\" was {verb} by {result.current.editor_id}"]
    if result.change_type == ChangeType.RENAME and result.previous.title:
        lines.append(f"Previous title: {result.previous.title}")
    if result.change_type == ChangeType.DIFFERENT_EDITOR_EDIT:
        lines.append(f"Previous editor: {result.previous.editor_id}")
    lines.append(f"Edited at: {format_timestamp(result.current.edited_at, tz)}")
    if suppressed_count:
        noun = "edit" if suppressed_count == 1 else "edits"
        lines.append(f"Includes {suppressed_count} earlier {noun} since the last notification")
    lines.append(f"Detected via: {result.source.value}")
    return "\n".join(lines)


def summarize_changes(events: Sequence[ChangeEvent]) -> dict[str, Any]:
    """
    Analyze a document's change history.

    Args:
        events: Notified change events, in any order

    Returns:
        Dictionary with totals, editors, per-type counts and the average
        interval between consecutive edits in seconds
    """
    if not events:
        return {"total_changes": 0, "unique_editors": [], "by_type": {}, "average_interval_seconds": 0.0}

    edited = sorted(event.edited_at for event in events)
    intervals = [(later - earlier).total_seconds() for earlier, later in zip(edited, edited[1:])]

    return {
        "total_changes": len(events),
        "unique_editors": sorted({event.editor_id for event in events}),
        "by_type": dict(Counter(event.change_type.value for event in events)),
        "average_interval_seconds": sum(intervals) / len(intervals) if intervals else 0.0,
    }
