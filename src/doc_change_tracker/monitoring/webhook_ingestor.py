"""
Push-event ingestion.

Provider webhook payloads are reduced to the same Observation shape the
poller produces and handed to the shared change pipeline.
"""

import logging
import re
from datetime import UTC, datetime
from typing import Any

from doc_change_tracker.models import ChangeType, DetectionSource, DocumentState, Observation
from doc_change_tracker.monitoring.health import HealthReporter
from doc_change_tracker.monitoring.pipeline import ChangePipeline, PipelineOutcome
from doc_change_tracker.tracking.store import TrackingStore

logger = logging.getLogger(__name__)

# Epoch values above this are milliseconds
_MILLISECOND_THRESHOLD = 10**11

_RENAME_MARKERS = frozenset({"title", "rename", "renamed"})
_METADATA_MARKERS = frozenset({"permission", "move", "moved", "share", "shared", "member", "collaborator", "owner"})

_WORD_SEPARATORS = re.compile(r"[^a-z0-9]+")


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse an epoch (seconds or milliseconds, number or string) or ISO timestamp."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)

    try:
        number = float(value)
    except (TypeError, ValueError):
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    if number > _MILLISECOND_THRESHOLD:
        number /= 1000
    try:
        return datetime.fromtimestamp(number, tz=UTC)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Timestamp out of range: {value}") from e


def _editor_id(event: dict[str, Any]) -> str | None:
    operator = event.get("operator_id")
    if isinstance(operator, dict):
        for key in ("open_id", "user_id", "union_id"):
            if operator.get(key):
                return str(operator[key])
    elif operator:
        return str(operator)

    for key in ("user_id", "editor_id", "operator"):
        if event.get(key):
            return str(event[key])
    return None


def _change_hint(*markers: str | None) -> ChangeType | None:
    """Map provider event/change type names to a classification hint."""
    words = {word for marker in markers if marker for word in _WORD_SEPARATORS.split(str(marker).lower())}
    if words & _RENAME_MARKERS:
        return ChangeType.RENAME
    if words & _METADATA_MARKERS:
        return ChangeType.METADATA_ONLY
    return None


def normalize_event(raw: dict[str, Any]) -> Observation:
    """
    Normalize a provider push payload into an observation.

    Accepts the schema 2.0 envelope (``header`` + ``event``) and the flat
    legacy shape where the event fields sit at the top level.

    Args:
        raw: Decoded webhook body

    Returns:
        Observation with DetectionSource.PUSH

    Raises:
        ValueError: If the payload lacks a token, editor or edit time
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Webhook payload must be an object, got {type(raw).__name__}")

    header = raw.get("header") if isinstance(raw.get("header"), dict) else {}
    event = raw.get("event") if isinstance(raw.get("event"), dict) else raw

    token = event.get("file_token") or event.get("doc_token") or event.get("token")
    if not token:
        raise ValueError("Webhook event has no document token")

    editor_id = _editor_id(event)
    if not editor_id:
        raise ValueError(f"Webhook event for {token} has no editor")

    edited_at = _parse_timestamp(event.get("timestamp") or event.get("edit_time") or header.get("create_time"))
    if edited_at is None:
        raise ValueError(f"Webhook event for {token} has no timestamp")

    event_type = header.get("event_type") or raw.get("type")
    state = DocumentState(
        edited_at=edited_at,
        editor_id=editor_id,
        revision=str(event["revision"]) if event.get("revision") is not None else None,
        title=event.get("title"),
    )
    return Observation(
        token=str(token),
        state=state,
        source=DetectionSource.PUSH,
        change_hint=_change_hint(event_type, event.get("change_type")),
        event_id=header.get("event_id") or raw.get("uuid"),
    )


class WebhookIngestor:
    """
    Receives push events and feeds them into the change pipeline.

    Never raises: malformed payloads and events for untracked documents are
    logged, counted as dropped and ignored.
    """

    def __init__(self, store: TrackingStore, pipeline: ChangePipeline, reporter: HealthReporter):
        self.store = store
        self.pipeline = pipeline
        self.reporter = reporter

    async def on_event(self, raw: dict[str, Any]) -> PipelineOutcome | None:
        """
        Handle one webhook delivery.

        Returns:
            The pipeline outcome, or None if the event was malformed
        """
        try:
            observation = normalize_event(raw)
        except ValueError as e:
            self.reporter.record_webhook_event(dropped=True)
            logger.warning("Dropped malformed webhook event: %s", e)
            return None

        if observation.token not in self.store:
            self.reporter.record_webhook_event(dropped=True)
            logger.warning("Dropped webhook event %s for untracked document %s", observation.event_id, observation.token)
            return PipelineOutcome.UNKNOWN_DOCUMENT

        self.reporter.record_webhook_event()
        try:
            outcome = await self.pipeline.process(observation)
        except Exception as e:
            logger.error("Error processing webhook event for %s: %s", observation.token, e)
            return None

        logger.debug("Webhook event %s for %s: %s", observation.event_id, observation.token, outcome.value)
        return outcome
