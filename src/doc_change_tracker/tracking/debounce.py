"""
Time-windowed suppression of repeated notifications for the same document.

The debounce decision is a pure comparison against one timestamp per
document; no per-document timers are kept, so cancellation on unwatch is
simply the entry disappearing from the store.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from doc_change_tracker.models import ChangeResult, ChangeType
from doc_change_tracker.models.exceptions import ConfigurationError
from doc_change_tracker.tracking.store import NotificationClaim, TrackingStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebouncePolicy:
    """Which changes are coalesced, and for how long."""

    window: timedelta
    debounced_types: frozenset[ChangeType] = frozenset({ChangeType.SAME_EDITOR_EDIT})

    def __post_init__(self):
        if ChangeType.DIFFERENT_EDITOR_EDIT in self.debounced_types:
            raise ConfigurationError(
                "different_editor_edit cannot be debounced",
                config_key="debounced_change_types",
                actual_value=sorted(t.value for t in self.debounced_types),
            )
        if self.window < timedelta(0):
            raise ConfigurationError(
                "debounce window cannot be negative", config_key="debounce_window_seconds", actual_value=self.window
            )

    @classmethod
    def from_settings(cls, window_seconds: float, debounced_types: Iterable[ChangeType]) -> "DebouncePolicy":
        """Build a policy from configuration values."""
        return cls(window=timedelta(seconds=window_seconds), debounced_types=frozenset(debounced_types))

    def allows(self, change_type: ChangeType, anchor: datetime | None, now: datetime) -> bool:
        """
        Pure debounce rule.

        Args:
            change_type: Classification of the change
            anchor: Last notification time, or the baseline time if none was sent
            now: Decision time

        Returns:
            True if the change should be notified
        """
        if change_type not in self.debounced_types:
            return True
        if anchor is None:
            return True
        return now - anchor >= self.window


class Debouncer:
    """
    Applies a DebouncePolicy to the per-document notification timestamps.

    The read of the anchor and the write of the new notification time happen
    in one store critical section, so two racing same-editor changes cannot
    both pass.
    """

    def __init__(self, store: TrackingStore, policy: DebouncePolicy):
        self.store = store
        self.policy = policy

    def should_notify(self, token: str, change: ChangeResult, now: datetime) -> bool:
        """Decide whether a change is notified, recording the decision."""
        claim = self.claim(token, change, now)
        return claim is not None and claim.allowed

    def claim(self, token: str, change: ChangeResult, now: datetime) -> NotificationClaim | None:
        """Decide and return the full claim (watchers, coalesced count), or None if untracked."""
        claim = self.store.claim_notification(
            token,
            lambda anchor: self.policy.allows(change.change_type, anchor, now),
            now,
        )
        if claim is not None and not claim.allowed:
            logger.debug(
                "Debounced %s for %s (%d coalesced, window %ss)",
                change.change_type.value,
                token,
                claim.suppressed_count,
                self.policy.window.total_seconds(),
            )
        return claim
