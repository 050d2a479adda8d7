"""
Document change tracking engine.

Watches collaborative documents on behalf of chat channels, detects edits via
polling and provider push events, and notifies watchers with debounced
change summaries.
"""

from doc_change_tracker.config import TrackerConfig, get_config
from doc_change_tracker.monitoring import TrackingCoordinator
from doc_change_tracker.storage import InMemoryChangeEventStore

__version__ = "0.1.0"

__all__ = ["InMemoryChangeEventStore", "TrackerConfig", "TrackingCoordinator", "get_config"]
