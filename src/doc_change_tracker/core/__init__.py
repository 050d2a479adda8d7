"""Collaborator interfaces for the tracking engine."""

from doc_change_tracker.core.interfaces import IChangeEventStore, IDocumentProvider, INotifier

__all__ = [
    "IDocumentProvider",
    "IChangeEventStore",
    "INotifier",
]
