"""
Tracking package: the document registry and the pure change/debounce rules.

This package holds the state shared by both ingestion paths and the
functions that decide whether an observation is a notifiable change.
"""

from .change_detector import detect, format_change_summary, summarize_changes
from .debounce import DebouncePolicy, Debouncer
from .references import normalize_doc_type, parse_document_reference, validate_token
from .store import NotificationClaim, Registration, Removal, StateTransition, TrackingStore

__all__ = [
    "DebouncePolicy",
    "Debouncer",
    "NotificationClaim",
    "Registration",
    "Removal",
    "StateTransition",
    "TrackingStore",
    "detect",
    "format_change_summary",
    "normalize_doc_type",
    "parse_document_reference",
    "summarize_changes",
    "validate_token",
]
