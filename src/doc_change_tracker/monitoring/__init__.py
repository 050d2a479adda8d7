"""
Monitoring package for document change detection.

This package provides the shared change pipeline, the two ingestion paths
feeding it (periodic polling and provider push events), health reporting
and the coordinator that wires them together.
"""

from .health import HealthReporter
from .pipeline import ChangePipeline, PipelineOutcome
from .poller import DocumentPoller
from .webhook_ingestor import WebhookIngestor, normalize_event
from .tracking_coordinator import TrackingCoordinator

__all__ = [
    "ChangePipeline",
    "DocumentPoller",
    "HealthReporter",
    "PipelineOutcome",
    "TrackingCoordinator",
    "WebhookIngestor",
    "normalize_event",
]
