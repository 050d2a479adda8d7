"""Storage backends for change history."""

from .memory_store import InMemoryChangeEventStore

__all__ = ["InMemoryChangeEventStore"]
