"""Event logging package."""

from ledger.audit.logger import (
    AuditLogger,
    EventSinkInterface,
    InMemoryEventSink,
    create_correlation_id,
)

__all__ = [
    "AuditLogger",
    "EventSinkInterface",
    "InMemoryEventSink",
    "create_correlation_id",
]
