"""
Event Models for the Ledger Store

Every operation boundary in the storage layer produces an event:
record writes, cross-shard moves, lazy migrations, identifier
collisions and data-integrity anomalies. This provides:
1. Traceability of every write
2. Operator visibility into self-healing inconsistencies
3. A single emission point that external collectors can subscribe to

DESIGN DECISION: Events are plain data. Emitting them never changes
the outcome of the operation that produced them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEventType(str, Enum):
    """Types of events the storage layer emits."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_MOVED = "transaction_moved"
    TRANSACTION_DELETED = "transaction_deleted"

    # Key layout
    PERIOD_MIGRATED = "period_migrated"
    IDENTIFIER_COLLISION = "identifier_collision"
    INTEGRITY_ANOMALY = "integrity_anomaly"
    MALFORMED_RECORD_SKIPPED = "malformed_record_skipped"

    # Single-document resources
    CATEGORY_CREATED = "category_created"
    CATEGORY_DELETED = "category_deleted"
    CATEGORIES_SEEDED = "categories_seeded"
    BUDGETS_UPDATED = "budgets_updated"

    # System events
    BACKEND_ERROR = "backend_error"


class EventSeverity(str, Enum):
    """Severity level for events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """A single storage-layer event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: LedgerEventType
    severity: EventSeverity = EventSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'period', 'category')"
    )
    entity_id: Optional[str] = None

    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID shared by all events of one request"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class LedgerEventBuilder:
    """
    Helper class to build events with common patterns.

    Usage:
        event = LedgerEventBuilder.transaction_created(txn_id, key, "12.50")
        event = LedgerEventBuilder.period_migrated("2023-11", [1], 3, 2)
    """

    @staticmethod
    def transaction_created(
        transaction_id: str,
        shard_key: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction created in {shard_key}",
            details={
                "shard_key": shard_key,
                "amount": amount,
            },
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        shard_key: str,
        fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction updated in place in {shard_key}",
            details={
                "shard_key": shard_key,
                "fields": fields,
            },
        )

    @staticmethod
    def transaction_moved(
        transaction_id: str,
        source_key: str,
        destination_key: str,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_MOVED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction moved from {source_key} to {destination_key}",
            details={
                "source_key": source_key,
                "destination_key": destination_key,
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        shard_key: str,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction deleted from {shard_key}",
            details={"shard_key": shard_key},
        )

    @staticmethod
    def period_migrated(
        period: str,
        generations: list[int],
        record_count: int,
        keys_written: int,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        sources = ", ".join(str(number) for number in generations)
        return LedgerEvent(
            event_type=LedgerEventType.PERIOD_MIGRATED,
            entity_type="period",
            entity_id=period,
            correlation_id=correlation_id,
            description=(
                f"Migrated {record_count} records of {period} "
                f"from generation {sources}"
            ),
            details={
                "source_generations": generations,
                "record_count": record_count,
                "keys_written": keys_written,
            },
        )

    @staticmethod
    def identifier_collision(
        candidate_id: str,
        attempt: int,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.IDENTIFIER_COLLISION,
            severity=EventSeverity.WARNING,
            entity_type="transaction",
            entity_id=candidate_id,
            correlation_id=correlation_id,
            description=f"Generated identifier already taken (attempt {attempt})",
            details={"attempt": attempt},
        )

    @staticmethod
    def integrity_anomaly(
        transaction_id: str,
        period: str,
        occurrences: int,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.INTEGRITY_ANOMALY,
            severity=EventSeverity.WARNING,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction id seen {occurrences} times while listing {period}",
            details={
                "period": period,
                "occurrences": occurrences,
                "resolution": "kept_first",
            },
        )

    @staticmethod
    def malformed_record_skipped(
        shard_key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.MALFORMED_RECORD_SKIPPED,
            severity=EventSeverity.WARNING,
            entity_type="shard",
            entity_id=shard_key,
            correlation_id=correlation_id,
            description=f"Unreadable record skipped in {shard_key}",
            error_message=error_message,
        )

    @staticmethod
    def category_created(
        category_id: str,
        name: str,
        kind: str,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name} ({kind})",
            details={"name": name, "kind": kind},
        )

    @staticmethod
    def category_deleted(
        category_id: str,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description="Category deleted",
        )

    @staticmethod
    def categories_seeded(
        count: int,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.CATEGORIES_SEEDED,
            entity_type="category",
            correlation_id=correlation_id,
            description=f"Seeded {count} default categories",
            details={"count": count},
        )

    @staticmethod
    def budgets_updated(
        keys: list[str],
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BUDGETS_UPDATED,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budgets replaced ({len(keys)} limits)",
            details={"keys": keys},
        )

    @staticmethod
    def backend_error(
        operation: str,
        key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.BACKEND_ERROR,
            severity=EventSeverity.ERROR,
            entity_type="key",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Backend {operation} failed",
            error_message=error_message,
            details={"operation": operation},
        )
