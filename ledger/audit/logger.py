"""
Event Logger

DESIGN DECISION: Every operation boundary in the storage layer
(create, update, move, delete, migrate, collision, anomaly) emits an
event through this logger. This provides:
1. Complete traceability of writes
2. Operator visibility into self-healing inconsistencies
3. One hook for external collectors (metrics, audit trails)

The logger:
- Always writes to the local structured log
- Forwards to an optional sink, and never lets a sink failure break
  the operation that produced the event
- Carries a correlation ID so all events of one request can be joined
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import EventSeverity, LedgerEvent, LedgerEventBuilder


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class EventSinkInterface(ABC):
    """
    External collector for storage-layer events.

    Sinks are append-only and best-effort: a failing sink never fails
    the operation that produced the event.
    """

    @abstractmethod
    async def append_event(self, event: LedgerEvent) -> bool:
        """
        Append an event.

        Returns:
            True if the event was accepted
        """
        pass


class AuditLogger:
    """
    Central event emission point for the storage layer.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An optional sink (for persistence or metrics)
    """

    def __init__(
        self,
        sink: Optional[EventSinkInterface] = None,
        correlation_id: Optional[UUID] = None,
    ):
        """
        Initialize the logger.

        Args:
            sink: Collector that receives every event.
                  If None, only logs locally.
            correlation_id: Attached to every event this logger emits.
        """
        self._sink = sink
        self._correlation_id = correlation_id
        self._logger = structlog.get_logger("ledger")

    @property
    def correlation_id(self) -> Optional[UUID]:
        return self._correlation_id

    async def log(self, event: LedgerEvent) -> bool:
        """
        Emit an event.

        Always logs locally. Forwards to the sink if one is configured.

        Returns True if the sink accepted it (or no sink is configured).
        """
        if event.correlation_id is None and self._correlation_id is not None:
            event.correlation_id = self._correlation_id

        log_dict = event.to_log_dict()

        if event.severity == EventSeverity.ERROR:
            self._logger.error("ledger_event", **log_dict)
        elif event.severity == EventSeverity.WARNING:
            self._logger.warning("ledger_event", **log_dict)
        elif event.severity == EventSeverity.DEBUG:
            self._logger.debug("ledger_event", **log_dict)
        else:
            self._logger.info("ledger_event", **log_dict)

        if self._sink:
            try:
                return await self._sink.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "event_sink_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        transaction_id: str,
        shard_key: str,
        amount: str,
    ) -> None:
        await self.log(LedgerEventBuilder.transaction_created(
            transaction_id=transaction_id,
            shard_key=shard_key,
            amount=amount,
        ))

    async def log_transaction_updated(
        self,
        transaction_id: str,
        shard_key: str,
        fields: list[str],
    ) -> None:
        await self.log(LedgerEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            shard_key=shard_key,
            fields=fields,
        ))

    async def log_transaction_moved(
        self,
        transaction_id: str,
        source_key: str,
        destination_key: str,
    ) -> None:
        await self.log(LedgerEventBuilder.transaction_moved(
            transaction_id=transaction_id,
            source_key=source_key,
            destination_key=destination_key,
        ))

    async def log_transaction_deleted(
        self,
        transaction_id: str,
        shard_key: str,
    ) -> None:
        await self.log(LedgerEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            shard_key=shard_key,
        ))

    async def log_period_migrated(
        self,
        period: str,
        generations: list[int],
        record_count: int,
        keys_written: int,
    ) -> None:
        await self.log(LedgerEventBuilder.period_migrated(
            period=period,
            generations=generations,
            record_count=record_count,
            keys_written=keys_written,
        ))

    async def log_identifier_collision(self, candidate_id: str, attempt: int) -> None:
        await self.log(LedgerEventBuilder.identifier_collision(
            candidate_id=candidate_id,
            attempt=attempt,
        ))

    async def log_integrity_anomaly(
        self,
        transaction_id: str,
        period: str,
        occurrences: int,
    ) -> None:
        await self.log(LedgerEventBuilder.integrity_anomaly(
            transaction_id=transaction_id,
            period=period,
            occurrences=occurrences,
        ))

    async def log_malformed_record(self, shard_key: str, error_message: str) -> None:
        await self.log(LedgerEventBuilder.malformed_record_skipped(
            shard_key=shard_key,
            error_message=error_message,
        ))

    async def log_category_created(self, category_id: str, name: str, kind: str) -> None:
        await self.log(LedgerEventBuilder.category_created(
            category_id=category_id,
            name=name,
            kind=kind,
        ))

    async def log_category_deleted(self, category_id: str) -> None:
        await self.log(LedgerEventBuilder.category_deleted(category_id=category_id))

    async def log_categories_seeded(self, count: int) -> None:
        await self.log(LedgerEventBuilder.categories_seeded(count=count))

    async def log_budgets_updated(self, keys: list[str]) -> None:
        await self.log(LedgerEventBuilder.budgets_updated(keys=keys))

    async def log_backend_error(self, operation: str, key: str, error_message: str) -> None:
        await self.log(LedgerEventBuilder.backend_error(
            operation=operation,
            key=key,
            error_message=error_message,
        ))


class InMemoryEventSink(EventSinkInterface):
    """Sink that keeps events in a list. Useful for tests and debugging."""

    def __init__(self):
        self.events: list[LedgerEvent] = []

    async def append_event(self, event: LedgerEvent) -> bool:
        self.events.append(event)
        return True

    def of_type(self, event_type) -> list[LedgerEvent]:
        return [event for event in self.events if event.event_type == event_type]


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a request and hand it to the AuditLogger
    serving that request.
    """
    return uuid4()
