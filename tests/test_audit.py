"""
Tests for event emission.
"""

import pytest

from ledger.audit import AuditLogger, EventSinkInterface, InMemoryEventSink, create_correlation_id
from ledger.models import EventSeverity, LedgerEventBuilder, LedgerEventType


class BrokenSink(EventSinkInterface):
    async def append_event(self, event):
        raise RuntimeError("collector down")


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_events_forwarded_to_sink(self):
        """Test that helper methods build and forward typed events."""
        sink = InMemoryEventSink()
        logger = AuditLogger(sink)

        await logger.log_transaction_moved("t1", "transactions_2024_03_05_01", "transactions_2024_03_20_01")

        assert len(sink.events) == 1
        event = sink.events[0]
        assert event.event_type == LedgerEventType.TRANSACTION_MOVED
        assert event.entity_id == "t1"
        assert event.details["destination_key"] == "transactions_2024_03_20_01"

    @pytest.mark.asyncio
    async def test_correlation_id_attached(self):
        """Test that every event of one logger shares its correlation id."""
        sink = InMemoryEventSink()
        correlation_id = create_correlation_id()
        logger = AuditLogger(sink, correlation_id)

        await logger.log_categories_seeded(9)
        await logger.log_budgets_updated(["food"])

        assert {event.correlation_id for event in sink.events} == {correlation_id}

    @pytest.mark.asyncio
    async def test_explicit_correlation_id_kept(self):
        """Test that an event built with its own correlation id keeps it."""
        sink = InMemoryEventSink()
        own = create_correlation_id()
        logger = AuditLogger(sink, create_correlation_id())

        await logger.log(LedgerEventBuilder.category_deleted("food", correlation_id=own))
        assert sink.events[0].correlation_id == own

    @pytest.mark.asyncio
    async def test_sink_failure_never_raises(self):
        """Test that a failing sink is reported, not propagated."""
        logger = AuditLogger(BrokenSink())
        accepted = await logger.log(LedgerEventBuilder.categories_seeded(3))
        assert accepted is False

    @pytest.mark.asyncio
    async def test_local_only_logging(self):
        """Test that a logger without a sink accepts events."""
        assert await AuditLogger().log(LedgerEventBuilder.categories_seeded(3)) is True


class TestEventSeverities:
    """Tests for the severity given to each event type."""

    def test_anomalies_are_warnings(self):
        """Test that self-healing inconsistencies are warnings."""
        assert LedgerEventBuilder.integrity_anomaly("t1", "2024-03", 2).severity == EventSeverity.WARNING
        assert LedgerEventBuilder.identifier_collision("t1", 1).severity == EventSeverity.WARNING
        assert LedgerEventBuilder.malformed_record_skipped("k", "bad").severity == EventSeverity.WARNING

    def test_backend_errors_are_errors(self):
        """Test that backend failures are logged as errors."""
        event = LedgerEventBuilder.backend_error("put", "transactions_2024_03_05_00", "timeout")
        assert event.severity == EventSeverity.ERROR
        assert event.error_message == "timeout"
        assert event.details == {"operation": "put"}

    def test_writes_are_info(self):
        """Test that normal writes are informational."""
        assert LedgerEventBuilder.transaction_created("t1", "k", "1.00").severity == EventSeverity.INFO
        assert LedgerEventBuilder.transaction_deleted("t1", "k").severity == EventSeverity.INFO
