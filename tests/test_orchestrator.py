"""
End-to-end tests through LedgerService.

Components are built by create_app_components against the in-memory
backend, the same way an outer surface builds them per request.
"""

import json
from datetime import date
from decimal import Decimal

import pytest

from ledger.audit import InMemoryEventSink
from ledger.config import get_settings
from ledger.models import LedgerEventType
from ledger.orchestrator import LedgerService, create_app_components, create_backend
from ledger.services.storage import (
    InMemoryKeyValueBackend,
    NotFoundError,
    ValidationError,
)
from factories import dump, legacy_record


@pytest.fixture(autouse=True)
def small_buckets(monkeypatch):
    monkeypatch.setenv("LEDGER_STORAGE_BUCKET_COUNT", "4")
    monkeypatch.delenv("LEDGER_STORAGE_BACKEND", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def kv():
    return InMemoryKeyValueBackend()


@pytest.fixture
def sink():
    return InMemoryEventSink()


@pytest.fixture
def service(kv, sink) -> LedgerService:
    service, _ = create_app_components(backend=kv, sink=sink)
    return service


LUNCH = {
    "type": "expense",
    "amount": 12.5,
    "category": "food",
    "date": "2024-03-05",
    "note": "lunch",
}


class TestComponentFactory:
    """Tests for create_app_components and create_backend."""

    def test_memory_backend_by_default(self):
        """Test that the in-memory backend is the default."""
        assert isinstance(create_backend(), InMemoryKeyValueBackend)

    def test_settings_reach_the_store(self, service):
        """Test that LEDGER_STORAGE_* settings configure the record store."""
        keys = service.transactions.key_scheme.keys_for_day(date(2024, 3, 5))
        assert len(keys) == 4

    def test_backend_returned(self, kv):
        """Test that a passed-in backend is shared, not replaced."""
        _, backend = create_app_components(backend=kv)
        assert backend is kv


class TestTransactionFlows:
    """Tests for the transaction flows."""

    @pytest.mark.asyncio
    async def test_create_then_list(self, service, kv):
        """Test the create and list flow from wire payloads."""
        created = await service.create_transaction(LUNCH)

        listed = await service.list_transactions("2024-03")
        assert [t.id for t in listed] == [created.id]
        assert created.amount == Decimal("12.50")

        stored_keys = [key for key in kv.keys() if key.startswith("transactions_2024_03_05_")]
        assert len(stored_keys) == 1

    @pytest.mark.asyncio
    async def test_invalid_payload_writes_nothing(self, service, kv):
        """Test that rejected payloads never reach the backend."""
        with pytest.raises(ValidationError):
            await service.create_transaction({**LUNCH, "amount": -1})
        assert kv.keys() == []

    @pytest.mark.asyncio
    async def test_invalid_period(self, service):
        """Test that list rejects a malformed period."""
        with pytest.raises(ValidationError):
            await service.list_transactions("2024-3")

    @pytest.mark.asyncio
    async def test_update_with_original_date(self, service):
        """Test moving a record to another day using the originalDate hint."""
        created = await service.create_transaction(LUNCH)

        updated = await service.update_transaction(
            created.id,
            {"date": "2024-02-28", "amount": "14"},
            hint={"originalDate": "2024-03-05"},
        )

        assert updated.period == "2024-02"
        assert updated.amount == Decimal("14.00")
        assert updated.updated_at is not None
        assert await service.list_transactions("2024-03") == []
        assert [t.id for t in await service.list_transactions("2024-02")] == [created.id]

    @pytest.mark.asyncio
    async def test_delete_with_period_hint(self, service):
        """Test deleting with only a period hint."""
        created = await service.create_transaction(LUNCH)

        removed = await service.delete_transaction(created.id, hint={"period": "2024-03"})

        assert removed.id == created.id
        assert await service.list_transactions("2024-03") == []
        with pytest.raises(NotFoundError):
            await service.delete_transaction(created.id, hint={"period": "2024-03"})

    @pytest.mark.asyncio
    async def test_legacy_period_listed(self, service, kv):
        """Test that a month written by the oldest layout is readable."""
        await kv.put("transactions_2023_11", dump([legacy_record("old1", "2023-11-02")]))

        listed = await service.list_transactions("2023-11")

        assert [t.id for t in listed] == ["old1"]
        assert kv.raw("transactions_2023_11_migrated") is not None


class TestCategoryBudgetAndSummaryFlows:
    """Tests for categories, budgets and summaries."""

    @pytest.mark.asyncio
    async def test_category_flow(self, service):
        """Test creating and deleting a category from a payload."""
        created = await service.create_category({"name": "Pets", "type": "expense"})
        assert created.id in [c.id for c in await service.list_categories()]

        await service.delete_category(created.id)
        assert created.id not in [c.id for c in await service.list_categories()]

    @pytest.mark.asyncio
    async def test_budget_flow(self, service, kv):
        """Test replacing and reading budgets."""
        await service.set_budgets({"food": 250})
        assert (await service.get_budgets()).root == {"food": Decimal("250.00")}
        assert json.loads(kv.raw("budgets")) == {"food": 250.0}

    @pytest.mark.asyncio
    async def test_summary(self, service):
        """Test a period summary built from stored records."""
        await service.create_transaction(LUNCH)
        await service.create_transaction({
            "type": "income", "amount": 2500, "category": "salary", "date": "2024-03-01",
        })

        summary = await service.summarize("2024-03")

        assert summary.total_income == Decimal("2500.00")
        assert summary.total_expense == Decimal("12.50")
        assert summary.balance == Decimal("2487.50")
        assert summary.expense_by_category[0].category_name == "Food"


class TestCorrelation:
    """Tests for request correlation ids."""

    @pytest.mark.asyncio
    async def test_one_correlation_id_per_request(self, kv):
        """Test that events of one component set share an id and sets differ."""
        first_sink, second_sink = InMemoryEventSink(), InMemoryEventSink()
        first, _ = create_app_components(backend=kv, sink=first_sink)
        second, _ = create_app_components(backend=kv, sink=second_sink)

        await first.create_transaction(LUNCH)
        await first.set_budgets({"food": 1})
        await second.create_transaction(LUNCH)

        first_ids = {event.correlation_id for event in first_sink.events}
        second_ids = {event.correlation_id for event in second_sink.events}
        assert len(first_ids) == 1
        assert len(second_ids) == 1
        assert first_ids != second_ids
        assert first_sink.of_type(LedgerEventType.TRANSACTION_CREATED)
