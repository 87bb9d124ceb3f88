"""
Main Orchestrator for the Ledger Store

This module ties together all the components and defines the
end-to-end flows an outer surface (HTTP handler, CLI, job) calls:
1. Transactions (payload -> validate -> record store)
2. Categories and budgets (payload -> validate -> document store)
3. Period summaries (record store -> aggregation)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No payload reaches a store without passing validation
- Every request carries one correlation id across all its events
- Stores only ever see typed models, never raw dicts
"""

import logging
from typing import Any, Mapping, Optional

from ledger.audit import AuditLogger, EventSinkInterface, create_correlation_id
from ledger.config import Settings, get_settings
from ledger.models.ledger import Budgets, Category, PeriodSummary, Transaction
from ledger.queries import AggregationEngine
from ledger.services.storage import (
    BudgetStore,
    CategoryStore,
    GoogleSheetsClient,
    GoogleSheetsKeyValueBackend,
    IdentifierAllocator,
    InMemoryKeyValueBackend,
    KeyValueBackend,
    ShardedTransactionStore,
)
from ledger.validation import TransactionValidator


class LedgerService:
    """
    Request-level entry point.

    Every method accepts the wire-shaped payload a caller received and
    returns models. Errors are raised as StorageError subclasses.
    """

    def __init__(
        self,
        transactions: ShardedTransactionStore,
        categories: CategoryStore,
        budgets: BudgetStore,
        validator: Optional[TransactionValidator] = None,
        aggregation: Optional[AggregationEngine] = None,
    ):
        self._transactions = transactions
        self._categories = categories
        self._budgets = budgets
        self._validator = validator or TransactionValidator()
        self._aggregation = aggregation or AggregationEngine(transactions, categories)

    @property
    def transactions(self) -> ShardedTransactionStore:
        return self._transactions

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def list_transactions(self, period: Optional[str] = None) -> list[Transaction]:
        period = self._validator.validate_period(period)
        return await self._transactions.list_transactions(period)

    async def create_transaction(self, payload: Mapping[str, Any]) -> Transaction:
        fields = self._validator.validate_create(payload)
        return await self._transactions.create_transaction(fields)

    async def update_transaction(
        self,
        transaction_id: str,
        payload: Mapping[str, Any],
        hint: Optional[Mapping[str, Any]] = None,
    ) -> Transaction:
        """
        Apply a partial update.

        `hint` may carry the record's current day (`originalDate`) or
        period; without one only the most recent periods are searched.
        """
        patch = self._validator.validate_patch(payload)
        shard_hint = self._validator.validate_hint(hint)
        return await self._transactions.update_transaction(transaction_id, patch, shard_hint)

    async def delete_transaction(
        self,
        transaction_id: str,
        hint: Optional[Mapping[str, Any]] = None,
    ) -> Transaction:
        shard_hint = self._validator.validate_hint(hint)
        return await self._transactions.delete_transaction(transaction_id, shard_hint)

    # -------------------------------------------------------------------------
    # Categories and budgets
    # -------------------------------------------------------------------------

    async def list_categories(self) -> list[Category]:
        return await self._categories.list_categories()

    async def create_category(self, payload: Mapping[str, Any]) -> Category:
        fields = self._validator.validate_category(payload)
        return await self._categories.create_category(fields)

    async def delete_category(self, category_id: str) -> None:
        await self._categories.delete_category(category_id)

    async def get_budgets(self) -> Budgets:
        return await self._budgets.get_budgets()

    async def set_budgets(self, limits: Any) -> Budgets:
        return await self._budgets.set_budgets(limits)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def summarize(self, period: Optional[str] = None) -> PeriodSummary:
        period = self._validator.validate_period(period) or self._transactions.current_period()
        return await self._aggregation.summarize_period(period)


def create_backend(settings: Optional[Settings] = None) -> KeyValueBackend:
    """Build the key-value backend selected by LEDGER_STORAGE_BACKEND."""
    settings = settings or get_settings()
    if settings.storage.backend == "google_sheets":
        return GoogleSheetsKeyValueBackend(GoogleSheetsClient(settings.google_sheets))
    return InMemoryKeyValueBackend()


def create_app_components(
    settings: Optional[Settings] = None,
    backend: Optional[KeyValueBackend] = None,
    sink: Optional[EventSinkInterface] = None,
    audit_logger: Optional[AuditLogger] = None,
) -> tuple[LedgerService, KeyValueBackend]:
    """
    Factory function to create all application components.

    Call it once per request so every event of that request shares a
    correlation id. The backend can be built once and passed in.

    Args:
        settings: Settings to use; defaults to get_settings()
        backend: Key-value backend; built from settings if None
        sink: Optional collector for every emitted event
        audit_logger: Overrides the per-request logger built from `sink`

    Returns:
        (ledger_service, backend)
    """
    settings = settings or get_settings()
    storage = settings.storage
    logging.basicConfig(level=settings.app.log_level)

    backend = backend or create_backend(settings)
    audit_logger = audit_logger or AuditLogger(sink, create_correlation_id())
    allocator = IdentifierAllocator(max_regenerations=storage.max_id_regenerations)

    transactions = ShardedTransactionStore(
        backend,
        settings=storage,
        allocator=allocator,
        audit_logger=audit_logger,
    )
    categories = CategoryStore(
        backend,
        settings=storage,
        allocator=allocator,
        audit_logger=audit_logger,
    )
    budgets = BudgetStore(backend, settings=storage, audit_logger=audit_logger)

    service = LedgerService(transactions, categories, budgets)
    return service, backend
