"""
Data Models Package

This package contains all Pydantic models used by the ledger store.
Everything written to or read from the key-value backend passes
through these schemas.
"""

from ledger.models.ledger import (
    DEFAULT_CATEGORY_ICON,
    Budgets,
    Category,
    CategoryTotal,
    NewCategory,
    NewTransaction,
    PeriodSummary,
    ShardHint,
    Transaction,
    TransactionKind,
    TransactionPatch,
    ValidationIssue,
    normalize_amount,
)
from ledger.models.audit import (
    EventSeverity,
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventType,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORY_ICON",
    "Budgets",
    "Category",
    "CategoryTotal",
    "NewCategory",
    "NewTransaction",
    "PeriodSummary",
    "ShardHint",
    "Transaction",
    "TransactionKind",
    "TransactionPatch",
    "ValidationIssue",
    "normalize_amount",
    # Event models
    "EventSeverity",
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventType",
]
