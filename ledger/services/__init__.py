"""Services package."""

from ledger.services.storage import (
    BackendUnavailableError,
    BudgetStore,
    CategoryStore,
    DuplicateError,
    GoogleSheetsKeyValueBackend,
    InMemoryKeyValueBackend,
    KeyValueBackend,
    NotFoundError,
    ResourceExhaustedError,
    ShardedTransactionStore,
    StorageError,
    ValidationError,
)

__all__ = [
    "BackendUnavailableError",
    "BudgetStore",
    "CategoryStore",
    "DuplicateError",
    "GoogleSheetsKeyValueBackend",
    "InMemoryKeyValueBackend",
    "KeyValueBackend",
    "NotFoundError",
    "ResourceExhaustedError",
    "ShardedTransactionStore",
    "StorageError",
    "ValidationError",
]
