"""
Storage Services Package

Provides the raw key-value backends and the record store built on top
of them. The backend contract is only get/put, so backends are
swappable; sharding and migration never depend on which one is used.
"""

from ledger.services.storage.interface import (
    BackendUnavailableError,
    CorruptShardError,
    DuplicateError,
    KeyValueBackend,
    NotFoundError,
    ResourceExhaustedError,
    StorageError,
    TransactionStorageInterface,
    ValidationError,
)
from ledger.services.storage.memory import InMemoryKeyValueBackend
from ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsKeyValueBackend,
)
from ledger.services.storage.identifiers import IdentifierAllocator
from ledger.services.storage.shards import Shard, ShardAccessor
from ledger.services.storage.migration import MigrationResolver
from ledger.services.storage.records import ShardedTransactionStore
from ledger.services.storage.documents import (
    DEFAULT_CATEGORIES,
    BudgetStore,
    CategoryStore,
)

__all__ = [
    # Interfaces
    "KeyValueBackend",
    "TransactionStorageInterface",
    # Exceptions
    "BackendUnavailableError",
    "CorruptShardError",
    "DuplicateError",
    "NotFoundError",
    "ResourceExhaustedError",
    "StorageError",
    "ValidationError",
    # Backends
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueBackend",
    "InMemoryKeyValueBackend",
    # Record store
    "IdentifierAllocator",
    "MigrationResolver",
    "Shard",
    "ShardAccessor",
    "ShardedTransactionStore",
    # Single-document collections
    "DEFAULT_CATEGORIES",
    "BudgetStore",
    "CategoryStore",
]
