"""
Shared fixtures.

The core is exercised against the in-memory backend with a
deterministic clock, a seeded random source and 4 buckets per day so
that fan-out reads stay small.
"""

import random
from datetime import datetime, timezone

import pytest

from ledger.audit import AuditLogger, InMemoryEventSink
from ledger.config import StorageSettings
from ledger.services.storage import (
    BudgetStore,
    CategoryStore,
    IdentifierAllocator,
    InMemoryKeyValueBackend,
    ShardedTransactionStore,
)
from factories import SteppingClock


@pytest.fixture
def storage_settings():
    return StorageSettings(bucket_count=4, fan_out_batch_size=16)


@pytest.fixture
def backend():
    return InMemoryKeyValueBackend()


@pytest.fixture
def sink():
    return InMemoryEventSink()


@pytest.fixture
def audit_logger(sink):
    return AuditLogger(sink)


@pytest.fixture
def clock():
    return SteppingClock(datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def allocator():
    return IdentifierAllocator(clock=lambda: 1710504000000, rng=random.Random(1234))


@pytest.fixture
def store(backend, storage_settings, allocator, audit_logger, clock):
    return ShardedTransactionStore(
        backend,
        settings=storage_settings,
        allocator=allocator,
        audit_logger=audit_logger,
        clock=clock,
    )


@pytest.fixture
def category_store(backend, storage_settings, audit_logger):
    return CategoryStore(
        backend,
        settings=storage_settings,
        allocator=IdentifierAllocator(clock=lambda: 1710504000000, rng=random.Random(99)),
        audit_logger=audit_logger,
    )


@pytest.fixture
def budget_store(backend, storage_settings, audit_logger):
    return BudgetStore(backend, settings=storage_settings, audit_logger=audit_logger)
