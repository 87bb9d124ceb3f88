"""
Shard Access

A shard is the JSON array of transactions stored under one key. This
module turns backend values into Transaction lists and back, and runs
multi-key reads with bounded concurrency.

DESIGN DECISION: Entries that cannot be parsed are kept verbatim and
written back untouched on the next read-modify-write of their shard.
Skipping them on read is fine; dropping them on write would lose data.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from ledger.audit import AuditLogger
from ledger.models.ledger import Transaction
from ledger.services.storage.interface import (
    BackendUnavailableError,
    CorruptShardError,
    KeyValueBackend,
)


T = TypeVar("T")
R = TypeVar("R")


@dataclass
class Shard:
    """Decoded contents of one transaction key."""

    key: str
    records: list[Transaction] = field(default_factory=list)
    unreadable: list[Any] = field(default_factory=list)

    def index_of(self, record_id: str) -> Optional[int]:
        for index, record in enumerate(self.records):
            if record.id == record_id:
                return index
        return None

    def remove(self, record_id: str) -> int:
        """Drop every record with this id; returns how many were dropped."""
        before = len(self.records)
        self.records = [record for record in self.records if record.id != record_id]
        return before - len(self.records)

    def encode(self) -> str:
        payload = [record.to_storage_dict() for record in self.records]
        payload.extend(self.unreadable)
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


class ShardAccessor:
    """
    Reads and writes shards through a raw key-value backend.

    Every backend failure is reported as BackendUnavailableError and
    emitted as a backend_error event. Nothing is retried here.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        audit_logger: Optional[AuditLogger] = None,
        batch_size: int = 50,
    ):
        self._backend = backend
        self._audit = audit_logger or AuditLogger()
        self._batch_size = max(1, batch_size)

    # -------------------------------------------------------------------------
    # Raw values
    # -------------------------------------------------------------------------

    async def _get(self, key: str) -> Optional[str]:
        try:
            return await self._backend.get(key)
        except BackendUnavailableError as e:
            await self._audit.log_backend_error("get", key, str(e))
            raise
        except Exception as e:
            await self._audit.log_backend_error("get", key, str(e))
            raise BackendUnavailableError(f"Failed to read {key}: {e}") from e

    async def _put(self, key: str, value: str) -> None:
        try:
            await self._backend.put(key, value)
        except BackendUnavailableError as e:
            await self._audit.log_backend_error("put", key, str(e))
            raise
        except Exception as e:
            await self._audit.log_backend_error("put", key, str(e))
            raise BackendUnavailableError(f"Failed to write {key}: {e}") from e

    async def load_json(self, key: str) -> Any:
        """Decoded JSON document under a key, or None if absent."""
        raw = await self._get(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CorruptShardError(f"{key} does not hold valid JSON: {e}") from e

    async def dump_json(self, key: str, value: Any) -> None:
        await self._put(key, json.dumps(value, ensure_ascii=False, separators=(",", ":")))

    # -------------------------------------------------------------------------
    # Shards
    # -------------------------------------------------------------------------

    async def read(self, key: str) -> Shard:
        """Read one shard. An absent key is an empty shard."""
        payload = await self.load_json(key)
        shard = Shard(key=key)
        if payload is None:
            return shard
        if not isinstance(payload, list):
            raise CorruptShardError(f"{key} does not hold a JSON array")

        for entry in payload:
            try:
                shard.records.append(Transaction.model_validate(entry))
            except PydanticValidationError as e:
                shard.unreadable.append(entry)
                await self._audit.log_malformed_record(key, str(e))
        return shard

    async def write(self, shard: Shard) -> None:
        await self._put(shard.key, shard.encode())

    async def run_bounded(
        self,
        items: list[T],
        operation: Callable[[T], Awaitable[R]],
    ) -> list[R]:
        """
        Apply `operation` to every item, at most batch_size at a time.

        Results keep the order of `items`.
        """
        results: list[R] = []
        for start in range(0, len(items), self._batch_size):
            batch = items[start:start + self._batch_size]
            results.extend(await asyncio.gather(*(operation(item) for item in batch)))
        return results

    async def read_many(self, keys: list[str]) -> list[Shard]:
        """Fan-out read; shards come back in key order."""
        return await self.run_bounded(keys, self.read)

    async def find_record(
        self,
        keys: list[str],
        record_id: str,
    ) -> tuple[Optional[tuple[Shard, int]], bool]:
        """
        Search shards batch by batch and stop at the first batch with a hit.

        Returns:
            ((shard, index) or None, whether any searched shard held records)
        """
        saw_records = False
        for start in range(0, len(keys), self._batch_size):
            batch = keys[start:start + self._batch_size]
            shards = await asyncio.gather(*(self.read(key) for key in batch))
            for shard in shards:
                if shard.records:
                    saw_records = True
                index = shard.index_of(record_id)
                if index is not None:
                    return (shard, index), True
        return None, saw_records
