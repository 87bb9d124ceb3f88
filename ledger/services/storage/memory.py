"""
In-Memory Key-Value Backend

A dict behind the KeyValueBackend contract. Used for tests and local
development. It counts reads and writes so callers can check how many
keys an operation touched.
"""

from collections import Counter
from typing import Optional

from ledger.services.storage.interface import KeyValueBackend


class InMemoryKeyValueBackend(KeyValueBackend):
    """Dictionary-backed key-value store."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})
        self.reads: Counter = Counter()
        self.writes: Counter = Counter()

    async def get(self, key: str) -> Optional[str]:
        self.reads[key] += 1
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self.writes[key] += 1
        self._data[key] = value

    def keys(self) -> list[str]:
        """Keys currently holding a value, sorted."""
        return sorted(self._data)

    def raw(self, key: str) -> Optional[str]:
        """Peek at a value without counting it as a read."""
        return self._data.get(key)

    def reset_counters(self) -> None:
        self.reads.clear()
        self.writes.clear()
