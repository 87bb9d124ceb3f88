"""
Identifier Allocation

Record identifiers are built from a millisecond timestamp followed by
two independent random components, all in base 36. Two writers in the
same millisecond collide only if both random draws match.

Collisions are checked against the shard the record is about to be
written to. Because the shard key depends on the identifier, each
regenerated candidate is checked against its own shard.
"""

import random
import time
from typing import Awaitable, Callable, Collection, Optional

from ledger.services.storage.interface import ResourceExhaustedError


BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
RANDOM_COMPONENT_WIDTH = 5


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("Only non-negative integers can be encoded")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class IdentifierAllocator:
    """
    Generates collision-resistant record identifiers.

    Args:
        clock: Returns the current time in epoch milliseconds
        rng: Source of the random components
        max_regenerations: Fresh candidates tried after the first one
                           collides, before giving up
    """

    def __init__(
        self,
        clock: Optional[Callable[[], int]] = None,
        rng: Optional[random.Random] = None,
        max_regenerations: int = 5,
    ):
        self._clock = clock or _epoch_millis
        self._rng = rng or random.SystemRandom()
        self._max_regenerations = max_regenerations

    def _random_component(self) -> str:
        value = self._rng.randrange(36 ** RANDOM_COMPONENT_WIDTH)
        return to_base36(value).rjust(RANDOM_COMPONENT_WIDTH, "0")

    def allocate(self) -> str:
        """A fresh candidate identifier. Uniqueness is not checked."""
        return (
            to_base36(self._clock())
            + self._random_component()
            + self._random_component()
        )

    def resolve_collision(self, candidate: str, taken: Collection[str]) -> str:
        """
        Return `candidate`, or a regenerated identifier if it is taken.

        Raises:
            ResourceExhaustedError: If every regeneration collided too
        """
        attempt = 0
        while candidate in taken:
            attempt += 1
            if attempt > self._max_regenerations:
                raise ResourceExhaustedError(
                    f"No free identifier after {self._max_regenerations} regenerations"
                )
            candidate = self.allocate()
        return candidate

    async def allocate_unique(
        self,
        is_taken: Callable[[str], Awaitable[bool]],
        on_collision: Optional[Callable[[str, int], Awaitable[None]]] = None,
    ) -> str:
        """
        Allocate an identifier that `is_taken` reports as free.

        `is_taken` is awaited once per candidate, typically reading the
        candidate's target shard. `on_collision` is told about every
        rejected candidate.

        Raises:
            ResourceExhaustedError: If every regeneration collided too
        """
        for attempt in range(self._max_regenerations + 1):
            candidate = self.allocate()
            if not await is_taken(candidate):
                return candidate
            if on_collision is not None:
                await on_collision(candidate, attempt + 1)

        raise ResourceExhaustedError(
            f"No free identifier after {self._max_regenerations} regenerations"
        )
