"""Mapping of filter positions onto store primitives.

BitArray backs a plain Bloom filter with one bit string per filter.
CounterArray backs a counting Bloom filter with one hash per filter: a
field per non-zero position plus an aggregate counter.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence

from .config import TOTAL_FIELD
from .errors import StoreError
from .store import FilterStore

logger = logging.getLogger(__name__)


def _check_positions(positions: Sequence[int], size: int) -> None:
    if not positions:
        raise ValueError("at least one position is required")
    for pos in positions:
        if not 0 <= pos < size:
            raise ValueError(f"position {pos} outside [0, {size})")


class BitArray:
    """Shared bit array of a plain Bloom filter.

    Args:
        store: Backing store
        key: Store key of the bit string
        size: Number of addressable bits (m)

    Invariants:
        - Adding is idempotent
        - All positions of one add become visible together
    """

    def __init__(self, store: FilterStore, key: str, size: int):
        self.store = store
        self.key = key
        self.size = size

    def add(self, positions: Sequence[int]) -> None:
        """Set the bit at every position in one atomic call."""
        _check_positions(positions, self.size)
        self.store.set_bits(self.key, positions)

    def exists(self, positions: Sequence[int]) -> bool:
        """Return True if every position is set."""
        _check_positions(positions, self.size)
        return all(self.store.get_bits(self.key, positions))

    def set_count(self) -> int:
        """Number of bits currently set."""
        return self.store.count_bits(self.key)


class CounterArray:
    """Shared counters of a counting Bloom filter.

    Args:
        store: Backing store
        key: Store key of the counter hash
        size: Number of addressable counters (m)

    A position that appears twice in one position set is counted twice on
    add and decremented twice on remove, so add followed by remove always
    restores the previous counters.
    """

    def __init__(self, store: FilterStore, key: str, size: int):
        self.store = store
        self.key = key
        self.size = size

    def _deltas(self, positions: Sequence[int]) -> dict[str, int]:
        _check_positions(positions, self.size)
        deltas = {str(pos): n for pos, n in Counter(positions).items()}
        deltas[TOTAL_FIELD] = 1
        return deltas

    def add(self, positions: Sequence[int]) -> None:
        """Increment every position and the total in one atomic call."""
        self.store.increment(self.key, self._deltas(positions))

    def remove(self, positions: Sequence[int]) -> None:
        """Decrement every position and the total, or nothing at all.

        Raises:
            UnderflowError: If any counter (or the total) is already zero
        """
        self.store.decrement(self.key, self._deltas(positions))

    def exists(self, positions: Sequence[int]) -> bool:
        """Return True if every position has a non-zero counter."""
        _check_positions(positions, self.size)
        fields = [str(pos) for pos in positions]
        return all(value > 0 for value in self.store.get_counters(self.key, fields))

    def count(self) -> int:
        """Net number of adds not yet offset by removes."""
        (total,) = self.store.get_counters(self.key, [TOTAL_FIELD])
        if total < 0:
            raise StoreError(f"total counter of {self.key!r} is negative ({total})")
        return total

    def nonzero_count(self) -> int:
        """Number of positions with a non-zero counter."""
        fields = self.store.field_count(self.key)
        # total is deleted at zero, which false-positive removals can reach
        # while position counters remain
        if fields and self.count():
            fields -= 1
        return fields
