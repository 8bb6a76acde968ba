"""Bloom filters whose state lives in a shared key-value store.

Any number of processes opening a filter of the same name against the same
store observe one structure. The objects here hold only the filter's
sizing; every bit and counter is read from and written to the store.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from .adapters import BitArray, CounterArray
from .config import KIND_BLOOM, KIND_COUNTING, FilterConfig
from .errors import ConsistencyError, SharedBloomError
from .hashing import encode_element, positions
from .store import FilterStore, open_store

logger = logging.getLogger(__name__)

Element = str | bytes | bytearray | memoryview


class _SharedFilter(ABC):
    """Construction, consistency guard and error annotation shared by both filters."""

    kind: str

    def __init__(self, store: object, name: str, expected_items: int, false_positive_rate: float):
        with self._operation("open", str(name)):
            self._store: FilterStore = open_store(store)
            self._config = FilterConfig.create(name, expected_items, false_positive_rate)
            self._check_consistency()
        logger.info(
            f"Opened {self.kind} filter {name!r} "
            f"(m={self._config.bit_count}, k={self._config.hash_count})"
        )

    @contextmanager
    def _operation(self, operation: str, name: str | None = None) -> Iterator[None]:
        try:
            yield
        except SharedBloomError as e:
            e.annotate(self.name if name is None else name, operation)
            raise

    def _check_consistency(self) -> None:
        record = self._config.to_record(self.kind)
        persisted = self._store.setdefault_config(self._config.config_key, record)
        mismatches = self._config.mismatches(self.kind, persisted)
        if mismatches:
            details = ", ".join(
                f"{field}: stored {stored!r}, requested {derived!r}"
                for field, (stored, derived) in sorted(mismatches.items())
            )
            logger.warning(f"Filter {self._config.name!r} exists with different sizing: {details}")
            raise ConsistencyError(f"existing filter disagrees with requested sizing ({details})")

    def _positions(self, element: Element) -> list[int]:
        return positions(encode_element(element), self._config.bit_count, self._config.hash_count)

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> FilterConfig:
        return self._config

    @abstractmethod
    def _filled(self) -> int:
        """Number of occupied positions."""

    def estimate_false_positive_rate(self) -> float:
        """Estimate the current false positive rate from the array fill.

        Returns:
            (X / m) ** k where X is the number of occupied positions
        """
        with self._operation("estimate"):
            filled = self._filled()
        return (filled / self._config.bit_count) ** self._config.hash_count

    def __contains__(self, element: Element) -> bool:
        return self.exists(element)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"bit_count={self._config.bit_count}, hash_count={self._config.hash_count})"
        )


class BloomFilter(_SharedFilter):
    """Shared plain Bloom filter.

    Args:
        store: A redis client or any FilterStore
        name: Key identifying the shared filter
        expected_items: Number of elements expected to be added
        false_positive_rate: Target false positive rate (0 < rate < 1)

    Raises:
        ConfigError: On invalid sizing or an unusable store
        ConsistencyError: If name already exists with different sizing
        StoreError: If the store cannot be reached

    Invariants:
        - No false negatives
        - Adding an element twice is the same as adding it once
    """

    kind = KIND_BLOOM

    def __init__(self, store: object, name: str, expected_items: int, false_positive_rate: float = 0.01):
        super().__init__(store, name, expected_items, false_positive_rate)
        self._bits = BitArray(self._store, name, self._config.bit_count)

    def add(self, element: Element) -> None:
        """Add element to the filter. Safe to retry."""
        with self._operation("add"):
            self._bits.add(self._positions(element))
        logger.debug(f"Added element to {self.name!r}")

    def exists(self, element: Element) -> bool:
        """Return True if element may be present; False if definitely absent."""
        with self._operation("exists"):
            return self._bits.exists(self._positions(element))

    def _filled(self) -> int:
        return self._bits.set_count()


class CountingBloomFilter(_SharedFilter):
    """Shared counting Bloom filter supporting removal.

    Args:
        store: A redis client or any FilterStore
        name: Key identifying the shared filter
        expected_items: Number of elements expected to be added
        false_positive_rate: Target false positive rate (0 < rate < 1)

    Adds and removes are not idempotent: a retried add is counted twice.
    """

    kind = KIND_COUNTING

    def __init__(self, store: object, name: str, expected_items: int, false_positive_rate: float = 0.01):
        super().__init__(store, name, expected_items, false_positive_rate)
        self._counters = CounterArray(self._store, name, self._config.bit_count)

    def add(self, element: Element) -> None:
        """Add one occurrence of element."""
        with self._operation("add"):
            self._counters.add(self._positions(element))
        logger.debug(f"Added element to {self.name!r}")

    def remove(self, element: Element) -> None:
        """Remove one occurrence of element.

        Raises:
            UnderflowError: If element cannot have been added; nothing changes
        """
        with self._operation("remove"):
            self._counters.remove(self._positions(element))
        logger.debug(f"Removed element from {self.name!r}")

    def exists(self, element: Element) -> bool:
        """Return True if element may be present; False if definitely absent."""
        with self._operation("exists"):
            return self._counters.exists(self._positions(element))

    def count(self) -> int:
        """Net number of adds not offset by removes."""
        with self._operation("count"):
            return self._counters.count()

    def _filled(self) -> int:
        return self._counters.nonzero_count()
