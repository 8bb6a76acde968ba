"""Protocol definition for the backing key-value store.

Each method is one atomic unit against the store: callers never observe,
and never produce, a state where only part of a call has been applied.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol, runtime_checkable

import redis

from .errors import ConfigError
from .redis_store import RedisStore


@runtime_checkable
class FilterStore(Protocol):
    """Bit and integer-field primitives the filters are built on."""

    def set_bits(self, key: str, offsets: Sequence[int]) -> None:
        """Set every bit at offsets to 1."""
        ...

    def get_bits(self, key: str, offsets: Sequence[int]) -> list[bool]:
        """Read the bits at offsets; a missing key reads as all zero."""
        ...

    def count_bits(self, key: str) -> int:
        """Return the number of set bits stored at key."""
        ...

    def increment(self, key: str, deltas: Mapping[str, int]) -> None:
        """Add each delta to its field."""
        ...

    def decrement(self, key: str, deltas: Mapping[str, int]) -> None:
        """Subtract each delta from its field, deleting fields that reach zero.

        Raises UnderflowError and changes nothing if any field would go
        below zero.
        """
        ...

    def get_counters(self, key: str, fields: Sequence[str]) -> list[int]:
        """Read fields; absent fields read as 0."""
        ...

    def field_count(self, key: str) -> int:
        """Return the number of fields stored at key."""
        ...

    def setdefault_config(self, key: str, record: Mapping[str, str]) -> dict[str, str]:
        """Write the fields of record not yet present; return the stored record."""
        ...


def open_store(store: object) -> FilterStore:
    """Resolve a store argument to a FilterStore.

    Accepts any FilterStore implementation, or a redis.Redis client which
    is wrapped in a RedisStore. Valkey servers are reached with a
    redis.Redis client; clients of other libraries (valkey-py included)
    raise errors RedisStore cannot translate and must be wrapped in a
    FilterStore of their own.

    Raises:
        ConfigError: If store provides neither, or is a cluster client
    """
    if isinstance(store, FilterStore):
        return store
    if isinstance(store, redis.RedisCluster):
        raise ConfigError(
            "RedisCluster clients are not supported: filter operations need "
            "MULTI/EXEC transactions; connect a redis.Redis to the node instead"
        )
    if isinstance(store, redis.Redis):
        return RedisStore(store)
    raise ConfigError(
        f"{type(store).__name__} does not provide the bit and counter operations "
        "a shared filter needs; pass a redis.Redis client or a FilterStore"
    )
