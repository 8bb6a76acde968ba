"""sharedbloom - Bloom filters backed by a shared Redis or Valkey store."""

__version__ = "0.1.0"

from .bloomfilter import BloomFilter, CountingBloomFilter
from .config import FilterConfig, plan
from .errors import (
    SharedBloomError,
    ConfigError,
    EncodingError,
    StoreError,
    UnderflowError,
    ConsistencyError,
)
from .memory_store import MemoryStore
from .redis_store import RedisStore
from .store import FilterStore, open_store

__all__ = [
    "BloomFilter",
    "CountingBloomFilter",
    "FilterConfig",
    "plan",
    "SharedBloomError",
    "ConfigError",
    "EncodingError",
    "StoreError",
    "UnderflowError",
    "ConsistencyError",
    "FilterStore",
    "MemoryStore",
    "RedisStore",
    "open_store",
]
