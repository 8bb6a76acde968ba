"""In-process FilterStore.

Follows Redis semantics for the primitives it provides: bit strings grow
on demand with the most significant bit first in each byte, hash fields
read as 0 when absent, and a key holds either a bit string or a hash.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping, Sequence

from .errors import StoreError, UnderflowError


class MemoryStore:
    """Thread-safe dictionary-backed store.

    Every method holds a single lock for its whole duration, which makes
    each call atomic with respect to every other call on the same store.
    Filters opened with the same MemoryStore share state, exactly as
    filters opened against the same Redis server do.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._strings: dict[str, bytearray] = {}
        self._hashes: dict[str, dict[str, str]] = {}

    def _string(self, key: str, create: bool = False) -> bytearray | None:
        if key in self._hashes:
            raise StoreError(f"{key!r} holds a hash, not a bit string")
        if create:
            return self._strings.setdefault(key, bytearray())
        return self._strings.get(key)

    def _hash(self, key: str, create: bool = False) -> dict[str, str] | None:
        if key in self._strings:
            raise StoreError(f"{key!r} holds a bit string, not a hash")
        if create:
            return self._hashes.setdefault(key, {})
        return self._hashes.get(key)

    def set_bits(self, key: str, offsets: Sequence[int]) -> None:
        with self._lock:
            bits = self._string(key, create=True)
            for offset in offsets:
                byte_pos = offset >> 3
                if byte_pos >= len(bits):
                    bits.extend(bytes(byte_pos + 1 - len(bits)))
                bits[byte_pos] |= 0x80 >> (offset & 7)

    def get_bits(self, key: str, offsets: Sequence[int]) -> list[bool]:
        with self._lock:
            bits = self._string(key) or bytearray()
            result = []
            for offset in offsets:
                byte_pos = offset >> 3
                result.append(byte_pos < len(bits) and bool(bits[byte_pos] & (0x80 >> (offset & 7))))
            return result

    def count_bits(self, key: str) -> int:
        with self._lock:
            bits = self._string(key) or bytearray()
            return sum(bin(byte).count("1") for byte in bits)

    def increment(self, key: str, deltas: Mapping[str, int]) -> None:
        with self._lock:
            fields = self._hash(key, create=True)
            for field, delta in deltas.items():
                fields[field] = str(int(fields.get(field, "0")) + delta)

    def decrement(self, key: str, deltas: Mapping[str, int]) -> None:
        with self._lock:
            fields = self._hash(key) or {}
            current = {field: int(fields.get(field, "0")) for field in deltas}

            short = [f for f, value in current.items() if value < deltas[f]]
            if short:
                raise UnderflowError(
                    f"counters {', '.join(short)} of {key!r} are too low to decrement"
                )

            for field, value in current.items():
                if value == deltas[field]:
                    del fields[field]
                else:
                    fields[field] = str(value - deltas[field])
            if not fields:
                # Redis drops a hash once its last field is gone
                self._hashes.pop(key, None)

    def get_counters(self, key: str, fields: Sequence[str]) -> list[int]:
        with self._lock:
            stored = self._hash(key) or {}
            return [int(stored.get(field, "0")) for field in fields]

    def field_count(self, key: str) -> int:
        with self._lock:
            return len(self._hash(key) or {})

    def setdefault_config(self, key: str, record: Mapping[str, str]) -> dict[str, str]:
        with self._lock:
            stored = self._hash(key, create=True)
            for field, value in record.items():
                stored.setdefault(field, value)
            return dict(stored)
