"""Element serialization and position generation.

Positions are derived with double hashing over two MurmurHash3 values, so
identical bytes and sizing always map to the identical positions in every
process. Arithmetic wraps at 64 bits.
"""

from __future__ import annotations

import mmh3

from .errors import EncodingError

# Persisted alongside each filter; bump when the family or derivation changes
HASH_VERSION = "murmur3_x64_128/double-hashing/v1"

MASK64 = (1 << 64) - 1

SEED_PRIMARY = 0
SEED_SECONDARY = 1


def encode_element(element: str | bytes | bytearray | memoryview) -> bytes:
    """Serialize an element to the bytes that get hashed.

    Strings are UTF-8 encoded, bytes-like objects are taken as is.

    Raises:
        EncodingError: If the element has an unsupported type, cannot be
            encoded, or serializes to nothing
    """
    if isinstance(element, str):
        try:
            data = element.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodingError(f"element is not valid UTF-8: {e}") from e
    elif isinstance(element, (bytes, bytearray, memoryview)):
        data = bytes(element)
    else:
        raise EncodingError(f"unsupported element type {type(element).__name__}; use str or bytes")

    if not data:
        raise EncodingError("element must not be empty")
    return data


def digest(data: bytes) -> tuple[int, int]:
    """Return two independent unsigned 64-bit hashes of data."""
    h1 = mmh3.hash64(data, seed=SEED_PRIMARY, signed=False)[0]
    h2 = mmh3.hash64(data, seed=SEED_SECONDARY, signed=False)[0]
    return h1, h2


def positions(data: bytes, bit_count: int, hash_count: int) -> list[int]:
    """Derive hash_count positions in [0, bit_count) for data.

    Args:
        data: Serialized element
        bit_count: Size of the array (m)
        hash_count: Number of positions (k)

    Returns:
        List of k positions; may contain repeats
    """
    h1, h2 = digest(data)
    # h2 = 0 mod m would collapse every position onto h1
    if h2 % bit_count == 0:
        h2 = (h2 + 1) & MASK64
    return [((h1 + i * h2) & MASK64) % bit_count for i in range(hash_count)]
