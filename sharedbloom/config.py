"""Filter sizing and configuration.

Turns an expected item count and a target false-positive rate into the bit
array size and hash count every process opening the same filter must agree on.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass

from .errors import ConfigError
from .hashing import HASH_VERSION

# Suffix of the store hash holding a filter's persisted config record
CONFIG_SUFFIX = ":config"

# Counter field tracking net adds on counting filters
TOTAL_FIELD = "total"

KIND_BLOOM = "bloom"
KIND_COUNTING = "counting"


def plan(expected_items: int, false_positive_rate: float) -> tuple[int, int]:
    """Compute the optimal bit count and hash count.

    Args:
        expected_items: Number of items expected to be added (n > 0)
        false_positive_rate: Target false positive probability (0 < p < 1)

    Returns:
        Tuple of (bit_count, hash_count)

    Raises:
        ConfigError: If n or p is out of range
    """
    if isinstance(expected_items, bool) or not isinstance(expected_items, numbers.Integral):
        raise ConfigError(f"expected_items must be an integer, got {expected_items!r}")
    if expected_items <= 0:
        raise ConfigError(f"expected_items must be positive, got {expected_items}")
    if isinstance(false_positive_rate, bool) or not isinstance(false_positive_rate, numbers.Real):
        raise ConfigError(f"false_positive_rate must be a number, got {false_positive_rate!r}")
    # NaN fails both comparisons
    if not 0 < false_positive_rate < 1:
        raise ConfigError(f"false_positive_rate must be in (0, 1), got {false_positive_rate}")

    n = int(expected_items)
    p = float(false_positive_rate)

    # m = -n * ln(p) / (ln(2)^2)
    bit_count = math.ceil(-n * math.log(p) / (math.log(2) ** 2))
    # k = (m/n) * ln(2), rounded half up
    hash_count = max(1, math.floor((bit_count / n) * math.log(2) + 0.5))
    return bit_count, hash_count


@dataclass(frozen=True)
class FilterConfig:
    """Sizing of one named filter.

    Attributes:
        name: Store key identifying the shared structure
        expected_items: Expected number of items (n)
        false_positive_rate: Target false positive rate (p)
        bit_count: Number of positions in the array (m)
        hash_count: Number of positions per element (k)
        hash_version: Tag of the hash family used to derive positions
    """

    name: str
    expected_items: int
    false_positive_rate: float
    bit_count: int
    hash_count: int
    hash_version: str = HASH_VERSION

    @classmethod
    def create(cls, name: str, expected_items: int, false_positive_rate: float) -> FilterConfig:
        """Validate parameters and derive sizing for a named filter."""
        if not isinstance(name, str) or not name:
            raise ConfigError(f"filter name must be a non-empty string, got {name!r}")
        bit_count, hash_count = plan(expected_items, false_positive_rate)
        return cls(
            name=name,
            expected_items=int(expected_items),
            false_positive_rate=float(false_positive_rate),
            bit_count=bit_count,
            hash_count=hash_count,
        )

    @property
    def config_key(self) -> str:
        return self.name + CONFIG_SUFFIX

    def to_record(self, kind: str) -> dict[str, str]:
        """Flatten into the string mapping persisted next to the filter state."""
        return {
            "kind": kind,
            "hash_version": self.hash_version,
            "expected_items": str(self.expected_items),
            "false_positive_rate": repr(self.false_positive_rate),
            "bit_count": str(self.bit_count),
            "hash_count": str(self.hash_count),
        }

    def mismatches(self, kind: str, persisted: dict[str, str]) -> dict[str, tuple[str | None, str]]:
        """Return {field: (persisted, derived)} for every field that disagrees."""
        return {
            field: (persisted.get(field), value)
            for field, value in self.to_record(kind).items()
            if persisted.get(field) != value
        }
