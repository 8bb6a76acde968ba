"""FilterStore over a Redis server.

Multi-position updates run inside MULTI/EXEC transactions. Guarded
decrements run as one Lua script, so they never abort because of other
writers on the same filter.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import redis

from .errors import StoreError, UnderflowError

logger = logging.getLogger(__name__)

# KEYS[1]: counter hash; ARGV: field, delta, field, delta, ...
# Returns the fields that would drop below zero; nothing is written then.
DECREMENT_SCRIPT = """
local key = KEYS[1]
local short = {}
for i = 1, #ARGV, 2 do
    local current = tonumber(redis.call('HGET', key, ARGV[i]) or '0')
    if current < tonumber(ARGV[i + 1]) then
        table.insert(short, ARGV[i])
    end
end
if #short > 0 then
    return short
end
for i = 1, #ARGV, 2 do
    local current = tonumber(redis.call('HGET', key, ARGV[i]) or '0')
    local delta = tonumber(ARGV[i + 1])
    if current == delta then
        redis.call('HDEL', key, ARGV[i])
    else
        redis.call('HINCRBY', key, ARGV[i], -delta)
    end
end
return {}
"""


def _text(value: bytes | str) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class RedisStore:
    """Bit and counter primitives on top of a redis-py client.

    Args:
        client: A redis.Redis client. Both decode_responses settings are
            supported. Valkey servers are reached through redis-py as well.

    Layout:
        - Bit arrays are Redis strings manipulated with SETBIT/GETBIT
        - Counters are fields of a Redis hash manipulated with HINCRBY
    """

    def __init__(self, client: redis.Redis):
        self.client = client
        self._decrement = client.register_script(DECREMENT_SCRIPT)

    def set_bits(self, key: str, offsets: Sequence[int]) -> None:
        try:
            with self.client.pipeline(transaction=True) as pipe:
                for offset in offsets:
                    pipe.setbit(key, offset, 1)
                pipe.execute()
        except redis.RedisError as e:
            raise StoreError(f"SETBIT on {key!r} failed: {e}") from e

    def get_bits(self, key: str, offsets: Sequence[int]) -> list[bool]:
        try:
            with self.client.pipeline(transaction=True) as pipe:
                for offset in offsets:
                    pipe.getbit(key, offset)
                return [bool(bit) for bit in pipe.execute()]
        except redis.RedisError as e:
            raise StoreError(f"GETBIT on {key!r} failed: {e}") from e

    def count_bits(self, key: str) -> int:
        try:
            return int(self.client.bitcount(key))
        except redis.RedisError as e:
            raise StoreError(f"BITCOUNT on {key!r} failed: {e}") from e

    def increment(self, key: str, deltas: Mapping[str, int]) -> None:
        try:
            with self.client.pipeline(transaction=True) as pipe:
                for field, delta in deltas.items():
                    pipe.hincrby(key, field, delta)
                pipe.execute()
        except redis.RedisError as e:
            raise StoreError(f"HINCRBY on {key!r} failed: {e}") from e

    def decrement(self, key: str, deltas: Mapping[str, int]) -> None:
        args = []
        for field, delta in deltas.items():
            args.extend((field, delta))
        try:
            short = self._decrement(keys=[key], args=args)
        except redis.RedisError as e:
            raise StoreError(f"decrement on {key!r} failed: {e}") from e
        if short:
            logger.debug(f"Decrement on {key!r} rejected: {len(short)} counters too low")
            raise UnderflowError(
                f"counters {', '.join(_text(f) for f in short)} of {key!r} are too low to decrement"
            )

    def get_counters(self, key: str, fields: Sequence[str]) -> list[int]:
        try:
            values = self.client.hmget(key, list(fields))
        except redis.RedisError as e:
            raise StoreError(f"HMGET on {key!r} failed: {e}") from e
        return [int(v) if v is not None else 0 for v in values]

    def field_count(self, key: str) -> int:
        try:
            return int(self.client.hlen(key))
        except redis.RedisError as e:
            raise StoreError(f"HLEN on {key!r} failed: {e}") from e

    def setdefault_config(self, key: str, record: Mapping[str, str]) -> dict[str, str]:
        try:
            with self.client.pipeline(transaction=True) as pipe:
                for field, value in record.items():
                    pipe.hsetnx(key, field, value)
                pipe.hgetall(key)
                stored = pipe.execute()[-1]
        except redis.RedisError as e:
            raise StoreError(f"reading config {key!r} failed: {e}") from e
        return {_text(f): _text(v) for f, v in stored.items()}
