"""Shared fixtures: every filter test runs against each store backend."""

import pytest

from sharedbloom import MemoryStore, RedisStore


@pytest.fixture
def fake_server():
    """Create an isolated in-process Redis server."""
    fakeredis = pytest.importorskip("fakeredis")
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(fake_server):
    """Create a redis client bound to the fake server."""
    import fakeredis
    return fakeredis.FakeRedis(server=fake_server)


@pytest.fixture(params=["memory", "redis"])
def store(request):
    """Create an empty store of each backend."""
    if request.param == "memory":
        return MemoryStore()
    fakeredis = pytest.importorskip("fakeredis")
    return RedisStore(fakeredis.FakeRedis(server=fakeredis.FakeServer()))
