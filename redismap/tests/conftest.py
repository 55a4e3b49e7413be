"""
Shared fixtures.

Every test gets its own in-process Redis (fakeredis.FakeServer). Several
clients bound to one server behave like separate processes sharing a
Redis deployment, WATCH included.
"""

from __future__ import annotations

from typing import AsyncIterator, Awaitable, Callable, List

import fakeredis
import pytest

from redismap.core.config import RedisMapConfig
from redismap.map import RedisMap
from redismap.storage.config import RedisConfig

# Register shared Hypothesis profiles
from redismap.tests import hypothesis_profiles  # noqa: F401


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
async def client(server: fakeredis.FakeServer) -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    c = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    yield c
    await c.aclose()


@pytest.fixture
async def other_client(server: fakeredis.FakeServer) -> AsyncIterator[fakeredis.FakeAsyncRedis]:
    """A second client on the same server, standing in for another process."""
    c = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    yield c
    await c.aclose()


@pytest.fixture
def sync_client(server: fakeredis.FakeServer) -> fakeredis.FakeRedis:
    """Blocking client for interfering from inside user callbacks."""
    return fakeredis.FakeRedis(server=server, decode_responses=True)


@pytest.fixture
def config() -> RedisMapConfig:
    return RedisMapConfig(
        ttl_seconds=2,
        renewal_period_seconds=0.5,
        scan_count=10,
        redis=RedisConfig(
            pool_timeout_seconds=0.1, connect_timeout_seconds=0.1, socket_timeout_seconds=0.1
        ),
    )


@pytest.fixture
async def open_map(
    client: fakeredis.FakeAsyncRedis,
    config: RedisMapConfig,
) -> AsyncIterator[Callable[..., Awaitable[RedisMap]]]:
    """
    Factory for handles whose renewal tasks are stopped at teardown.

    open_map() creates a fresh map; open_map(key=..., client=...) attaches.
    """
    opened: List[RedisMap] = []

    async def _open(key=None, client=client, config=config) -> RedisMap:
        if key is None:
            m = await RedisMap.create(client, config)
        else:
            m = await RedisMap.attach_by_key(key, client, config)
        opened.append(m)
        return m

    yield _open

    for m in opened:
        m.lifecycle.stop()
