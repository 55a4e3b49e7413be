"""
Integration Tests: LifecycleManager

Timing-based: handles use a 2 s TTL renewed every 0.5 s unless noted.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from redis.exceptions import ConnectionError as RedisConnectionError

from redismap.core.types import Handle
from redismap.session.lease import LifecycleManager
from redismap.storage.codec import EMPTY_MARKER
from redismap.storage.field_store import FieldStore

KEY = "redis-map:11"


def _handle(ttl=2, period=0.5):
    return Handle(identifier=KEY, ttl_seconds=ttl, renewal_period_seconds=period)


def _scripted_client(*outcomes):
    """Client whose renewal transactions return or raise `outcomes` in order."""
    pipe = MagicMock()
    pipe.__aenter__.return_value = pipe
    pipe.__aexit__.return_value = False
    pipe.execute = AsyncMock(side_effect=list(outcomes))
    client = MagicMock()
    client.pipeline.return_value = pipe
    return client


class _SlowPipeline:
    """Transaction whose EXEC stays in flight briefly and absorbs a cancellation."""

    def __init__(self, inner, owner):
        self._inner = inner
        self._owner = owner

    def __getattr__(self, name):
        return getattr(self._inner, name)

    async def __aenter__(self):
        await self._inner.__aenter__()
        return self

    async def __aexit__(self, *exc_info):
        return await self._inner.__aexit__(*exc_info)

    async def execute(self):
        self._owner.executions += 1
        try:
            await asyncio.sleep(0.05)
        except asyncio.CancelledError:
            pass
        return await self._inner.execute()


class _CancelSwallowingClient:
    """Client stack that finishes an in-flight call even when cancelled."""

    def __init__(self, inner):
        self._inner = inner
        self.executions = 0

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def pipeline(self, *args, **kwargs):
        return _SlowPipeline(self._inner.pipeline(*args, **kwargs), self)


class TestRenewal:
    """Renewal keeps the hash alive; stopping lets it expire."""

    async def test_renews_past_ttl(self, client):
        store = FieldStore(client, KEY, ttl_seconds=2)
        await store.ensure_marker()
        manager = LifecycleManager(client, _handle())
        manager.start()
        try:
            await asyncio.sleep(3.0)
            assert await store.exists()
            assert manager.renewals >= 4
            assert manager.failures == 0
        finally:
            manager.stop()

    async def test_stopped_hash_expires(self, client):
        store = FieldStore(client, KEY, ttl_seconds=1)
        await store.ensure_marker()
        await store.put("a", "1")
        manager = LifecycleManager(client, _handle(ttl=1))
        manager.start()
        await asyncio.sleep(0.1)
        manager.stop()

        await asyncio.sleep(1.5)
        assert not await store.exists()
        assert await store.size() == 0

    async def test_stop_during_inflight_renewal_ends_loop(self, client):
        store = FieldStore(client, KEY, ttl_seconds=1)
        await store.ensure_marker()
        slow = _CancelSwallowingClient(client)
        manager = LifecycleManager(slow, _handle(ttl=1, period=0.25))
        manager.start()
        task = manager._task

        # Let the first renewal start, then stop while it is still pending
        await asyncio.sleep(0)
        manager.stop()

        await asyncio.sleep(1.5)
        assert task.done()
        assert slow.executions == 1
        assert not await store.exists()

    async def test_restart_after_stop(self, client):
        manager = LifecycleManager(client, _handle())
        manager.start()
        manager.stop()
        manager.start()
        try:
            await asyncio.sleep(0.1)
            assert manager.running
            assert manager.renewals >= 1
        finally:
            manager.stop()

    async def test_start_is_idempotent(self, client):
        manager = LifecycleManager(client, _handle())
        manager.start()
        task = manager._task
        manager.start()
        assert manager._task is task
        manager.stop()

    async def test_stop_is_idempotent(self, client):
        manager = LifecycleManager(client, _handle())
        manager.start()
        assert manager.running
        assert LifecycleManager.live_count() >= 1
        manager.stop()
        manager.stop()
        assert not manager.running

    async def test_task_is_named(self, client):
        manager = LifecycleManager(client, _handle())
        manager.start()
        assert manager._task.get_name() == f"redismap-renewal:{KEY}"
        manager.stop()


class TestFailures:
    """Failures are logged and do not stop later renewals."""

    async def test_failed_renewal_is_counted(self):
        client = _scripted_client(RedisConnectionError("pool exhausted"))
        manager = LifecycleManager(client, _handle())

        assert await manager.renew_once() is False
        assert manager.failures == 1
        assert manager.renewals == 0

    async def test_recovers_after_failure(self):
        client = _scripted_client(RedisConnectionError("down"), [0, True])
        manager = LifecycleManager(client, _handle())

        assert await manager.renew_once() is False
        assert await manager.renew_once() is True
        assert manager.failures == 1
        assert manager.renewals == 1

    async def test_missing_hash_reported(self, client):
        manager = LifecycleManager(client, _handle())
        assert await manager.renew_once() is False
        assert manager.failures == 0
        assert manager.renewals == 1


class TestMarkerRepair:
    """Renewal puts the empty marker back on a hash that lost it."""

    async def test_marker_restored_after_deletion(self, client):
        store = FieldStore(client, KEY, ttl_seconds=2)
        await store.ensure_marker()
        await client.delete(KEY)
        manager = LifecycleManager(client, _handle())

        assert await manager.renew_once() is False
        assert await client.hget(KEY, EMPTY_MARKER) == EMPTY_MARKER
        assert 0 < await client.ttl(KEY) <= 2

        await store.put("a", "1")
        assert await store.size() == 1

    async def test_write_after_expiry_is_repaired(self, client):
        store = FieldStore(client, KEY, ttl_seconds=2)
        await store.ensure_marker()
        await client.delete(KEY)

        # The write recreates the hash without a marker or a TTL
        await store.put("a", "1")
        assert await store.size() == 0
        assert await client.ttl(KEY) == -1

        manager = LifecycleManager(client, _handle())
        assert await manager.renew_once() is False
        assert await store.size() == 1
        assert 0 < await client.ttl(KEY) <= 2

    async def test_intact_hash_is_only_extended(self, client):
        store = FieldStore(client, KEY, ttl_seconds=2)
        await store.ensure_marker()
        await store.put("a", "1")
        manager = LifecycleManager(client, _handle())

        assert await manager.renew_once() is True
        assert await store.size() == 1
