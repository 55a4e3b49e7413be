"""
Lease Renewal: Keep a Backing Hash Alive While Its Handle Lives

Every handle owns one background task that resets its hash's expiration:

    MULTI
    HSETNX key <empty-marker> <empty-marker>
    EXPIRE key ttl
    EXEC              (immediately, then every renewal period)

Safety:
    - renewal_period + pool, connect and socket timeouts < ttl (enforced
      by RedisMapConfig), so the slowest single renewal still lands in time
    - Re-asserting the empty marker on every renewal repairs a hash that
      expired and was recreated by a later write, so size() stays correct
    - A failed renewal is logged; the next one is attempted on schedule
    - When the handle is garbage collected the task is stopped; the hash
      then expires after at most one TTL. A renewal already in flight may
      complete, but no further one is issued

Teardown:
    There is no release call. Process exit, a crash, or an event loop
    that stops running all stop renewals the same way, and Redis removes
    the hash once the TTL elapses.

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

import asyncio
import weakref
from typing import ClassVar, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from redismap.core.types import Handle
from redismap.observability.logging import StructuredLogger, get_logger
from redismap.storage.connection import pool_capacity
from redismap.storage.field_store import FieldStore

_log = get_logger("redismap.lease")


class LifecycleManager:
    """
    Periodic TTL renewal for one handle.

    Usage:
        manager = LifecycleManager(client, handle)
        manager.start()
        weakref.finalize(owner, manager.stop)

    The manager never references its owner, so the owner can be
    collected while the task is still scheduled.
    """

    _live: ClassVar[weakref.WeakSet[LifecycleManager]] = weakref.WeakSet()

    __slots__ = (
        "_client", "_handle", "_store", "_task", "_stopped",
        "_renewals", "_failures", "__weakref__",
    )

    def __init__(self, client: aioredis.Redis, handle: Handle) -> None:
        self._client = client
        self._handle = handle
        self._store = FieldStore(client, handle.identifier, handle.ttl_seconds)
        self._task: Optional[asyncio.Task[None]] = None
        self._stopped = True
        self._renewals = 0
        self._failures = 0

    def start(self) -> None:
        """
        Schedule the renewal task on the running event loop.

        The first renewal runs as soon as the loop gets control.
        """
        if self.running:
            return

        self._check_headroom()
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(
            self._run(),
            name=f"redismap-renewal:{self._handle.identifier}",
        )
        LifecycleManager._live.add(self)
        _log.info(
            "Renewal started",
            identifier=self._handle.identifier,
            ttl_seconds=self._handle.ttl_seconds,
            renewal_period_seconds=self._handle.renewal_period_seconds,
        )

    def stop(self) -> None:
        """
        Stop renewing. The hash expires one TTL later.

        The loop also checks the stop flag after every renewal, so a
        cancellation swallowed by an in-flight call cannot keep it alive.
        """
        self._stopped = True
        LifecycleManager._live.discard(self)
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            task.cancel()
        except RuntimeError:
            # Loop already closed; the task can no longer run anyway
            return
        _log.info("Renewal stopped", identifier=self._handle.identifier)

    async def renew_once(self) -> bool:
        """
        Reset the hash's expiration once, re-inserting the empty marker
        if it is missing.

        Returns:
            True if the hash was extended intact, False if the marker had
            to be restored or the call failed.
        """
        try:
            restored = await self._store.ensure_marker()
        except (RedisError, OSError) as e:
            self._failures += 1
            _log.warning(
                "Renewal failed",
                identifier=self._handle.identifier,
                failures=self._failures,
                error=repr(e),
            )
            return False

        self._renewals += 1
        if restored:
            _log.warning(
                "Renewal found the hash without its marker; marker restored",
                identifier=self._handle.identifier,
            )
        return not restored

    async def _run(self) -> None:
        with StructuredLogger.context(identifier=self._handle.identifier):
            while not self._stopped:
                await self.renew_once()
                if self._stopped:
                    break
                await asyncio.sleep(self._handle.renewal_period_seconds)

    def _check_headroom(self) -> None:
        """Warn when live renewals could exhaust the shared pool."""
        capacity = pool_capacity(self._client)
        if capacity is None:
            return
        pool = self._client.connection_pool
        live = sum(1 for m in LifecycleManager._live if m._client.connection_pool is pool)
        if live + 1 >= capacity:
            _log.warning(
                "Connection pool has no headroom for another renewal task",
                identifier=self._handle.identifier,
                live_handles=live + 1,
                max_connections=capacity,
            )

    @property
    def handle(self) -> Handle:
        return self._handle

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def renewals(self) -> int:
        """Renewal calls that reached Redis."""
        return self._renewals

    @property
    def failures(self) -> int:
        """Renewal calls that raised."""
        return self._failures

    @classmethod
    def live_count(cls) -> int:
        """Number of renewal tasks currently scheduled in this process."""
        return sum(1 for m in cls._live if m.running)


__all__ = ["LifecycleManager"]
