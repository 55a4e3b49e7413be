"""
Field Store: Optimistic Single-Field Operations on One Redis Hash
=================================================================

Every read-modify-write operation runs the same compare-and-swap loop:

    WATCH key -> HGET key field -> decide -> MULTI / HSET|HDEL / EXEC

If EXEC is aborted because the watched hash changed (a concurrent field
write, or a `clear()` that rewrote the whole hash), the loop starts over.

Liveness:
---------
The loop is unbounded: no retry cap and no backoff. Under sustained
contention on the same hash an operation can spin indefinitely. The
number of aborted attempts is exposed through `FieldStoreMetrics` so
callers can observe contention; nothing in the loop bounds it.

Thread Safety:
-------------
- Instances hold no mutable state besides counters
- The pool is shared with every other handle in the process
- WATCH is per connection; the pipeline pins one connection per attempt

Complexity:
-----------
| Operation          | Round trips | Notes                          |
|--------------------|-------------|--------------------------------|
| get / contains     | 1           | HGET / HEXISTS                 |
| size               | 1           | HLEN                           |
| read-modify-write  | 3 per try   | WATCH+HGET, MULTI/EXEC         |
| put_all            | 1           | HSET with mapping              |
| remove_all         | 1           | HDEL with many fields          |
| clear              | 1           | MULTI UNLINK/HSET/EXPIRE EXEC  |

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from redismap.core.errors import NullArgumentError
from redismap.core.types import MISSING, MutationKind, Nullable, Previous
from redismap.observability.logging import get_logger
from redismap.storage import decisions
from redismap.storage.codec import EMPTY_MARKER, decode, encode
from redismap.storage.decisions import Decision, MappingFunction, RemappingFunction

_log = get_logger("redismap.field_store")


# =============================================================================
# METRICS
# =============================================================================

@dataclass(slots=True)
class FieldStoreMetrics:
    """
    Counters for optimistic operations.

    `conflicts` counts aborted EXECs; a steadily growing value relative to
    `commits` is the visible symptom of same-hash contention.
    """
    commits: int = 0
    no_ops: int = 0
    conflicts: int = 0

    @property
    def attempts(self) -> int:
        return self.commits + self.no_ops + self.conflicts


# =============================================================================
# FIELD STORE
# =============================================================================

class FieldStore:
    """
    Optimistic-concurrency primitives on the fields of one Redis hash.

    Keys and values are `Optional[str]`; None is translated through the
    null token on the way in and out. Operations that may find no field
    return `MISSING` for "absent" so that a stored None stays
    distinguishable.

    Example:
        >>> store = FieldStore(client, "redis-map:7", ttl_seconds=30)
        >>> await store.put("a", "1")
        MISSING
        >>> await store.merge("a", "2", lambda old, new: old + new)
        '12'
    """

    __slots__ = ("_client", "_key", "_ttl_seconds", "_metrics", "_log")

    def __init__(self, client: aioredis.Redis, key: str, ttl_seconds: int) -> None:
        self._client = client
        self._key = key
        self._ttl_seconds = ttl_seconds
        self._metrics = FieldStoreMetrics()
        self._log = _log.with_extra(identifier=key)

    @property
    def key(self) -> str:
        return self._key

    @property
    def metrics(self) -> FieldStoreMetrics:
        return self._metrics

    # -------------------------------------------------------------------------
    # OPTIMISTIC LOOP
    # -------------------------------------------------------------------------

    async def _transact(self, field: str, decide: Callable[[Optional[str]], Decision]) -> Any:
        """
        Run `decide` against the field's current wire value until the
        resulting mutation commits without a concurrent change.
        """
        async with self._client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(self._key)
                    current = await pipe.hget(self._key, field)
                    mutation, result = decide(current)

                    if mutation.kind is MutationKind.KEEP:
                        await pipe.unwatch()
                        self._metrics.no_ops += 1
                        return result

                    pipe.multi()
                    if mutation.kind is MutationKind.WRITE:
                        pipe.hset(self._key, field, mutation.value)
                    else:
                        pipe.hdel(self._key, field)
                    await pipe.execute()
                    self._metrics.commits += 1
                    return result
                except WatchError:
                    self._metrics.conflicts += 1
                    self._log.debug(
                        "Watched hash changed, retrying",
                        conflicts=self._metrics.conflicts,
                    )
                    continue

    # -------------------------------------------------------------------------
    # READS
    # -------------------------------------------------------------------------

    async def get(self, key: Nullable) -> Previous:
        """Value stored under `key`, or MISSING."""
        value = await self._client.hget(self._key, encode(key))
        return MISSING if value is None else decode(value)

    async def contains(self, key: Nullable) -> bool:
        return bool(await self._client.hexists(self._key, encode(key)))

    async def size(self) -> int:
        """
        Number of caller-visible fields.

        The empty marker is excluded; the count saturates at sys.maxsize.
        """
        raw = await self._client.hlen(self._key)
        return min(max(raw - 1, 0), sys.maxsize)

    # -------------------------------------------------------------------------
    # READ-MODIFY-WRITE
    # -------------------------------------------------------------------------

    async def put(self, key: Nullable, value: Nullable) -> Previous:
        """Store value; return the previous value or MISSING."""
        wire = encode(value)
        return await self._transact(encode(key), lambda cur: decisions.put(cur, wire))

    async def put_if_absent(self, key: Nullable, value: Nullable) -> Previous:
        """Store value unless a non-None value is present; return the previous one."""
        wire = encode(value)
        return await self._transact(
            encode(key), lambda cur: decisions.put_if_absent(cur, wire)
        )

    async def remove(self, key: Nullable) -> Previous:
        """Delete the field; return its value or MISSING."""
        return await self._transact(encode(key), decisions.remove)

    async def remove_if_equals(self, key: Nullable, expected: Nullable) -> bool:
        """Delete the field only if it currently holds `expected`."""
        wire = encode(expected)
        return await self._transact(
            encode(key), lambda cur: decisions.remove_if_equals(cur, wire)
        )

    async def replace(self, key: Nullable, value: Nullable) -> Previous:
        """Overwrite an existing field; return its old value or MISSING."""
        wire = encode(value)
        return await self._transact(encode(key), lambda cur: decisions.replace(cur, wire))

    async def replace_if_equals(
        self,
        key: Nullable,
        expected: Nullable,
        value: Nullable,
    ) -> bool:
        """Overwrite the field only if it currently holds `expected`."""
        old_wire = encode(expected)
        new_wire = encode(value)
        return await self._transact(
            encode(key),
            lambda cur: decisions.replace_if_equals(cur, old_wire, new_wire),
        )

    async def compute_if_absent(self, key: Nullable, fn: MappingFunction) -> Nullable:
        if fn is None:
            raise NullArgumentError.missing("fn", "compute_if_absent")
        return await self._transact(
            encode(key), lambda cur: decisions.compute_if_absent(cur, key, fn)
        )

    async def compute_if_present(self, key: Nullable, fn: RemappingFunction) -> Nullable:
        if fn is None:
            raise NullArgumentError.missing("fn", "compute_if_present")
        return await self._transact(
            encode(key), lambda cur: decisions.compute_if_present(cur, key, fn)
        )

    async def compute(self, key: Nullable, fn: RemappingFunction) -> Nullable:
        if fn is None:
            raise NullArgumentError.missing("fn", "compute")
        return await self._transact(
            encode(key), lambda cur: decisions.compute(cur, key, fn)
        )

    async def merge(self, key: Nullable, value: str, fn: RemappingFunction) -> Nullable:
        if value is None:
            raise NullArgumentError.missing("value", "merge")
        if fn is None:
            raise NullArgumentError.missing("fn", "merge")
        return await self._transact(
            encode(key), lambda cur: decisions.merge(cur, value, fn)
        )

    async def replace_with(self, key: Nullable, fn: RemappingFunction) -> Previous:
        """Overwrite an existing field with fn(key, old); None is stored as None."""
        if fn is None:
            raise NullArgumentError.missing("fn", "replace_with")
        return await self._transact(
            encode(key), lambda cur: decisions.replace_with(cur, key, fn)
        )

    # -------------------------------------------------------------------------
    # BULK AND STRUCTURAL
    # -------------------------------------------------------------------------

    async def put_all(self, mapping: Mapping[Nullable, Nullable]) -> None:
        """Store every pair with one HSET."""
        if mapping is None:
            raise NullArgumentError.missing("mapping", "put_all")
        wire = {encode(k): encode(v) for k, v in mapping.items()}
        if wire:
            await self._client.hset(self._key, mapping=wire)

    async def remove_all(self, keys: Iterable[Nullable]) -> int:
        """Delete every listed field with one HDEL; return how many existed."""
        if keys is None:
            raise NullArgumentError.missing("keys", "remove_all")
        wire = [encode(k) for k in keys]
        if not wire:
            return 0
        return await self._client.hdel(self._key, *wire)

    async def ensure_marker(self) -> bool:
        """
        Insert the empty marker if it is missing and reset the TTL clock.

        Returns:
            True if the marker had to be inserted, i.e. the hash was absent
            or had been recreated by a write after expiring.
        """
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hsetnx(self._key, EMPTY_MARKER, EMPTY_MARKER)
            pipe.expire(self._key, self._ttl_seconds)
            inserted, _ = await pipe.execute()
        return bool(inserted)

    async def clear(self) -> None:
        """
        Drop every field atomically.

        The whole hash is unlinked and recreated with only the marker in
        one MULTI/EXEC, which aborts any concurrent watched operation.
        """
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.unlink(self._key)
            pipe.hset(self._key, EMPTY_MARKER, EMPTY_MARKER)
            pipe.expire(self._key, self._ttl_seconds)
            await pipe.execute()
        self._log.debug("Hash cleared")

    async def exists(self) -> bool:
        """True while the backing hash exists in Redis."""
        return bool(await self._client.exists(self._key))


__all__ = ["FieldStore", "FieldStoreMetrics"]
