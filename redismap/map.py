"""
RedisMap: A Shared Associative Map Backed by One Redis Hash
===========================================================

Any number of handles, in any number of processes, may refer to the same
hash. Every handle keeps the hash alive by renewing its TTL; once the last
handle is gone the hash expires on its own.

Construction:
    >>> m = await RedisMap.create(client)              # fresh identifier
    >>> same = await RedisMap.attach_by_key(m.identifier, other_client)
    >>> also = await RedisMap.attach_by_id(m.handle.id, client)

Attaching is idempotent: an absent target becomes an empty map, an
existing hash is shared, and any other Redis type is refused with
ValidationError.

Operations:
    Single-field operations are linearizable per field (optimistic
    WATCH/MULTI/EXEC, retried until they commit). Bulk operations issue
    one command each. Views and iteration are weakly consistent; see
    redismap.storage.scan.

Keys and values are `Optional[str]`. Operations that can find no field
return MISSING for "absent" so a stored None is never confused with it.

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

import inspect
import weakref
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Iterable,
    Mapping,
    Optional,
    TypeVar,
    Union,
)

import redis.asyncio as aioredis

from redismap.core.config import RedisMapConfig
from redismap.core.errors import NullArgumentError
from redismap.core.types import MISSING, Handle, Nullable, Previous
from redismap.observability.logging import get_logger
from redismap.session.lease import LifecycleManager
from redismap.session.registry import KeyRegistry
from redismap.storage.connection import shared_client
from redismap.storage.decisions import MappingFunction, RemappingFunction
from redismap.storage.field_store import FieldStore, FieldStoreMetrics
from redismap.storage.scan import Entry, ScanIterator

_log = get_logger("redismap.map")

T = TypeVar("T")

EntryAction = Callable[[Nullable, Nullable], Union[None, Awaitable[None]]]


# =============================================================================
# VIEWS
# =============================================================================

class ScanView(Generic[T]):
    """
    Projection of a ScanIterator onto keys or values.

    Shares the iterator's consistency guarantees and its remove().
    """

    __slots__ = ("_scan", "_project")

    def __init__(self, scan: ScanIterator, project: Callable[[Entry], T]) -> None:
        self._scan = scan
        self._project = project

    def __aiter__(self) -> ScanView[T]:
        return self

    async def __anext__(self) -> T:
        return self._project(await self._scan.__anext__())

    async def has_next(self) -> bool:
        return await self._scan.has_next()

    async def remove(self) -> None:
        await self._scan.remove()


def _key(entry: Entry) -> Nullable:
    return entry[0]


def _value(entry: Entry) -> Nullable:
    return entry[1]


# =============================================================================
# HANDLE
# =============================================================================

class RedisMap:
    """
    Handle to one shared, expiring Redis hash.

    Use the async factories; the constructor expects already validated
    parts. The renewal task is cancelled when the handle is garbage
    collected.
    """

    __slots__ = (
        "_client", "_config", "_handle", "_store",
        "_lifecycle", "_finalizer", "__weakref__",
    )

    def __init__(
        self,
        client: aioredis.Redis,
        config: RedisMapConfig,
        handle: Handle,
    ) -> None:
        self._client = client
        self._config = config
        self._handle = handle
        self._store = FieldStore(client, handle.identifier, handle.ttl_seconds)
        self._lifecycle = LifecycleManager(client, handle)
        self._finalizer: Optional[weakref.finalize] = None

    # -------------------------------------------------------------------------
    # CONSTRUCTION
    # -------------------------------------------------------------------------

    @classmethod
    async def create(
        cls,
        client: Optional[aioredis.Redis] = None,
        config: Optional[RedisMapConfig] = None,
    ) -> RedisMap:
        """Create an empty map under a freshly minted identifier."""
        config = config or RedisMapConfig()
        if client is None:
            client = shared_client(config.redis)
        identifier = await KeyRegistry(client, config).mint()
        return await cls._open(client, config, identifier)

    @classmethod
    async def attach_by_id(
        cls,
        handle_id: int,
        client: Optional[aioredis.Redis] = None,
        config: Optional[RedisMapConfig] = None,
    ) -> RedisMap:
        """
        Attach to "<prefix>:<handle_id>", creating it if absent.

        Raises:
            ValidationError: If the id is out of range or the key holds a
                non-hash value.
        """
        config = config or RedisMapConfig()
        if client is None:
            client = shared_client(config.redis)
        identifier = (await KeyRegistry(client, config).validate_id(handle_id)).unwrap()
        return await cls._open(client, config, identifier)

    @classmethod
    async def attach_by_key(
        cls,
        key: str,
        client: Optional[aioredis.Redis] = None,
        config: Optional[RedisMapConfig] = None,
    ) -> RedisMap:
        """
        Attach to an identifier in "<prefix>:<id>" form, creating it if absent.

        Raises:
            ValidationError: If the key is malformed or holds a non-hash value.
        """
        config = config or RedisMapConfig()
        if client is None:
            client = shared_client(config.redis)
        identifier = (await KeyRegistry(client, config).validate_key(key)).unwrap()
        return await cls._open(client, config, identifier)

    @classmethod
    async def _open(
        cls,
        client: aioredis.Redis,
        config: RedisMapConfig,
        identifier: str,
    ) -> RedisMap:
        handle = Handle(
            identifier=identifier,
            ttl_seconds=config.ttl_seconds,
            renewal_period_seconds=config.renewal_period_seconds,
        )
        instance = cls(client, config, handle)
        await instance._store.ensure_marker()

        lifecycle = instance._lifecycle
        lifecycle.start()
        instance._finalizer = weakref.finalize(instance, lifecycle.stop)
        _log.debug("Handle opened", identifier=identifier)
        return instance

    # -------------------------------------------------------------------------
    # ACCESSORS
    # -------------------------------------------------------------------------

    @property
    def identifier(self) -> str:
        return self._handle.identifier

    @property
    def ttl_seconds(self) -> int:
        return self._handle.ttl_seconds

    @property
    def handle(self) -> Handle:
        return self._handle

    @property
    def lifecycle(self) -> LifecycleManager:
        """Renewal task of this handle."""
        return self._lifecycle

    @property
    def metrics(self) -> FieldStoreMetrics:
        return self._store.metrics

    def __repr__(self) -> str:
        return f"RedisMap({self._handle.identifier!r})"

    # -------------------------------------------------------------------------
    # QUERIES
    # -------------------------------------------------------------------------

    async def size(self) -> int:
        return await self._store.size()

    async def is_empty(self) -> bool:
        return await self._store.size() == 0

    async def contains_key(self, key: Nullable) -> bool:
        return await self._store.contains(key)

    async def contains_value(self, value: Nullable) -> bool:
        """Linear scan; True as soon as a matching value is seen."""
        async for candidate in self.values():
            if candidate == value:
                return True
        return False

    async def get(self, key: Nullable, default: Nullable = None) -> Nullable:
        """Value under `key`, or `default` if there is no such field."""
        value = await self._store.get(key)
        return default if value is MISSING else value

    async def get_or_default(self, key: Nullable, default: Nullable) -> Nullable:
        return await self.get(key, default)

    async def lookup(self, key: Nullable) -> Previous:
        """Value under `key`, or MISSING."""
        return await self._store.get(key)

    # -------------------------------------------------------------------------
    # SINGLE-FIELD OPERATIONS
    # -------------------------------------------------------------------------

    async def put(self, key: Nullable, value: Nullable) -> Previous:
        return await self._store.put(key, value)

    async def put_if_absent(self, key: Nullable, value: Nullable) -> Previous:
        return await self._store.put_if_absent(key, value)

    async def remove(self, key: Nullable) -> Previous:
        return await self._store.remove(key)

    async def remove_if_equals(self, key: Nullable, expected: Nullable) -> bool:
        return await self._store.remove_if_equals(key, expected)

    async def replace(self, key: Nullable, value: Nullable) -> Previous:
        return await self._store.replace(key, value)

    async def replace_if_equals(
        self,
        key: Nullable,
        expected: Nullable,
        value: Nullable,
    ) -> bool:
        return await self._store.replace_if_equals(key, expected, value)

    async def compute_if_absent(self, key: Nullable, fn: MappingFunction) -> Nullable:
        return await self._store.compute_if_absent(key, fn)

    async def compute_if_present(self, key: Nullable, fn: RemappingFunction) -> Nullable:
        return await self._store.compute_if_present(key, fn)

    async def compute(self, key: Nullable, fn: RemappingFunction) -> Nullable:
        return await self._store.compute(key, fn)

    async def merge(self, key: Nullable, value: str, fn: RemappingFunction) -> Nullable:
        return await self._store.merge(key, value, fn)

    # -------------------------------------------------------------------------
    # BULK OPERATIONS
    # -------------------------------------------------------------------------

    async def put_all(self, mapping: Union[Mapping[Nullable, Nullable], RedisMap]) -> None:
        """
        Copy every pair of `mapping` with a single HSET.

        Putting a map into a handle on the same hash does nothing.
        """
        if mapping is None:
            raise NullArgumentError.missing("mapping", "put_all")
        if isinstance(mapping, RedisMap):
            if mapping.identifier == self.identifier:
                return
            mapping = await mapping.to_dict()
        await self._store.put_all(mapping)

    async def remove_all(self, keys: Iterable[Nullable]) -> bool:
        """Delete the listed fields with a single HDEL; True if any existed."""
        return await self._store.remove_all(keys) > 0

    async def retain_all(self, keys: Iterable[Nullable]) -> bool:
        """
        Keep only the listed fields; True if anything was removed.

        The victims are collected by one scan and deleted with a single
        HDEL, so fields added during the scan may survive.
        """
        if keys is None:
            raise NullArgumentError.missing("keys", "retain_all")
        keep = set(keys)
        return await self._remove_matching(lambda key, value: key not in keep)

    async def remove_values(self, values: Iterable[Nullable]) -> bool:
        """Delete every field whose value is listed; True if any was removed."""
        if values is None:
            raise NullArgumentError.missing("values", "remove_values")
        drop = set(values)
        return await self._remove_matching(lambda key, value: value in drop)

    async def retain_values(self, values: Iterable[Nullable]) -> bool:
        """Delete every field whose value is not listed; True if any was removed."""
        if values is None:
            raise NullArgumentError.missing("values", "retain_values")
        keep = set(values)
        return await self._remove_matching(lambda key, value: value not in keep)

    async def _remove_matching(self, predicate: Callable[[Nullable, Nullable], bool]) -> bool:
        victims = [key async for key, value in self.items() if predicate(key, value)]
        return await self._store.remove_all(victims) > 0

    async def clear(self) -> None:
        """Remove every field in one atomic transaction."""
        await self._store.clear()

    async def replace_all(self, fn: RemappingFunction) -> None:
        """
        Replace each value with fn(key, value).

        Keys are taken from a scan; each replacement is its own optimistic
        operation and skips keys removed in the meantime.
        """
        if fn is None:
            raise NullArgumentError.missing("fn", "replace_all")
        async for key in self.keys():
            await self._store.replace_with(key, fn)

    async def for_each(self, action: EntryAction) -> None:
        """
        Call action(key, value) for every scanned entry; awaits coroutine results.

        Entries removed after the scan buffered them, including by an
        earlier action, are skipped.
        """
        if action is None:
            raise NullArgumentError.missing("action", "for_each")
        async for key, value in self.items():
            if not await self._store.contains(key):
                continue
            outcome = action(key, value)
            if inspect.isawaitable(outcome):
                await outcome

    async def to_dict(self) -> Dict[Nullable, Nullable]:
        """Snapshot of the entries seen by one scan."""
        return {key: value async for key, value in self.items()}

    # -------------------------------------------------------------------------
    # VIEWS
    # -------------------------------------------------------------------------

    def items(self) -> ScanIterator:
        """Fresh iterator over (key, value) pairs."""
        return ScanIterator(self._client, self._handle.identifier, self._config.scan_count)

    def keys(self) -> ScanView[Nullable]:
        return ScanView(self.items(), _key)

    def values(self) -> ScanView[Nullable]:
        return ScanView(self.items(), _value)

    def __aiter__(self) -> AsyncIterator[Nullable]:
        return self.keys()


__all__ = ["RedisMap", "ScanView"]
