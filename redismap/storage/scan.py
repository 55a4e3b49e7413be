"""
Scan Iterator: Weakly-Consistent Traversal of One Redis Hash
============================================================

Walks the hash with repeated `HSCAN key cursor COUNT n` until the cursor
returns to 0. No lock is held and nothing is prefetched: one batch is
buffered at a time and the next HSCAN is issued only when the buffer has
drained.

Consistency:
------------
- A field present for the whole iteration is returned exactly once.
- A field added or removed during the iteration may or may not be
  returned, and is never returned twice.
- This is weaker than snapshot isolation: values reflect the moment
  their batch was fetched, and entries from different batches may
  belong to different states of the hash.

HSCAN itself may return a field more than once when the hash is resized
by a large factor between calls (sometimes with a changed value). Every
emitted wire key is remembered, and later sightings are dropped.

Memory:
-------
O(batch) buffered entries plus O(n) remembered keys for n emitted fields.

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Optional, Set, Tuple

import redis.asyncio as aioredis

from redismap.core.errors import ExhaustedSequenceError, InvalidIteratorStateError
from redismap.core.types import Nullable
from redismap.observability.logging import get_logger
from redismap.storage.codec import decode, is_marker

_log = get_logger("redismap.scan")

Entry = Tuple[Nullable, Nullable]

# HSCAN's start and end cursor
_CURSOR_START = 0


class ScanIterator:
    """
    Async iterator of live `(key, value)` pairs.

    Each instance is a single pass; create a new one to iterate again.

    Example:
        >>> it = ScanIterator(client, "redis-map:7", scan_count=100)
        >>> async for key, value in it:
        ...     if value is None:
        ...         await it.remove()
    """

    __slots__ = (
        "_client",
        "_key",
        "_scan_count",
        "_cursor",
        "_queue",
        "_seen",
        "_last",
        "_returned_any",
        "_batches",
    )

    def __init__(self, client: aioredis.Redis, key: str, scan_count: int) -> None:
        self._client = client
        self._key = key
        self._scan_count = scan_count
        self._cursor: Optional[int] = None
        self._queue: Deque[Tuple[str, str]] = deque()
        self._seen: Set[str] = set()
        self._last: Optional[str] = None
        self._returned_any = False
        self._batches = 0

    def __aiter__(self) -> ScanIterator:
        return self

    async def __anext__(self) -> Entry:
        """
        Return the next live entry.

        Raises:
            ExhaustedSequenceError: When the hash has been fully scanned.
        """
        await self._fill()
        if not self._queue:
            raise ExhaustedSequenceError.exhausted(self._key)

        wire_key, wire_value = self._queue.popleft()
        self._last = wire_key
        self._returned_any = True
        return decode(wire_key), decode(wire_value)

    async def has_next(self) -> bool:
        """True if another entry is available, fetching a batch if needed."""
        await self._fill()
        return bool(self._queue)

    async def remove(self) -> None:
        """
        Delete the field most recently returned by this iterator.

        A bare HDEL: the field is removed whatever its current value.

        Raises:
            InvalidIteratorStateError: If nothing has been returned yet, or
                the last returned field was already removed.
        """
        if self._last is None:
            if not self._returned_any:
                raise InvalidIteratorStateError.remove_before_next(self._key)
            raise InvalidIteratorStateError.double_remove(self._key)

        wire_key, self._last = self._last, None
        await self._client.hdel(self._key, wire_key)

    @property
    def finished(self) -> bool:
        """True once the cursor has wrapped and the buffer is empty."""
        return self._cursor == _CURSOR_START and not self._queue

    @property
    def emitted(self) -> int:
        """Number of distinct fields seen so far, buffered ones included."""
        return len(self._seen)

    async def _fill(self) -> None:
        """Fetch batches until one yields a new entry or the scan ends."""
        while not self._queue and self._cursor != _CURSOR_START:
            cursor, batch = await self._client.hscan(
                self._key,
                cursor=self._cursor or _CURSOR_START,
                count=self._scan_count,
            )
            self._cursor = int(cursor)
            self._batches += 1

            fresh = 0
            for wire_key, wire_value in batch.items():
                if is_marker(wire_key) or wire_key in self._seen:
                    continue
                self._seen.add(wire_key)
                self._queue.append((wire_key, wire_value))
                fresh += 1

            _log.debug(
                "HSCAN batch",
                identifier=self._key,
                batch=self._batches,
                returned=len(batch),
                fresh=fresh,
                cursor=self._cursor,
            )


__all__ = ["ScanIterator", "Entry"]
