"""
Key Registry: Minting and Validating Handle Identifiers

Identifiers have the form "<prefix>:<id>" with 0 < id <= max_id.

Minting:
    1. INCR the shared counter (atomic across processes)
    2. Above max_id: guarded reset (WATCH counter, re-check, DEL) and retry
    3. If "<prefix>:<id>" already exists (someone attached to that id
       explicitly), mint again
    4. EXPIRE the counter so an idle deployment forgets it

    Wrapping to 1 assumes hashes minted a full cycle earlier have long
    expired; any that survive are skipped by step 3.

Validation:
    Caller-supplied ids and keys are checked for range and canonical
    form, and an existing Redis value at the key must be a hash.
    Failures are returned as Err(ValidationError) and raised by the
    handle constructors.

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

import re
from typing import Any, Optional, Pattern

import redis.asyncio as aioredis
from redis.exceptions import WatchError

from redismap.core.config import RedisMapConfig
from redismap.core.errors import ValidationError
from redismap.core.types import Result, Ok, Err
from redismap.observability.logging import get_logger

_log = get_logger("redismap.registry")

# TYPE replies that a handle may attach to
_ATTACHABLE_TYPES = frozenset({"none", "hash"})


class KeyRegistry:
    """
    Mints fresh identifiers and validates caller-supplied ones.

    Stateless apart from configuration; safe to share between handles.

    Example:
        >>> registry = KeyRegistry(client, RedisMapConfig())
        >>> await registry.mint()
        'redis-map:1'
        >>> (await registry.validate_id(0)).is_err()
        True
    """

    __slots__ = ("_client", "_config", "_pattern")

    def __init__(self, client: aioredis.Redis, config: RedisMapConfig) -> None:
        self._client = client
        self._config = config
        self._pattern: Pattern[str] = re.compile(
            rf"{re.escape(config.key_prefix)}:([1-9][0-9]*)"
        )

    # -------------------------------------------------------------------------
    # KEY LAYOUT
    # -------------------------------------------------------------------------

    def assemble(self, handle_id: int) -> str:
        return f"{self._config.key_prefix}:{handle_id}"

    def is_valid_id(self, handle_id: Any) -> bool:
        return (
            isinstance(handle_id, int)
            and not isinstance(handle_id, bool)
            and 0 < handle_id <= self._config.max_id
        )

    def parse(self, key: str) -> Optional[int]:
        """Numeric id of a canonical key, or None."""
        match = self._pattern.fullmatch(key)
        if match is None:
            return None
        return int(match.group(1))

    # -------------------------------------------------------------------------
    # MINTING
    # -------------------------------------------------------------------------

    async def mint(self) -> str:
        """
        Reserve a fresh identifier that no existing key occupies.

        Returns:
            Identifier in "<prefix>:<id>" form.
        """
        counter = self._config.counter_key
        while True:
            handle_id = await self._client.incr(counter)
            if handle_id > self._config.max_id:
                await self._reset_counter()
                continue

            key = self.assemble(handle_id)
            if await self._client.exists(key):
                _log.debug("Minted id already in use, skipping", identifier=key)
                continue

            await self._client.expire(counter, self._config.counter_ttl_seconds)
            _log.debug("Identifier minted", identifier=key)
            return key

    async def _reset_counter(self) -> None:
        """
        Delete the counter if it is still above max_id.

        The re-check under WATCH keeps two callers that both overflowed
        from deleting it twice, which would hand out low ids twice.
        """
        counter = self._config.counter_key
        async with self._client.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(counter)
                    raw = await pipe.get(counter)
                    if raw is None or int(raw) <= self._config.max_id:
                        await pipe.unwatch()
                        return
                    pipe.multi()
                    pipe.delete(counter)
                    await pipe.execute()
                    _log.info("Id counter wrapped", counter=counter, max_id=self._config.max_id)
                    return
                except WatchError:
                    continue

    # -------------------------------------------------------------------------
    # VALIDATION
    # -------------------------------------------------------------------------

    async def validate_id(self, handle_id: Any) -> Result[str, ValidationError]:
        """Check an id and the type of any value already at its key."""
        if not self.is_valid_id(handle_id):
            return Err(ValidationError.invalid_id(handle_id, self._config.max_id))
        return await self._check_type(self.assemble(handle_id))

    async def validate_key(self, key: Any) -> Result[str, ValidationError]:
        """Check a textual key and the type of any value already there."""
        if not isinstance(key, str):
            return Err(ValidationError.invalid_key(key, self._config.key_prefix))
        handle_id = self.parse(key)
        if handle_id is None or not self.is_valid_id(handle_id):
            return Err(ValidationError.invalid_key(key, self._config.key_prefix))
        return await self._check_type(key)

    async def _check_type(self, key: str) -> Result[str, ValidationError]:
        actual = await self._client.type(key)
        if actual not in _ATTACHABLE_TYPES:
            return Err(ValidationError.wrong_type(key, actual))
        return Ok(key)


__all__ = ["KeyRegistry"]
