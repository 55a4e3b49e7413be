"""
Shared Connection Pool
======================

One bounded `BlockingConnectionPool` serves every handle in a process:
user operations and renewal tasks borrow from the same pool. Borrowing
blocks up to `RedisConfig.pool_timeout_seconds` and then fails with
`redis.exceptions.ConnectionError`; the core never retries that.

Example:
    >>> client = create_client(RedisConfig(host="redis.internal"))
    >>> m = await RedisMap.create(client)
    >>> await close_client(client)

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

from typing import Dict, Optional

import redis.asyncio as aioredis
from redis.asyncio.connection import BlockingConnectionPool, SSLConnection

from redismap.observability.logging import get_logger
from redismap.storage.config import RedisConfig

_log = get_logger("redismap.connection")

# Clients handed out by shared_client(), one per distinct configuration
_shared: Dict[RedisConfig, aioredis.Redis] = {}


def create_pool(config: RedisConfig) -> BlockingConnectionPool:
    """Build the bounded pool described by `config`."""
    kwargs = config.get_pool_kwargs()
    if config.ssl:
        kwargs["connection_class"] = SSLConnection
    return BlockingConnectionPool(**kwargs)


def create_client(config: Optional[RedisConfig] = None) -> aioredis.Redis:
    """
    Create an asyncio Redis client over a fresh bounded pool.

    Returns:
        redis.asyncio.Redis sharing one BlockingConnectionPool.
    """
    config = config or RedisConfig()
    pool = create_pool(config)
    _log.debug(
        "Connection pool created",
        host=config.host,
        port=config.port,
        max_connections=config.max_connections,
        pool_timeout_seconds=config.pool_timeout_seconds,
    )
    return aioredis.Redis(connection_pool=pool)


async def close_client(client: aioredis.Redis) -> None:
    """Close the client and disconnect every pooled connection."""
    for config in [c for c, shared in _shared.items() if shared is client]:
        del _shared[config]
    await client.aclose()
    await client.connection_pool.disconnect()


def shared_client(config: Optional[RedisConfig] = None) -> aioredis.Redis:
    """
    Process-wide client for `config`, created on first use.

    Handles built without an explicit client share this one, and with it
    a single bounded pool.
    """
    config = config or RedisConfig()
    client = _shared.get(config)
    if client is None:
        client = _shared[config] = create_client(config)
    return client


def pool_capacity(client: aioredis.Redis) -> Optional[int]:
    """Upper bound of the client's pool, or None if it is not bounded."""
    return getattr(client.connection_pool, "max_connections", None)


__all__ = [
    "create_pool",
    "create_client",
    "shared_client",
    "close_client",
    "pool_capacity",
]
