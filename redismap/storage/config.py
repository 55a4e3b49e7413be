"""
Redis Connection Configuration
==============================

Type-safe, immutable configuration for the shared connection pool used by
every handle in a process.

Design Principles:
------------------
1. **Immutability**: Frozen dataclass, safe to share between handles
2. **Validation**: Pre-conditions checked at construction time
3. **Bounded Pool**: Acquisition blocks at most `pool_timeout_seconds`
4. **Environment**: Supports loading from environment variables

The pool is a `redis.asyncio.BlockingConnectionPool`. Each live handle's
renewal task borrows one connection per renewal, so `max_connections`
must leave at least one slot per live handle on top of user traffic.

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from redismap.core import constants as C


# =============================================================================
# REDIS CONFIGURATION
# =============================================================================

@dataclass(frozen=True, slots=True)
class RedisConfig:
    """
    Redis connection and pool configuration.

    Thread Safety:
    -------------
    Frozen dataclass - immutable after construction.

    Attributes:
        host: Redis server hostname or IP address.
        port: Redis server port (1-65535).
        password: Optional authentication password.
        username: Optional ACL username.
        db: Logical database index (0-15).
        ssl: Enable TLS encryption for connections.
        max_connections: Upper bound of pooled connections. Must be > 0.
        pool_timeout_seconds: Maximum wait for a free connection before
            redis.exceptions.ConnectionError is raised.
        health_check_interval_seconds: Idle connections older than this
            are PINGed before reuse; 0 disables the check.
        connect_timeout_seconds: TCP connection timeout.
        socket_timeout_seconds: Socket read/write timeout.

    Example:
        >>> config = RedisConfig.from_env()
        >>> config = RedisConfig(host="redis.example.com", max_connections=20)
    """
    password: Optional[str] = None
    username: Optional[str] = None
    host: str = "localhost"

    pool_timeout_seconds: float = C.POOL_TIMEOUT_S
    connect_timeout_seconds: float = C.CONNECT_TIMEOUT_S
    socket_timeout_seconds: float = C.SOCKET_TIMEOUT_S
    max_connections: int = C.POOL_MAX_CONNECTIONS
    health_check_interval_seconds: int = C.POOL_HEALTH_CHECK_INTERVAL_S
    port: int = 6379
    db: int = 0

    ssl: bool = False

    def __post_init__(self) -> None:
        """
        Validate configuration invariants.

        Raises:
            ValueError: If any invariant is violated.
        """
        if not (1 <= self.port <= 65535):
            raise ValueError(f"port must be in [1, 65535], got {self.port}")

        if not (0 <= self.db <= 15):
            raise ValueError(f"db must be in [0, 15], got {self.db}")

        if self.max_connections <= 0:
            raise ValueError(f"max_connections must be > 0, got {self.max_connections}")

        if self.pool_timeout_seconds <= 0:
            raise ValueError(
                f"pool_timeout_seconds must be > 0, got {self.pool_timeout_seconds}"
            )
        if self.connect_timeout_seconds <= 0:
            raise ValueError(
                f"connect_timeout_seconds must be > 0, got {self.connect_timeout_seconds}"
            )
        if self.socket_timeout_seconds <= 0:
            raise ValueError(
                f"socket_timeout_seconds must be > 0, got {self.socket_timeout_seconds}"
            )
        if self.health_check_interval_seconds < 0:
            raise ValueError(
                "health_check_interval_seconds must be >= 0, "
                f"got {self.health_check_interval_seconds}"
            )

    @classmethod
    def from_env(cls, prefix: str = "REDIS") -> RedisConfig:
        """
        Construct configuration from environment variables.

        Environment Variables:
        - {prefix}_HOST: Server hostname (default: localhost)
        - {prefix}_PORT: Server port (default: 6379)
        - {prefix}_USERNAME / {prefix}_PASSWORD: Credentials
        - {prefix}_DB: Database index (default: 0)
        - {prefix}_SSL: Enable TLS (default: false)
        - {prefix}_MAX_CONNECTIONS: Pool size (default: 100)
        - {prefix}_POOL_TIMEOUT: Pool wait in seconds (default: 5)
        - {prefix}_CONNECT_TIMEOUT: TCP connect timeout in seconds (default: 2)
        - {prefix}_SOCKET_TIMEOUT: Read/write timeout in seconds (default: 5)
        - {prefix}_HEALTH_CHECK_INTERVAL: Seconds (default: 30)
        """
        def _get(key: str, default: str = "") -> str:
            return os.environ.get(f"{prefix}_{key}", default)

        def _get_int(key: str, default: int) -> int:
            val = _get(key)
            return int(val) if val else default

        def _get_float(key: str, default: float) -> float:
            val = _get(key)
            return float(val) if val else default

        def _get_bool(key: str, default: bool) -> bool:
            val = _get(key).lower()
            if val in ("true", "1", "yes"):
                return True
            if val in ("false", "0", "no"):
                return False
            return default

        return cls(
            host=_get("HOST", "localhost"),
            port=_get_int("PORT", 6379),
            username=_get("USERNAME") or None,
            password=_get("PASSWORD") or None,
            db=_get_int("DB", 0),
            ssl=_get_bool("SSL", False),
            max_connections=_get_int("MAX_CONNECTIONS", C.POOL_MAX_CONNECTIONS),
            pool_timeout_seconds=_get_float("POOL_TIMEOUT", C.POOL_TIMEOUT_S),
            health_check_interval_seconds=_get_int(
                "HEALTH_CHECK_INTERVAL", C.POOL_HEALTH_CHECK_INTERVAL_S
            ),
            connect_timeout_seconds=_get_float("CONNECT_TIMEOUT", C.CONNECT_TIMEOUT_S),
            socket_timeout_seconds=_get_float("SOCKET_TIMEOUT", C.SOCKET_TIMEOUT_S),
        )

    @property
    def slowest_call_seconds(self) -> float:
        """Longest a single command can take: pool wait, connect, then reply."""
        return (
            self.pool_timeout_seconds
            + self.connect_timeout_seconds
            + self.socket_timeout_seconds
        )

    def get_pool_kwargs(self) -> Dict[str, Any]:
        """
        Generate kwargs for redis.asyncio.BlockingConnectionPool.

        Responses are always decoded: keys, values and TYPE replies
        are handled as str throughout the package.
        """
        kwargs: Dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "db": self.db,
            "max_connections": self.max_connections,
            "timeout": self.pool_timeout_seconds,
            "health_check_interval": self.health_check_interval_seconds,
            "socket_connect_timeout": self.connect_timeout_seconds,
            "socket_timeout": self.socket_timeout_seconds,
            "decode_responses": True,
        }
        if self.username:
            kwargs["username"] = self.username
        if self.password:
            kwargs["password"] = self.password
        return kwargs


__all__ = ["RedisConfig"]
