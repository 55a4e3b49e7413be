"""
Configuration Management for redismap

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from redismap.core import constants as C
from redismap.core.types import Result, Ok, Err
from redismap.storage.config import RedisConfig


@dataclass(frozen=True)
class RedisMapConfig:
    """
    Root configuration for redismap handles.

    Attributes:
        key_prefix: Prefix of every handle identifier ("prefix:id").
        ttl_seconds: Expiration horizon reset by each renewal.
        renewal_period_seconds: Delay between renewals. Together with the
            slowest single call (pool wait + connect + socket timeout) it
            must stay strictly below the TTL, so a renewal that hit every
            timeout still lands before expiry.
        scan_count: HSCAN COUNT hint per batch.
        counter_ttl_seconds: Expiration of the id counter, reset on mint.
        max_id: Largest id that may be minted or attached.
        redis: Connection pool configuration.
    """

    key_prefix: str = C.KEY_PREFIX
    ttl_seconds: int = C.KEY_TTL_S
    renewal_period_seconds: float = C.RENEWAL_PERIOD_S
    scan_count: int = C.SCAN_COUNT
    counter_ttl_seconds: int = C.COUNTER_TTL_S
    max_id: int = C.MAX_ID
    redis: RedisConfig = field(default_factory=RedisConfig)

    def __post_init__(self) -> None:
        if not self.key_prefix or ":" in self.key_prefix:
            raise ValueError(f"key_prefix must be non-empty without ':', got {self.key_prefix!r}")
        if self.ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be > 0, got {self.ttl_seconds}")
        if self.renewal_period_seconds <= 0:
            raise ValueError(
                f"renewal_period_seconds must be > 0, got {self.renewal_period_seconds}"
            )
        slowest = self.redis.slowest_call_seconds
        if self.renewal_period_seconds + slowest >= self.ttl_seconds:
            raise ValueError(
                "renewal_period_seconds + pool, connect and socket timeouts must be "
                f"below ttl_seconds ({self.renewal_period_seconds} + {slowest} "
                f">= {self.ttl_seconds})"
            )
        if self.scan_count <= 0:
            raise ValueError(f"scan_count must be > 0, got {self.scan_count}")
        if self.counter_ttl_seconds <= 0:
            raise ValueError(f"counter_ttl_seconds must be > 0, got {self.counter_ttl_seconds}")
        if self.max_id <= 0:
            raise ValueError(f"max_id must be > 0, got {self.max_id}")

    @property
    def counter_key(self) -> str:
        """Redis key of the shared id counter."""
        return f"{self.key_prefix}{C.COUNTER_SUFFIX}"

    @classmethod
    def from_env(cls) -> Result[RedisMapConfig, str]:
        """
        Load configuration from environment variables.

        Variables are prefixed with REDISMAP_ (handle settings) and
        REDIS_ (connection settings).
        Example: REDISMAP_TTL_SECONDS=60, REDIS_HOST=cache.internal
        """
        try:
            ttl = int(os.getenv("REDISMAP_TTL_SECONDS", str(C.KEY_TTL_S)))
            redis = RedisConfig.from_env()
            default_period = ttl - redis.slowest_call_seconds - C.RENEWAL_MARGIN_S
            return Ok(cls(
                key_prefix=os.getenv("REDISMAP_KEY_PREFIX", C.KEY_PREFIX),
                ttl_seconds=ttl,
                renewal_period_seconds=float(
                    os.getenv("REDISMAP_RENEWAL_PERIOD_SECONDS", str(default_period))
                ),
                scan_count=int(os.getenv("REDISMAP_SCAN_COUNT", str(C.SCAN_COUNT))),
                counter_ttl_seconds=int(
                    os.getenv("REDISMAP_COUNTER_TTL_SECONDS", str(C.COUNTER_TTL_S))
                ),
                max_id=int(os.getenv("REDISMAP_MAX_ID", str(C.MAX_ID))),
                redis=redis,
            ))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")
