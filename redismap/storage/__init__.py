"""
Storage Module: Redis-Facing Layer
==================================

Provides:
- Connection pool construction (bounded, blocking with timeout)
- Wire codec for null keys/values and the empty marker
- FieldStore: optimistic single-field operations
- ScanIterator: weakly-consistent HSCAN traversal

Nothing above this package sees wire tokens.
"""

from __future__ import annotations

from redismap.storage.config import RedisConfig
from redismap.storage.connection import (
    create_pool,
    create_client,
    shared_client,
    close_client,
    pool_capacity,
)
from redismap.storage.field_store import FieldStore, FieldStoreMetrics
from redismap.storage.scan import ScanIterator


__all__ = [
    "RedisConfig",
    "create_pool",
    "create_client",
    "shared_client",
    "close_client",
    "pool_capacity",
    "FieldStore",
    "FieldStoreMetrics",
    "ScanIterator",
]
