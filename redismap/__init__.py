"""
redismap: Shared, Self-Expiring Associative Maps on Redis

A map handle is a reference to one Redis hash that any number of processes
can read and write concurrently:
- Single-field operations: optimistic WATCH/MULTI/EXEC, retried until commit
- Iteration: HSCAN-based, weakly consistent, never blocking
- Lifetime: every live handle renews the hash's TTL; abandoned hashes expire
- Identity: "redis-map:<id>" keys minted from a shared counter

Author: redismap maintainers
License: MIT
"""

__version__ = "1.0.0"
__author__ = "redismap maintainers"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from redismap.core.types import (
    Result,
    Ok,
    Err,
    MISSING,
    Handle,
)
from redismap.core.errors import (
    RedisMapError,
    ValidationError,
    NullArgumentError,
    ExhaustedSequenceError,
    InvalidIteratorStateError,
)
from redismap.core.config import RedisMapConfig
from redismap.storage import (
    RedisConfig,
    create_client,
    shared_client,
    close_client,
)
from redismap.map import RedisMap

__all__ = [
    # Version
    "__version__",
    # Handle
    "RedisMap",
    "Handle",
    "MISSING",
    # Result
    "Result",
    "Ok",
    "Err",
    # Errors
    "RedisMapError",
    "ValidationError",
    "NullArgumentError",
    "ExhaustedSequenceError",
    "InvalidIteratorStateError",
    # Configuration
    "RedisMapConfig",
    "RedisConfig",
    "create_client",
    "shared_client",
    "close_client",
]
