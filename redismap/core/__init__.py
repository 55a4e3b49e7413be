"""
Core Module: Types, Errors, Configuration and Constants
"""

from redismap.core.types import (
    Result,
    Ok,
    Err,
    Missing,
    MISSING,
    Nullable,
    Previous,
    MutationKind,
    Mutation,
    Handle,
)
from redismap.core.errors import (
    ErrorCode,
    RedisMapError,
    ValidationError,
    NullArgumentError,
    ExhaustedSequenceError,
    InvalidIteratorStateError,
)
from redismap.core.config import RedisMapConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "Missing",
    "MISSING",
    "Nullable",
    "Previous",
    "MutationKind",
    "Mutation",
    "Handle",
    "ErrorCode",
    "RedisMapError",
    "ValidationError",
    "NullArgumentError",
    "ExhaustedSequenceError",
    "InvalidIteratorStateError",
    "RedisMapConfig",
]
