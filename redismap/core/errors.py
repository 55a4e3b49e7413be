"""
Error Hierarchy for redismap

Design Principles:
- Construction-time problems (bad id/key, wrong Redis type) surface as
  ValidationError and are never retried
- Iterator misuse maps onto the Python iteration protocol
  (ExhaustedSequenceError is a StopAsyncIteration)
- Transient Redis failures are NOT wrapped; redis.exceptions propagate
  to the caller unchanged
- Optimistic-lock conflicts never surface; they drive internal retries

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause for root cause analysis
- Context dict for structured logs

Usage:
    try:
        m = await RedisMap.attach_by_key("redis-map:abc", client)
    except ValidationError as e:
        logger.warning("bad key", error=e.to_dict())

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import uuid4


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Handle validation errors
    - 2xxx: Argument errors
    - 3xxx: Iteration errors
    """

    # Validation errors (1xxx)
    VALIDATION_INVALID_ID = 1001
    VALIDATION_INVALID_KEY = 1002
    VALIDATION_WRONG_TYPE = 1003

    # Argument errors (2xxx)
    ARGUMENT_NULL = 2001

    # Iteration errors (3xxx)
    ITERATION_EXHAUSTED = 3001
    ITERATION_REMOVE_BEFORE_NEXT = 3002
    ITERATION_DOUBLE_REMOVE = 3003


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class RedisMapError(Exception):
    """
    Base class for all redismap errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp (nanoseconds since epoch)
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp_ns: int = field(default_factory=time.time_ns)
    cause: Optional[Exception] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Initialize Exception base class with message
        super().__init__(self.message)
        if self.cause is not None:
            self.__cause__ = self.cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for structured logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_ns": self.timestamp_ns,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# VALIDATION ERRORS (CONSTRUCTION TIME)
# =============================================================================
@dataclass
class ValidationError(RedisMapError, ValueError):
    """
    Malformed handle id/key, or an existing Redis value of the wrong type.

    Raised synchronously while a handle is constructed.
    """

    @classmethod
    def invalid_id(cls, handle_id: Any, max_id: int) -> ValidationError:
        """Id outside (0, max_id]."""
        return cls(
            code=ErrorCode.VALIDATION_INVALID_ID,
            message=f"Illegal id: {handle_id!r} (expected 0 < id <= {max_id})",
            context={"id": str(handle_id)[:32], "max_id": max_id},
        )

    @classmethod
    def invalid_key(cls, key: Any, prefix: str) -> ValidationError:
        """Key not in canonical 'prefix:id' form."""
        return cls(
            code=ErrorCode.VALIDATION_INVALID_KEY,
            message=f"Illegal key: {key!r} (expected '{prefix}:<id>')",
            context={"key": str(key)[:100], "prefix": prefix},
        )

    @classmethod
    def wrong_type(cls, key: str, actual_type: str) -> ValidationError:
        """Key already holds a non-hash value."""
        return cls(
            code=ErrorCode.VALIDATION_WRONG_TYPE,
            message=f"Key {key!r} holds a {actual_type}, not a hash",
            context={"key": key, "actual_type": actual_type},
        )


# =============================================================================
# ARGUMENT ERRORS
# =============================================================================
@dataclass
class NullArgumentError(RedisMapError, TypeError):
    """A required callable, value or collection argument is None."""

    @classmethod
    def missing(cls, argument: str, operation: str) -> NullArgumentError:
        return cls(
            code=ErrorCode.ARGUMENT_NULL,
            message=f"{operation}() requires a non-None '{argument}'",
            context={"argument": argument, "operation": operation},
        )


# =============================================================================
# ITERATION ERRORS
# =============================================================================
@dataclass
class ExhaustedSequenceError(RedisMapError, StopAsyncIteration):
    """
    Advancing an iterator past its end.

    Subclasses StopAsyncIteration so `async for` terminates on it.
    """

    @classmethod
    def exhausted(cls, identifier: str) -> ExhaustedSequenceError:
        return cls(
            code=ErrorCode.ITERATION_EXHAUSTED,
            message=f"No more entries in {identifier}",
            context={"identifier": identifier},
        )


@dataclass
class InvalidIteratorStateError(RedisMapError, RuntimeError):
    """remove() called without a preceding advance."""

    @classmethod
    def remove_before_next(cls, identifier: str) -> InvalidIteratorStateError:
        return cls(
            code=ErrorCode.ITERATION_REMOVE_BEFORE_NEXT,
            message="remove() called before the first entry was returned",
            context={"identifier": identifier},
        )

    @classmethod
    def double_remove(cls, identifier: str) -> InvalidIteratorStateError:
        return cls(
            code=ErrorCode.ITERATION_DOUBLE_REMOVE,
            message="remove() called twice without an intervening advance",
            context={"identifier": identifier},
        )


__all__ = [
    "ErrorCode",
    "RedisMapError",
    "ValidationError",
    "NullArgumentError",
    "ExhaustedSequenceError",
    "InvalidIteratorStateError",
]
