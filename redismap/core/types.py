"""
Core Type Definitions for redismap

Implements Result/Either monads for zero-exception control flow at
validation seams, plus the small value types shared by the storage
and session layers.

Design Principles:
- Absence of a field is a distinct value (MISSING) from a field that
  holds None; both are explicit at the in-process boundary
- Wire-level token encoding never leaks past redismap.storage.codec
- Handles are immutable value objects

Complexity: O(1) for all type operations

Author: redismap maintainers
License: MIT
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import (
    Any,
    Final,
    Generic,
    Literal,
    Optional,
    TypeVar,
    Union,
)

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.
    
    Immutable container for successful computation results.
    """
    
    value: T
    
    def is_ok(self) -> Literal[True]:
        return True
    
    def is_err(self) -> Literal[False]:
        return False
    
    def unwrap(self) -> T:
        """Extract value. Safe to call after is_ok() check."""
        return self.value
    
    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value
    
    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.
    
    When the error payload is an exception, unwrap() re-raises it
    unchanged so constructors can surface typed validation errors.
    """
    
    error: E
    
    def is_ok(self) -> Literal[False]:
        return False
    
    def is_err(self) -> Literal[True]:
        return True
    
    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error,
        unless the error is itself an exception meant for the caller.
        
        Raises:
            The wrapped exception, or RuntimeError with error context.
        """
        if isinstance(self.error, BaseException):
            raise self.error
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")
    
    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default
    
    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# ABSENCE TAG
# =============================================================================
class Missing:
    """
    Marker for "no field stored under this key".
    
    Distinct from None, which is a legitimate stored value. Falsy so
    that `if previous:` reads naturally, but callers that care about
    the difference compare with `is MISSING`.
    """
    
    __slots__ = ()
    _instance: Optional[Missing] = None
    
    def __new__(cls) -> Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    def __bool__(self) -> bool:
        return False
    
    def __repr__(self) -> str:
        return "MISSING"
    
    def __reduce__(self) -> str:
        return "MISSING"


MISSING: Final[Missing] = Missing()

# A nullable field key or value as seen by callers
Nullable = Optional[str]

# Result of operations that distinguish "absent" from "present with None"
Previous = Union[Nullable, Missing]


# =============================================================================
# FIELD MUTATIONS
# =============================================================================
class MutationKind(Enum):
    """What a read-modify-write operation stages inside MULTI/EXEC."""
    KEEP = auto()    # No write; release the watch
    WRITE = auto()   # HSET field value
    DELETE = auto()  # HDEL field


@dataclass(frozen=True, slots=True)
class Mutation:
    """
    Single-field mutation decided from the field's current wire value.
    
    `value` is the wire-encoded value for WRITE, None otherwise.
    """
    
    kind: MutationKind
    value: Optional[str] = None
    
    @classmethod
    def keep(cls) -> Mutation:
        return _KEEP
    
    @classmethod
    def write(cls, value: str) -> Mutation:
        return cls(kind=MutationKind.WRITE, value=value)
    
    @classmethod
    def delete(cls) -> Mutation:
        return _DELETE


_KEEP = Mutation(kind=MutationKind.KEEP)
_DELETE = Mutation(kind=MutationKind.DELETE)


# =============================================================================
# HANDLE
# =============================================================================
@dataclass(frozen=True, slots=True)
class Handle:
    """
    In-process reference to one backing Redis hash.
    
    Many handles, in one process or several, may share an identifier.
    The identifier is validated by KeyRegistry before a Handle is built.
    
    Attributes:
        identifier: Redis key in "prefix:id" form.
        ttl_seconds: Expiration horizon reset by every renewal.
        renewal_period_seconds: Delay between renewals.
    """
    
    identifier: str
    ttl_seconds: int
    renewal_period_seconds: float
    
    @property
    def id(self) -> int:
        """Numeric part of the identifier."""
        return int(self.identifier.rsplit(":", 1)[1])
    
    def __str__(self) -> str:
        return self.identifier
