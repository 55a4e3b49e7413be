"""
Wire Codec: Null Tokens and the Empty Marker

Redis hashes cannot store a missing key or value, and an empty hash is
deleted by Redis. Two reserved strings work around both:

- NULL_TOKEN stands in for None as a field key or value.
- EMPTY_MARKER is both key and value of a field kept in every live hash,
  so a logically empty map still exists in Redis and can carry a TTL.

Both tokens are NUL-delimited and are refused as user input, so they can
never collide with a legitimate key or value. Nothing outside
redismap.storage sees them.
"""

from __future__ import annotations

from typing import Final, Optional

NULL_TOKEN: Final[str] = "\x00redismap:null\x00"
EMPTY_MARKER: Final[str] = "\x00redismap:empty\x00"

_RESERVED: Final[frozenset[str]] = frozenset({NULL_TOKEN, EMPTY_MARKER})


def encode(value: Optional[str]) -> str:
    """
    Translate a caller key/value into its wire form.

    Raises:
        TypeError: If value is neither str nor None.
        ValueError: If value is one of the reserved tokens.
    """
    if value is None:
        return NULL_TOKEN
    if not isinstance(value, str):
        raise TypeError(f"keys and values must be str or None, got {type(value).__name__}")
    if value in _RESERVED:
        raise ValueError("value collides with a reserved redismap token")
    return value


def decode(value: str) -> Optional[str]:
    """Translate a wire key/value back into caller form."""
    return None if value == NULL_TOKEN else value


def is_marker(field: str) -> bool:
    """True for the reserved empty-marker field."""
    return field == EMPTY_MARKER


__all__ = ["NULL_TOKEN", "EMPTY_MARKER", "encode", "decode", "is_marker"]
