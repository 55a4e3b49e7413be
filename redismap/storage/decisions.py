"""
Decision Rules for Single-Field Read-Modify-Write Operations

Each function receives the field's current wire value (None when the
field is absent) and returns the mutation to stage plus the result the
operation reports to its caller. They are pure apart from invoking the
caller's function, which lets FieldStore rerun them on every retry and
lets the whole decision table be tested without Redis.

| Operation            | absent                          | present                              |
|----------------------|---------------------------------|--------------------------------------|
| put                  | write; MISSING                  | write; old                           |
| put_if_absent        | write; MISSING                  | keep; old                            |
| remove               | keep; MISSING                   | delete; old                          |
| remove_if_equals     | keep; False                     | delete iff old == expected           |
| replace              | keep; MISSING                   | write; old                           |
| replace_if_equals    | keep; False                     | write iff old == expected            |
| compute_if_absent    | fn(k): None keep, else write    | keep; old                            |
| compute_if_present   | keep; None                      | fn(k, old): None delete, else write  |
| compute              | fn(k, None): None keep, else wr | fn(k, old): None delete, else write  |
| merge                | write v; v                      | fn(old, v): None delete, else write  |
| replace_with         | keep; MISSING                   | write fn(k, old), None included      |

For put_if_absent, compute_if_absent, compute_if_present and merge a
field holding None counts as absent.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Tuple

from redismap.core.types import MISSING, Mutation, Nullable, Previous
from redismap.storage.codec import NULL_TOKEN, decode, encode

Decision = Tuple[Mutation, Any]

MappingFunction = Callable[[Nullable], Nullable]
RemappingFunction = Callable[[Nullable, Nullable], Nullable]


def _previous(current: Optional[str]) -> Previous:
    return MISSING if current is None else decode(current)


def _holds_value(current: Optional[str]) -> bool:
    return current is not None and current != NULL_TOKEN


def put(current: Optional[str], value: str) -> Decision:
    return Mutation.write(value), _previous(current)


def put_if_absent(current: Optional[str], value: str) -> Decision:
    if _holds_value(current):
        return Mutation.keep(), decode(current)
    return Mutation.write(value), _previous(current)


def remove(current: Optional[str]) -> Decision:
    if current is None:
        return Mutation.keep(), MISSING
    return Mutation.delete(), decode(current)


def remove_if_equals(current: Optional[str], expected: str) -> Decision:
    if current is not None and current == expected:
        return Mutation.delete(), True
    return Mutation.keep(), False


def replace(current: Optional[str], value: str) -> Decision:
    if current is None:
        return Mutation.keep(), MISSING
    return Mutation.write(value), decode(current)


def replace_if_equals(current: Optional[str], expected: str, value: str) -> Decision:
    if current is not None and current == expected:
        return Mutation.write(value), True
    return Mutation.keep(), False


def compute_if_absent(
    current: Optional[str],
    key: Nullable,
    fn: MappingFunction,
) -> Decision:
    if _holds_value(current):
        return Mutation.keep(), decode(current)
    value = fn(key)
    if value is None:
        return Mutation.keep(), None
    return Mutation.write(encode(value)), value


def compute_if_present(
    current: Optional[str],
    key: Nullable,
    fn: RemappingFunction,
) -> Decision:
    if not _holds_value(current):
        return Mutation.keep(), None
    value = fn(key, decode(current))
    if value is None:
        return Mutation.delete(), None
    return Mutation.write(encode(value)), value


def compute(
    current: Optional[str],
    key: Nullable,
    fn: RemappingFunction,
) -> Decision:
    old = None if current is None else decode(current)
    value = fn(key, old)
    if value is not None:
        return Mutation.write(encode(value)), value
    if current is None:
        return Mutation.keep(), None
    return Mutation.delete(), None


def merge(
    current: Optional[str],
    value: str,
    fn: RemappingFunction,
) -> Decision:
    if not _holds_value(current):
        return Mutation.write(encode(value)), value
    merged = fn(decode(current), value)
    if merged is None:
        return Mutation.delete(), None
    return Mutation.write(encode(merged)), merged


def replace_with(
    current: Optional[str],
    key: Nullable,
    fn: RemappingFunction,
) -> Decision:
    if current is None:
        return Mutation.keep(), MISSING
    value = fn(key, decode(current))
    return Mutation.write(encode(value)), value
