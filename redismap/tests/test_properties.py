"""
Property Tests: Map Semantics Against a Dict Model

Each example runs on its own in-process Redis, built inside the test
body so Hypothesis never shares state between examples.
"""

from __future__ import annotations

import fakeredis
from hypothesis import given, settings, strategies as st

from redismap.core.types import MISSING
from redismap.storage.codec import EMPTY_MARKER, NULL_TOKEN
from redismap.storage.field_store import FieldStore

KEY = "redis-map:21"

_RESERVED = {NULL_TOKEN, EMPTY_MARKER}

nullable_text = st.one_of(st.none(), st.text().filter(lambda s: s not in _RESERVED))

# A small key space makes overwrites and removals of live keys common
small_keys = st.one_of(st.none(), st.sampled_from(["a", "b", "c", "d", "e"]))

operations = st.lists(
    st.one_of(
        st.tuples(st.just("put"), small_keys, nullable_text),
        st.tuples(st.just("put_if_absent"), small_keys, nullable_text),
        st.tuples(st.just("remove"), small_keys, st.none()),
        st.tuples(st.just("remove_all"), st.lists(small_keys, max_size=3), st.none()),
        st.tuples(st.just("clear"), st.none(), st.none()),
    ),
    max_size=30,
)


async def _fresh_store() -> tuple[fakeredis.FakeAsyncRedis, FieldStore]:
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    store = FieldStore(client, KEY, ttl_seconds=30)
    await store.ensure_marker()
    return client, store


class TestPutGet:
    """Whatever is put under a key is what get returns."""

    @settings(deadline=None)
    @given(key=nullable_text, value=nullable_text)
    async def test_put_then_get(self, key, value):
        client, store = await _fresh_store()
        try:
            assert await store.put(key, value) is MISSING
            assert await store.get(key) == value
            assert await store.contains(key)
            assert await store.size() == 1
        finally:
            await client.aclose()

    @settings(deadline=None)
    @given(key=nullable_text, first=nullable_text, second=nullable_text)
    async def test_overwrite_returns_previous(self, key, first, second):
        client, store = await _fresh_store()
        try:
            await store.put(key, first)
            assert await store.put(key, second) == first
            assert await store.get(key) == second
            assert await store.size() == 1
        finally:
            await client.aclose()


class TestSizeModel:
    """size() counts the distinct live keys after any operation sequence."""

    @settings(deadline=None)
    @given(ops=operations)
    async def test_size_matches_model(self, ops):
        client, store = await _fresh_store()
        model: dict = {}
        try:
            for name, key, value in ops:
                if name == "put":
                    await store.put(key, value)
                    model[key] = value
                elif name == "put_if_absent":
                    await store.put_if_absent(key, value)
                    # A None-valued field counts as absent
                    if model.get(key) is None:
                        model[key] = value
                elif name == "remove":
                    await store.remove(key)
                    model.pop(key, None)
                elif name == "remove_all":
                    await store.remove_all(key)
                    for k in key:
                        model.pop(k, None)
                else:
                    await store.clear()
                    model.clear()

                assert await store.size() == len(model)

            for k, v in model.items():
                assert await store.get(k) == v
        finally:
            await client.aclose()
