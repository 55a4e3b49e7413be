"""
Unit Tests: Read-Modify-Write Decision Rules

The rules are pure, so the full present/absent x value/None table is
checked without Redis.
"""

import pytest

from redismap.core.types import MISSING, MutationKind
from redismap.storage import decisions
from redismap.storage.codec import NULL_TOKEN

KEEP = MutationKind.KEEP
WRITE = MutationKind.WRITE
DELETE = MutationKind.DELETE


def _returning(value):
    """Mapping/remapping function that ignores its arguments."""
    return lambda *args: value


# (rule, current wire value, function result, expected kind, expected written, expected result)
COMPUTE_TABLE = [
    # compute_if_absent
    (decisions.compute_if_absent, None, "v", WRITE, "v", "v"),
    (decisions.compute_if_absent, None, None, KEEP, None, None),
    (decisions.compute_if_absent, "old", "v", KEEP, None, "old"),
    (decisions.compute_if_absent, "old", None, KEEP, None, "old"),
    # compute_if_present
    (decisions.compute_if_present, None, "v", KEEP, None, None),
    (decisions.compute_if_present, None, None, KEEP, None, None),
    (decisions.compute_if_present, "old", "v", WRITE, "v", "v"),
    (decisions.compute_if_present, "old", None, DELETE, None, None),
    # compute
    (decisions.compute, None, "v", WRITE, "v", "v"),
    (decisions.compute, None, None, KEEP, None, None),
    (decisions.compute, "old", "v", WRITE, "v", "v"),
    (decisions.compute, "old", None, DELETE, None, None),
]


class TestComputeTable:
    """Twelve compute cases: absent/present x function returns value/None."""

    @pytest.mark.parametrize(
        "rule,current,fn_result,kind,written,result",
        COMPUTE_TABLE,
        ids=[
            f"{row[0].__name__}-{'present' if row[1] else 'absent'}-"
            f"{'value' if row[2] else 'none'}"
            for row in COMPUTE_TABLE
        ],
    )
    def test_rule(self, rule, current, fn_result, kind, written, result):
        mutation, outcome = rule(current, "k", _returning(fn_result))
        assert mutation.kind is kind
        assert mutation.value == written
        assert outcome == result

    def test_compute_if_absent_does_not_call_fn_when_present(self):
        calls = []
        decisions.compute_if_absent("old", "k", lambda k: calls.append(k) or "v")
        assert calls == []

    def test_compute_passes_none_for_absent_field(self):
        seen = []
        decisions.compute(None, "k", lambda k, old: seen.append((k, old)))
        assert seen == [("k", None)]

    def test_null_valued_field_counts_as_absent(self):
        mutation, outcome = decisions.compute_if_absent(NULL_TOKEN, "k", _returning("v"))
        assert mutation.kind is WRITE
        assert outcome == "v"

        mutation, outcome = decisions.compute_if_present(NULL_TOKEN, "k", _returning("v"))
        assert mutation.kind is KEEP
        assert outcome is None

    def test_computed_none_key_is_passed_through(self):
        seen = []
        decisions.compute(None, None, lambda k, old: seen.append(k) or "v")
        assert seen == [None]


class TestMerge:
    """merge: absent writes the value; present combines with fn."""

    def test_absent_writes_value(self):
        mutation, outcome = decisions.merge(None, "v", _returning("unused"))
        assert (mutation.kind, mutation.value, outcome) == (WRITE, "v", "v")

    def test_present_writes_merged(self):
        mutation, outcome = decisions.merge("a", "b", lambda old, new: old + new)
        assert (mutation.kind, mutation.value, outcome) == (WRITE, "ab", "ab")

    def test_present_none_deletes(self):
        mutation, outcome = decisions.merge("a", "b", _returning(None))
        assert (mutation.kind, outcome) == (DELETE, None)

    def test_null_valued_field_counts_as_absent(self):
        mutation, outcome = decisions.merge(NULL_TOKEN, "v", _returning("unused"))
        assert (mutation.kind, mutation.value, outcome) == (WRITE, "v", "v")


class TestSimpleRules:
    """Unconditional and conditional put/remove/replace."""

    def test_put(self):
        mutation, previous = decisions.put(None, "v")
        assert mutation.kind is WRITE and previous is MISSING

        mutation, previous = decisions.put(NULL_TOKEN, "v")
        assert mutation.kind is WRITE and previous is None

    def test_put_if_absent(self):
        mutation, previous = decisions.put_if_absent("old", "v")
        assert mutation.kind is KEEP and previous == "old"

        mutation, previous = decisions.put_if_absent(NULL_TOKEN, "v")
        assert mutation.kind is WRITE and previous is None

        mutation, previous = decisions.put_if_absent(None, "v")
        assert mutation.kind is WRITE and previous is MISSING

    def test_remove(self):
        mutation, previous = decisions.remove("old")
        assert mutation.kind is DELETE and previous == "old"

        mutation, previous = decisions.remove(None)
        assert mutation.kind is KEEP and previous is MISSING

    def test_remove_if_equals(self):
        assert decisions.remove_if_equals("a", "a")[1] is True
        assert decisions.remove_if_equals("a", "b")[1] is False
        assert decisions.remove_if_equals(None, "a")[1] is False
        assert decisions.remove_if_equals(NULL_TOKEN, NULL_TOKEN)[0].kind is DELETE

    def test_replace(self):
        mutation, previous = decisions.replace(None, "v")
        assert mutation.kind is KEEP and previous is MISSING

        mutation, previous = decisions.replace("old", "v")
        assert mutation.kind is WRITE and previous == "old"

    def test_replace_if_equals(self):
        mutation, matched = decisions.replace_if_equals("a", "a", "b")
        assert mutation.kind is WRITE and mutation.value == "b" and matched is True

        mutation, matched = decisions.replace_if_equals("a", "x", "b")
        assert mutation.kind is KEEP and matched is False

    def test_replace_with_stores_none(self):
        mutation, value = decisions.replace_with("old", "k", _returning(None))
        assert mutation.kind is WRITE and mutation.value == NULL_TOKEN and value is None

        mutation, value = decisions.replace_with(None, "k", _returning("v"))
        assert mutation.kind is KEEP and value is MISSING
