"""
Unit tests for Session.

Tests cover:
- get/exists/set/delete semantics, including None values
- Snapshot helpers
- Concurrent readers and writers on one session
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from hypothesis import given, strategies as st

from session.session import Session

NOW = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

keys = st.one_of(st.text(max_size=20), st.integers(), st.tuples(st.integers(), st.text(max_size=5)))
values = st.one_of(st.none(), st.integers(), st.text(), st.lists(st.integers(), max_size=5))


def new_session(session_id: str = "sid-1") -> Session:
    return Session(session_id, NOW)


class TestSessionGet:
    """Tests for Session.get."""

    def test_returns_value_that_was_set(self):
        session = new_session()
        session.set("key1", "value1")

        assert session.get("key1") == "value1"

    def test_missing_key_returns_none(self):
        session = new_session()

        assert session.get("key2") is None

    def test_missing_key_returns_default(self):
        """Test that a caller-supplied default marks absence."""
        session = new_session()
        marker = object()

        assert session.get("key2", marker) is marker

    def test_none_key_is_an_ordinary_key(self):
        session = new_session()

        assert session.get(None) is None
        session.set(None, "value3")
        assert session.get(None) == "value3"


class TestSessionExists:
    """Tests for Session.exists and the in operator."""

    def test_exists_after_set(self):
        session = new_session()
        session.set("key1", "value1")

        assert session.exists("key1")
        assert "key1" in session

    def test_never_set_key_does_not_exist(self):
        session = new_session()

        assert not session.exists("key1")
        assert "key1" not in session

    def test_key_set_to_none_still_exists(self):
        """Test that presence is independent of the stored value."""
        session = new_session()
        session.set("key2", None)

        assert session.exists("key2")
        assert session.get("key2", "absent") is None

    def test_key_set_to_empty_string_still_exists(self):
        session = new_session()
        session.set("key2", "")

        assert session.exists("key2")


class TestSessionSetDelete:
    """Tests for Session.set and Session.delete."""

    def test_set_overwrites(self):
        session = new_session()
        session.set("key1", "value1")
        session.set("key1", "value2")

        assert session.get("key1") == "value2"
        assert len(session) == 1

    def test_delete_removes_key(self):
        session = new_session()
        session.set("key1", "value1")
        session.delete("key1")

        assert not session.exists("key1")
        assert session.get("key1") is None

    def test_delete_absent_key_is_noop(self):
        session = new_session()
        session.set("key1", "value1")

        session.delete("nope")

        assert session.to_dict() == {"key1": "value1"}

    @given(key=keys, value=values)
    def test_set_then_get_and_delete(self, key, value):
        """For any key and value: set makes it visible, delete hides it."""
        session = new_session()

        session.set(key, value)
        assert session.get(key, "absent") == value
        assert session.exists(key)

        session.delete(key)
        assert session.get(key, "absent") == "absent"
        assert not session.exists(key)


class TestSessionSnapshots:
    """Tests for the read-only helpers."""

    def test_initial_state(self):
        session = new_session("abc")

        assert session.id == "abc"
        assert session.last_accessed == NOW
        assert len(session) == 0
        assert session.keys() == []

    def test_to_dict_is_a_copy(self):
        session = new_session()
        session.set("a", 1)

        snapshot = session.to_dict()
        snapshot["b"] = 2

        assert not session.exists("b")

    def test_idle_for(self):
        session = new_session()

        assert session.idle_for(NOW + timedelta(seconds=5)) == timedelta(seconds=5)

    def test_repr(self):
        session = new_session("abc")
        session.set("a", 1)

        assert "abc" in repr(session)
        assert "keys=1" in repr(session)


class TestSessionConcurrency:
    """Tests for concurrent access to a single session."""

    def test_concurrent_reads(self):
        session = new_session()
        session.set("key1", "value1")

        with ThreadPoolExecutor(max_workers=16) as pool:
            results = list(pool.map(lambda _: session.get("key1"), range(100)))

        assert results == ["value1"] * 100

    def test_concurrent_sets_of_distinct_keys(self):
        session = new_session()

        def write(i):
            session.set(f"key{i}", f"value{i}")

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(write, range(100)))

        assert len(session) == 100
        for i in range(100):
            assert session.get(f"key{i}") == f"value{i}"

    def test_concurrent_read_modify_write_under_external_lock(self):
        """Test that no write is lost when every set lands."""
        session = new_session()
        session.set("counter", 0)
        guard = threading.Lock()

        def increment(_):
            with guard:
                session.set("counter", session.get("counter") + 1)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(increment, range(200)))

        assert session.get("counter") == 200
