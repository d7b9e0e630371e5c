"""Tests for the LocalCache."""

import sqlite3
from unittest.mock import patch

import pytest

from namereveal.state import SharedState
from namereveal.sync import CacheMiss, LocalCache
from namereveal.sync.cache import STATE_KEY, TIMESTAMP_KEY


def make_state(*guests: str, last_updated: int = 100) -> SharedState:
    return SharedState(authenticated_guests=frozenset(guests), last_updated=last_updated)


class TestLocalCache:
    """Tests for get/put/snapshot."""

    def test_connect_creates_table(self):
        """Test that connect() creates the kv_cache table."""
        cache = LocalCache(":memory:")
        cache.connect()

        tables = cache._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ).fetchall()

        assert "kv_cache" in [t[0] for t in tables]
        cache.close()

    def test_get_empty(self, cache):
        """Test get() on an empty cache returns None."""
        assert cache.get() is None

    def test_snapshot_raises_cache_miss(self, cache):
        with pytest.raises(CacheMiss):
            cache.snapshot()

    def test_put_and_get(self, cache):
        """Test a stored state comes back with its fetch timestamp."""
        state = make_state("g1", "g2")

        cache.put(state)
        cached = cache.get()

        assert cached.state == state
        assert cached.fetched_at == 1_700_000_000_000

    def test_put_overwrites(self, cache):
        cache.put(make_state("g1", last_updated=1))
        cache.put(make_state("g1", "g2", last_updated=2))

        assert cache.snapshot().state.authenticated_guests == frozenset({"g1", "g2"})

    def test_uses_two_keys(self, cache):
        """Test the snapshot and its timestamp live under separate keys."""
        cache.put(make_state("g1"))

        keys = {
            row[0] for row in cache._conn.execute("SELECT key FROM kv_cache").fetchall()
        }

        assert keys == {STATE_KEY, TIMESTAMP_KEY}

    def test_unreadable_entry_is_a_miss(self, cache):
        """Test a corrupt stored value is treated as absent."""
        cache._conn.execute(
            "INSERT INTO kv_cache (key, value) VALUES (?, ?)", (STATE_KEY, "{broken")
        )
        cache._conn.commit()

        assert cache.get() is None

    def test_put_failure_is_silent(self, cache):
        """Test storage errors on put do not reach the caller."""
        with patch.object(
            cache,
            "_ensure_connected",
            side_effect=sqlite3.OperationalError("database or disk is full"),
        ):
            cache.put(make_state("g1"))

        assert cache.get() is None

    def test_clear(self, cache):
        cache.put(make_state("g1"))
        cache.clear()

        assert cache.get() is None

    def test_persists_across_reopen(self, tmp_path):
        """Test the snapshot survives closing and reopening the file."""
        db_path = tmp_path / "nested" / "cache.db"
        first = LocalCache(db_path)
        first.connect()
        first.put(make_state("g1", last_updated=42))
        first.close()

        second = LocalCache(db_path)
        second.connect()
        cached = second.get()
        second.close()

        assert cached.state.authenticated_guests == frozenset({"g1"})
        assert cached.state.last_updated == 42
