"""Durable local cache for the last known-good shared state.

Backed by a small SQLite key-value table so the snapshot survives restarts of
the same profile. Writes are best-effort: a failing ``put`` is logged and
dropped, the caller's in-memory value stays authoritative for the session.
"""

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from ..state import SharedState, now_ms
from .errors import CacheMiss

logger = logging.getLogger(__name__)

CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_cache (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

# Key layout: one key for the snapshot, one for when it was fetched.
STATE_KEY = "guestStateCached"
TIMESTAMP_KEY = "guestStateTimestamp"


@dataclass
class CachedSnapshot:
    """A cached state plus the time (epoch ms) it was stored."""

    state: SharedState
    fetched_at: int


class LocalCache:
    """String-to-string store holding one ``CachedSnapshot``."""

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the cache.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
            clock: Returns the current time in epoch milliseconds.
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path).expanduser()
        self._clock = clock
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Open the database and create the table."""
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.executescript(CACHE_SCHEMA)
        self._conn.commit()
        logger.debug(f"LocalCache connected to {self.db_path}")

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def _get_raw(self, key: str) -> str | None:
        row = self._ensure_connected().execute(
            "SELECT value FROM kv_cache WHERE key = ?", (key,)
        ).fetchone()
        return row[0] if row else None

    def get(self) -> CachedSnapshot | None:
        """Return the cached snapshot, or None when absent or unreadable."""
        try:
            raw_state = self._get_raw(STATE_KEY)
            raw_ts = self._get_raw(TIMESTAMP_KEY)
        except sqlite3.Error as e:
            logger.warning(f"Cache read failed: {e}")
            return None

        if raw_state is None:
            return None

        try:
            state = SharedState.from_json(raw_state)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable cache entry: {e}")
            return None

        try:
            fetched_at = int(raw_ts) if raw_ts is not None else 0
        except ValueError:
            fetched_at = 0

        return CachedSnapshot(state=state, fetched_at=fetched_at)

    def snapshot(self) -> CachedSnapshot:
        """Return the cached snapshot.

        Raises:
            CacheMiss: If nothing usable is cached.
        """
        cached = self.get()
        if cached is None:
            raise CacheMiss("No cached state available")
        return cached

    def put(self, state: SharedState) -> None:
        """Store ``state`` with the current time, overwriting any prior value."""
        try:
            conn = self._ensure_connected()
            conn.executemany(
                "INSERT OR REPLACE INTO kv_cache (key, value) VALUES (?, ?)",
                [
                    (STATE_KEY, state.to_json()),
                    (TIMESTAMP_KEY, str(self._clock())),
                ],
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Cache write failed, keeping in-memory state only: {e}")

    def clear(self) -> None:
        """Remove the cached snapshot."""
        conn = self._ensure_connected()
        conn.execute(
            "DELETE FROM kv_cache WHERE key IN (?, ?)", (STATE_KEY, TIMESTAMP_KEY)
        )
        conn.commit()
