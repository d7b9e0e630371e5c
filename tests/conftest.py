"""Shared fixtures for the sync tests."""

import asyncio

import pytest

from namereveal.state import SharedState
from namereveal.sync import LocalCache, RateLimiter, RemoteUnavailable, SyncClient
from namereveal.sync.remote import RemoteStateStore

FIXED_NOW = 1_700_000_000.0  # epoch seconds


class FakeStateStore(RemoteStateStore):
    """In-memory document store with call counters and failure switches."""

    def __init__(self, document: SharedState | None = None, limiter: RateLimiter | None = None):
        super().__init__(limiter=limiter)
        self.document = document
        self.fetch_calls = 0
        self.put_calls = 0
        self.written: list[SharedState] = []
        self.fetch_error: Exception | None = None
        self.put_error: Exception | None = None
        self.on_fetch = None
        self.yield_on_io = False

    async def fetch_document(self) -> SharedState:
        self.fetch_calls += 1
        if self.on_fetch:
            self.on_fetch()
        if self.fetch_error:
            raise self.fetch_error
        if self.document is None:
            raise RemoteUnavailable('Gist file "guestState.json" not found', status_code=404)
        # Snapshot before yielding so interleaved callers can read stale data.
        document = self.document
        if self.yield_on_io:
            await asyncio.sleep(0)
        return document

    async def put_document(self, state: SharedState) -> None:
        self.put_calls += 1
        if self.put_error:
            raise self.put_error
        if self.yield_on_io:
            await asyncio.sleep(0)
        self.document = state
        self.written.append(state)


@pytest.fixture
def cache():
    """Create an in-memory LocalCache."""
    cache = LocalCache(":memory:", clock=lambda: int(FIXED_NOW * 1000))
    cache.connect()
    yield cache
    cache.close()


@pytest.fixture
def store():
    return FakeStateStore()


@pytest.fixture
def client(store, cache):
    """SyncClient over the fake store with a frozen clock."""
    return SyncClient(store, cache, clock=lambda: FIXED_NOW)
