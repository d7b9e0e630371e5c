"""Sync client exposing load / mutate / subscribe over the shared document.

Composes the local cache, the rate limiter, and a remote store adapter into
one API that always hands callers a best-effort state.
"""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from ..state import (
    RevealConfig,
    SharedState,
    Transform,
    add_guest,
    default_state,
    merge_states,
    reveal_name,
)
from .cache import LocalCache
from .errors import CacheMiss, CredentialMissing, RemoteUnavailable
from .poller import OnChange, StatePoller
from .rate_limit import RateLimiter
from .remote import RemoteStateStore

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0


class StateSource(Enum):
    """Where a loaded state came from."""

    REMOTE = "remote"
    CACHE = "cache"
    DEFAULT = "default"


@dataclass
class LoadResult:
    """Result of a load, with provenance.

    ``error`` is set when the remote call was attempted and failed; it is None
    both on success and when the call was skipped for rate limiting.
    """

    state: SharedState
    source: StateSource
    error: str | None = None

    @property
    def from_remote(self) -> bool:
        return self.source is StateSource.REMOTE


class SyncClient:
    """Read, read-modify-write, and poll the shared ceremony state.

    ``mutate`` is a non-atomic read-modify-write. Concurrent writers only
    stay consistent when their transforms are merge-safe (see
    ``namereveal.state``).
    """

    def __init__(
        self,
        store: RemoteStateStore,
        cache: LocalCache,
        limiter: RateLimiter | None = None,
        default_config: RevealConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the sync client.

        Args:
            store: Remote adapter (direct or proxied).
            cache: Local cache for fallback reads.
            limiter: Rate limiter; defaults to the one the store reports into.
            default_config: Config embedded in the default state.
            clock: Returns the current time in epoch seconds.
        """
        self.store = store
        self.cache = cache
        self.limiter = limiter if limiter is not None else store.limiter
        self.default_config = default_config
        self.clock = clock
        self._highest_seen = 0
        self._intent: SharedState | None = None
        self._pollers: set[StatePoller] = set()

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _observe(self, state: SharedState) -> None:
        self._highest_seen = max(self._highest_seen, state.last_updated)

    def _fallback(self, error: str | None) -> LoadResult:
        try:
            cached = self.cache.snapshot()
        except CacheMiss:
            state = replace(
                default_state(self.default_config), last_updated=self._now_ms()
            )
            return LoadResult(state=state, source=StateSource.DEFAULT, error=error)
        return LoadResult(state=cached.state, source=StateSource.CACHE, error=error)

    async def fetch(self) -> LoadResult:
        """Load the state and report where it came from."""
        if self.limiter.should_skip(self.clock()):
            logger.warning(
                f"Rate limit reached, using cached data until reset at "
                f"{self.limiter.status.reset_at:.0f}"
            )
            return self._fallback(None)

        try:
            state = await self.store.fetch_document()
        except RemoteUnavailable as e:
            logger.warning(f"Error loading guest state, falling back to cache: {e}")
            return self._fallback(str(e))

        self._observe(state)
        self.cache.put(state)
        return LoadResult(state=state, source=StateSource.REMOTE)

    async def load(self) -> SharedState:
        """Return the freshest state available. Never raises for remote failures."""
        return (await self.fetch()).state

    async def mutate(self, transform: Transform) -> SharedState:
        """Load, apply ``transform``, and write the result back.

        The candidate is cached even when the write fails so this session sees
        its own intent; the next successful poll reconciles it.

        Returns:
            The state that was written.

        Raises:
            RemoteUnavailable: The write did not reach the store.
            CredentialMissing: No credential is available for the write.
        """
        return await self._commit(await self.fetch(), transform)

    async def _commit(self, result: LoadResult, transform: Transform) -> SharedState:
        loaded = result.state
        if result.source is StateSource.DEFAULT:
            logger.warning(
                "Writing on top of the default state: the remote document could not "
                "be read and nothing is cached, so existing entries may be overwritten"
            )
        candidate = transform(loaded)

        # Re-assert this session's earlier intents. A mutate whose load went
        # stale while another one from this session was in flight would
        # otherwise drop that one's changes.
        if self._intent is not None:
            candidate = merge_states(candidate, self._intent)
        self._intent = candidate

        # Never write a version at or below anything already observed.
        version = max(
            self._now_ms(),
            loaded.last_updated + 1,
            self._highest_seen + 1,
        )
        candidate = replace(candidate, last_updated=version)
        self._observe(candidate)

        try:
            await self.store.put_document(candidate)
        except (RemoteUnavailable, CredentialMissing) as e:
            logger.error(f"Error saving guest state: {e}")
            self.cache.put(candidate)
            raise

        self.cache.put(candidate)
        return candidate

    async def add_authenticated_guest(self, guest_id: str) -> SharedState:
        """Check a guest in. Skips the write if already present."""
        result = await self.fetch()
        if guest_id in result.state.authenticated_guests:
            logger.debug(f"Guest {guest_id} already checked in")
            return result.state
        return await self._commit(result, add_guest(guest_id))

    async def set_name_revealed(self) -> SharedState:
        """Reveal the name."""
        return await self.mutate(reveal_name())

    def subscribe(
        self,
        on_change: OnChange,
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> Callable[[], None]:
        """Start polling and call ``on_change`` with each newer state.

        Must be called from within a running event loop.

        Returns:
            A function that stops the poller.
        """
        poller = StatePoller(self, on_change, interval=interval)
        poller.start()
        self._pollers.add(poller)

        def unsubscribe() -> None:
            poller.cancel()
            self._pollers.discard(poller)

        return unsubscribe

    async def close(self) -> None:
        """Stop all pollers and close the HTTP client."""
        for poller in list(self._pollers):
            poller.cancel()
        self._pollers.clear()
        await self.store.close()
