"""Timer-driven change notifier.

The document store has no push channel, so changes are observed by
re-fetching on an interval and comparing ``lastUpdated``.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from ..state import SharedState

if TYPE_CHECKING:
    from .sync_client import SyncClient

logger = logging.getLogger(__name__)

OnChange = Callable[[SharedState], Any]


class PollerState(Enum):
    IDLE = "idle"
    WAITING = "waiting"
    POLLING = "polling"
    STOPPED = "stopped"


class StatePoller:
    """Polls the sync client and dispatches states with a newer version."""

    def __init__(
        self,
        client: "SyncClient",
        on_change: OnChange,
        interval: float = 5.0,
    ):
        """Initialize the poller.

        Args:
            client: Sync client to fetch through.
            on_change: Called with each state newer than the last dispatched.
                May be a plain function or a coroutine function.
            interval: Base seconds between polls.
        """
        self._client = client
        self._on_change = on_change
        self.interval = interval
        self.state = PollerState.IDLE
        self.consecutive_errors = 0
        self.last_dispatched = 0
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def cancelled(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        """Start polling as a background task."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"State polling started (interval={self.interval}s)")

    def cancel(self) -> None:
        """Stop future ticks. An in-flight fetch finishes but is discarded."""
        self._stop_event.set()

    def next_delay(self) -> float:
        """Seconds to wait before the next tick."""
        if self.consecutive_errors == 0:
            return self.interval
        return self._client.limiter.backoff_delay(self.consecutive_errors, self.interval)

    async def _run_loop(self) -> None:
        while not self.cancelled:
            self.state = PollerState.WAITING
            wait_time = self.next_delay()
            if wait_time > self.interval:
                logger.info(f"Backing off polling for {wait_time:.0f}s due to errors")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait_time)
                break  # Cancelled while waiting
            except asyncio.TimeoutError:
                pass

            try:
                await self.tick()
            except Exception as e:
                self.consecutive_errors += 1
                logger.error(f"Error polling state: {e}", exc_info=True)
            finally:
                if not self.cancelled:
                    self.state = PollerState.IDLE

        self.state = PollerState.STOPPED
        logger.info("State polling stopped")

    async def tick(self) -> None:
        """Run one poll: skip, fetch, compare, dispatch."""
        if self._client.limiter.should_skip(self._client.clock()):
            logger.debug("Rate limit exhausted, skipping poll")
            return

        self.state = PollerState.POLLING
        result = await self._client.fetch()

        if self.cancelled:
            return

        if result.error is not None:
            self.consecutive_errors += 1
            return

        # Skipped inside fetch: neither success nor failure.
        if not result.from_remote:
            return

        self.consecutive_errors = 0
        if result.state.last_updated > self.last_dispatched:
            self.last_dispatched = result.state.last_updated
            await self._dispatch(result.state)

    async def _dispatch(self, state: SharedState) -> None:
        try:
            outcome = self._on_change(state)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.error(f"State change handler failed: {e}", exc_info=True)
