from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from .config import POLL_SECS, logger
from .errors import AuthenticationError, NotFoundError
from .tracker import ParseTracker

if TYPE_CHECKING:
    from .registry import TenantState


class TrackingScheduler:
    """Runs one polling task per tenant.

    A tenant is either stopped (no worker) or running (a worker task waiting on
    its stop event with the poll interval as timeout). Stopping never cancels
    the task: the character being checked finishes, then the loop sees the
    event and exits.
    """

    def __init__(self, tracker: ParseTracker, interval: float = POLL_SECS):
        self.tracker = tracker
        self.interval = interval

    @staticmethod
    def is_running(state: TenantState) -> bool:
        return state.worker is not None and not state.worker.done()

    def start(self, state: TenantState) -> None:
        if self.is_running(state):
            return  # Already running
        state.stop_event = asyncio.Event()
        state.worker = asyncio.create_task(self.watch_loop(state, state.stop_event))

    async def stop(self, state: TenantState) -> None:
        """Signal the worker and wait until it has exited."""
        worker = state.worker
        if worker is None:
            return
        if state.stop_event is not None:
            state.stop_event.set()
        try:
            await worker
        finally:
            state.worker = None
            state.stop_event = None

    async def restart(self, state: TenantState) -> None:
        await self.stop(state)
        self.start(state)

    async def watch_loop(self, state: TenantState, stop_event: asyncio.Event) -> None:
        logger.info(f"Started tracking loop for chat {state.tenant_id} (every {self.interval}s)")
        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
                    break
                except asyncio.TimeoutError:
                    pass
                await self.run_tick(state, stop_event)
        finally:
            logger.info(f"Tracking loop stopped for chat {state.tenant_id}")

    async def run_tick(self, state: TenantState, stop_event: asyncio.Event | None = None) -> int:
        """Check every tracked character in list order, returns the number of failures."""
        async with state.lock:
            characters = list(state.tracked)
            client = state.client
        if client is None:
            return 0

        failures = 0
        for character in characters:
            if stop_event is not None and stop_event.is_set():
                break
            try:
                await self.tracker.check_character(state.tenant_id, client, character)
            except NotFoundError as e:
                logger.info(f"Nothing to check for {character.slug} in chat {state.tenant_id}: {e}")
            except AuthenticationError as e:
                failures += 1
                logger.warning(f"Credentials rejected while checking {character.slug} in chat {state.tenant_id}: {e}")
            except Exception as e:
                failures += 1
                logger.error(f"Check failed for {character.slug} in chat {state.tenant_id}: {e}")
        return failures
