"""
Periodic sync scheduler.

Each tick lists the active auto-sync stores and runs every store whose
configured interval has elapsed since its last successful sync.
"""

import asyncio
import logging
import math
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from ..db import Store, utcnow
from .runner import SyncResult

logger = logging.getLogger(__name__)


Clock = Callable[[], datetime]
StoreProvider = Callable[[], Awaitable[List[Store]]]
StoreRunner = Callable[..., Awaitable[SyncResult]]


def minutes_since_last_sync(store: Store, now: datetime) -> float:
    """Minutes since the store last synced; infinite if it never has."""
    if store.last_sync_at is None:
        return math.inf
    return (now - store.last_sync_at).total_seconds() / 60


def is_due(store: Store, now: datetime) -> bool:
    return minutes_since_last_sync(store, now) >= store.sync_interval_min


class SyncScheduler:
    """
    Drives store syncs on a fixed tick.

    Args:
        run_store: Coroutine function `(store, cancel=event) -> SyncResult`
        store_provider: Coroutine function returning the candidate stores
        clock: Returns the current time
        tick_seconds: Delay between ticks
        max_concurrent: Stores synced in parallel within a tick
        store_timeout: Wall-clock bound for one store's sync
    """

    def __init__(
        self,
        run_store: StoreRunner,
        store_provider: StoreProvider,
        clock: Clock = utcnow,
        tick_seconds: float = 60.0,
        max_concurrent: int = 5,
        store_timeout: Optional[float] = None
    ):
        self._run_store = run_store
        self._store_provider = store_provider
        self._clock = clock
        self.tick_seconds = tick_seconds
        self.max_concurrent = max(1, max_concurrent)
        self.store_timeout = store_timeout
        self.cancel_event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def _run_one(self, store: Store, semaphore: asyncio.Semaphore) -> SyncResult:
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    self._run_store(store, cancel=self.cancel_event),
                    timeout=self.store_timeout,
                )
            except asyncio.TimeoutError:
                logger.error(f"Sync for store '{store.name}' exceeded {self.store_timeout}s")
                return SyncResult(store=store, log=None, error="Sync timed out")
            except Exception as e:
                logger.exception(f"Sync failed for store '{store.name}'")
                return SyncResult(store=store, log=None, error=str(e))

    async def tick(self) -> List[SyncResult]:
        """Run one scheduling pass and return the results of the stores that ran."""
        stores = await self._store_provider()
        now = self._clock()

        due = [store for store in stores if is_due(store, now)]
        if not due:
            logger.debug(f"No stores due ({len(stores)} candidates)")
            return []

        logger.info(f"Scheduler tick: {len(due)} of {len(stores)} stores due")

        semaphore = asyncio.Semaphore(self.max_concurrent)
        results = await asyncio.gather(*(self._run_one(store, semaphore) for store in due))

        successful = sum(1 for r in results if r.success)
        logger.info(f"Scheduler tick complete: {successful} successful, {len(results) - successful} failed")
        return list(results)

    async def run_forever(self) -> None:
        logger.info(f"Scheduler started (tick every {self.tick_seconds}s)")
        while not self.cancel_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")

            try:
                await asyncio.wait_for(self.cancel_event.wait(), timeout=self.tick_seconds)
            except asyncio.TimeoutError:
                pass
        logger.info("Scheduler stopped")

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self.cancel_event.clear()
            self._task = asyncio.create_task(self.run_forever())
        return self._task

    async def stop(self) -> None:
        """Signal in-flight walks to stop between pages and wait for the loop to exit."""
        self.cancel_event.set()
        if self._task is not None:
            await self._task
            self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
