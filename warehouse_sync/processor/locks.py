"""
Per-store serialization of sync runs.

The scheduler, webhooks and manual triggers can all ask for the same store
at once; only one walk per store runs at a time.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class StoreLockRegistry:
    """One asyncio.Lock per store id, created on demand."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, store_id: str) -> asyncio.Lock:
        lock = self._locks.get(store_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[store_id] = lock
        return lock

    def is_busy(self, store_id: str) -> bool:
        lock = self._locks.get(store_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, store_id: str) -> AsyncIterator[None]:
        """Wait for and hold the store's lock."""
        async with self._lock_for(store_id):
            yield

    def discard(self, store_id: str) -> None:
        """Forget an idle store's lock (store deleted)."""
        lock = self._locks.get(store_id)
        if lock is not None and not lock.locked():
            del self._locks[store_id]
