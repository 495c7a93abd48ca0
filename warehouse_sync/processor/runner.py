"""
Runner for executing store syncs from the scheduler and manual triggers.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ..db import SQLiteDatabase, Store, SyncLog, TenantScopedDatabase, TriggerType
from ..woocommerce import ClientCache
from .locks import StoreLockRegistry
from .sync import sync_store, SyncError

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of a store sync."""
    store: Store
    log: Optional[SyncLog]
    error: Optional[str]

    @property
    def success(self) -> bool:
        return self.error is None


class StoreNotFoundError(LookupError):
    """Store does not exist or is not visible to the caller's tenant."""
    pass


class StoreInactiveError(ValueError):
    """Store has been deactivated."""
    pass


async def run_single_store(
    store: Store,
    db: SQLiteDatabase,
    clients: ClientCache,
    locks: StoreLockRegistry,
    triggered_by: TriggerType = TriggerType.SCHEDULER,
    cancel: Optional[asyncio.Event] = None
) -> SyncResult:
    """Run a full sync (orders, then products) for one store; never raises."""
    try:
        log = await sync_store(store, db, clients, locks, triggered_by, cancel=cancel)
        return SyncResult(store=store, log=log, error=None)
    except SyncError as e:
        logger.error(f"Sync failed for '{store.name}': {e}")
        return SyncResult(store=store, log=e.log, error=str(e))
    except Exception as e:
        logger.exception(f"Unexpected error syncing '{store.name}'")
        return SyncResult(store=store, log=None, error=f"Unexpected error: {e}")


async def run_specific_store(
    store_id: str,
    scoped: TenantScopedDatabase,
    clients: ClientCache,
    locks: StoreLockRegistry,
    triggered_by: TriggerType = TriggerType.MANUAL
) -> SyncResult:
    """
    Run a full sync for one of the caller's stores, ignoring its interval.

    Raises:
        StoreNotFoundError: If the store is missing or owned by another tenant
        StoreInactiveError: If the store has been deactivated
    """
    row = await scoped.find_unique("stores", "id", store_id)
    if not row:
        raise StoreNotFoundError(f"Store not found: {store_id}")

    store = Store.model_validate(row)
    if not store.is_active:
        raise StoreInactiveError(f"Store '{store.name}' is not active")

    return await run_single_store(store, scoped.db, clients, locks, triggered_by)
