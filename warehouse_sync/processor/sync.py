"""
Sync processor for a single store.
"""

import asyncio
import logging
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from ..config import settings
from ..db import (
    SQLiteDatabase, Store, SyncLog, SyncStatus, LogStatus, TriggerType,
    TenantScopedDatabase, utcnow
)
from ..woocommerce import ClientCache, CommerceAuthError
from .locks import StoreLockRegistry
from .orders import sync_orders
from .products import SyncMode, sync_products

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Error during sync process."""

    def __init__(self, message: str, log: Optional[SyncLog] = None):
        super().__init__(message)
        self.log = log


async def sync_store(
    store: Store,
    db: SQLiteDatabase,
    clients: ClientCache,
    locks: StoreLockRegistry,
    triggered_by: TriggerType = TriggerType.MANUAL,
    include_products: bool = True,
    mode: SyncMode = SyncMode.ADD_AND_UPDATE,
    import_stock: bool = False,
    now: Optional[datetime] = None,
    cancel: Optional[asyncio.Event] = None
) -> SyncLog:
    """
    Run orders then (optionally) products for one store.

    Holds the store's lock for the whole run. The store row is re-read once
    the lock is held, so a run queued behind another sees its cursor.
    On success the store's last_sync_at is stamped with the run start time.
    """
    async with locks.hold(store.id):
        current = await db.get_store(store.id)
        if current is None or not current.is_active:
            raise SyncError(f"Store '{store.name}' is no longer active")
        store = current

        now = now or utcnow()
        log = await db.create_log(store, triggered_by)
        logger.info(f"Starting {triggered_by.value} sync for store '{store.name}' (log: {log.id})")

        await db.update_store_sync_status(store.id, SyncStatus.RUNNING)

        stats: Dict[str, Any] = {}
        scoped = TenantScopedDatabase(db, store.tenant_id)

        try:
            client = clients.get(store)

            orders = await sync_orders(
                store, scoped, client,
                now=now,
                page_size=settings.order_page_size,
                cancel=cancel,
            )
            stats.update(
                orders_processed=orders.processed,
                orders_created=orders.created,
                orders_updated=orders.updated,
                items_failed=len(orders.failures),
            )
            if orders.skipped_reason is None and not orders.completed:
                raise SyncError("Sync cancelled during order walk")

            if include_products:
                products = await sync_products(
                    store, scoped, client,
                    mode=mode,
                    import_stock=import_stock,
                    page_size=settings.product_page_size,
                    variation_page_size=settings.variation_page_size,
                    default_currency=settings.default_currency,
                    default_low_stock_threshold=settings.default_low_stock_threshold,
                    cancel=cancel,
                )
                stats.update(
                    products_added=products.added,
                    products_updated=products.updated,
                    products_skipped=products.skipped,
                    items_failed=stats["items_failed"] + len(products.failures),
                )
                if products.skipped_reason is None and not products.completed:
                    raise SyncError("Sync cancelled during product walk")

            if stats["items_failed"]:
                logger.warning(
                    f"Sync for store '{store.name}' finished with {stats['items_failed']} failed records"
                )

            await db.update_store_sync_status(
                store.id,
                SyncStatus.SUCCESS,
                last_sync_at=now if include_products else None,
                needs_reconnect=False,
            )
            return await db.finish_log(log.id, LogStatus.SUCCESS, **stats)

        except asyncio.CancelledError:
            logger.warning(f"Sync for store '{store.name}' was interrupted")
            await db.finish_log(log.id, LogStatus.FAILED, error_message="Sync interrupted", **stats)
            await db.update_store_sync_status(store.id, SyncStatus.FAILED)
            raise

        except Exception as e:
            logger.error(f"Sync failed for store '{store.name}': {e}")
            logger.debug(traceback.format_exc())

            failed_log = await db.finish_log(
                log.id,
                LogStatus.FAILED,
                error_message=str(e),
                error_details=traceback.format_exc(),
                **stats
            )
            await db.update_store_sync_status(
                store.id,
                SyncStatus.FAILED,
                needs_reconnect=True if isinstance(e, CommerceAuthError) else None,
            )
            if isinstance(e, SyncError):
                e.log = failed_log
                raise
            raise SyncError(f"Sync failed: {e}", log=failed_log) from e
