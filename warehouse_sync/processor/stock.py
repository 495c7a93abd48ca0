"""
Stock push-back to WooCommerce.

Called after local stock changes (adjustments, receiving). Pushing is
best-effort: `StockPushDispatcher.schedule` returns immediately and a failed
push is only logged, never reported to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Set

from ..db import Product, SQLiteDatabase, Store, TenantScopedDatabase
from ..woocommerce import ClientCache
from .rules import build_stock_payload, effective_out_of_stock_behavior, should_push_stock

logger = logging.getLogger(__name__)
pushback_logger = logging.getLogger("warehouse_sync.pushback")


class StockPushError(Exception):
    """Push-back could not be attempted."""
    pass


@dataclass
class PushResult:
    """What was (or would have been) sent for one product."""
    product_id: str
    sku: Optional[str]
    stock_quantity: int
    pushed: bool
    stock_status: Optional[str] = None
    backorders: Optional[str] = None


async def push_stock(
    scoped: TenantScopedDatabase,
    clients: ClientCache,
    product_id: str
) -> PushResult:
    """
    Push the sellable quantity (stock - reserved) of one product upstream.

    Raises:
        StockPushError: If the product or its store cannot be used
        CommerceClientError: If the upstream update fails
    """
    row = await scoped.find_unique("products", "id", product_id)
    if not row:
        raise StockPushError(f"Product not found: {product_id}")
    product = Product.model_validate(row)

    store_row = await scoped.find_unique("stores", "id", product.store_id)
    if not store_row:
        raise StockPushError(f"Store not found for product {product_id}")
    store = Store.model_validate(store_row)
    if not store.is_active:
        raise StockPushError(f"Store '{store.name}' is not active")

    tenant_settings = await scoped.get_settings()
    sellable = product.sellable_qty

    if not should_push_stock(tenant_settings, product.sync_settings):
        logger.debug(f"Stock push disabled for product {product.sku or product.id}")
        return PushResult(product_id=product.id, sku=product.sku, stock_quantity=sellable, pushed=False)

    behavior = effective_out_of_stock_behavior(tenant_settings, product.sync_settings)
    payload = build_stock_payload(sellable, behavior)

    parent_id = product.external_parent_id if product.product_type == "variation" else None
    await clients.get(store).update_stock(product.external_id, payload, parent_id=parent_id)

    logger.info(
        f"Pushed stock for {product.sku or product.id}: qty={sellable}, "
        f"status={payload['stock_status']}, backorders={payload['backorders']}"
    )
    return PushResult(
        product_id=product.id,
        sku=product.sku,
        stock_quantity=sellable,
        pushed=True,
        stock_status=payload["stock_status"],
        backorders=payload["backorders"],
    )


class StockPushDispatcher:
    """Runs push-backs as detached tasks."""

    def __init__(self, db: SQLiteDatabase, clients: ClientCache):
        self._db = db
        self._clients = clients
        self._tasks: Set[asyncio.Task] = set()

    def schedule(self, tenant_id: str, product_id: str) -> asyncio.Task:
        """Start a push for one product and return without waiting for it."""
        task = asyncio.create_task(self._run(tenant_id, product_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, tenant_id: str, product_id: str) -> Optional[PushResult]:
        try:
            scoped = TenantScopedDatabase(self._db, tenant_id)
            return await push_stock(scoped, self._clients, product_id)
        except Exception as e:
            pushback_logger.warning(f"Stock push failed for product {product_id} (tenant {tenant_id}): {e}")
            return None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight pushes (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
