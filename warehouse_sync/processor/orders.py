"""
Incremental order sync for a single store.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..db import Store, TenantScopedDatabase, TenantContextError, TenantSettings, generate_uuid, utcnow
from ..woocommerce import WooCommerceClient
from .rules import compute_after_date, map_external_status

logger = logging.getLogger(__name__)


# Fields refreshed from upstream on every pass. Internal `status` is only
# written on insert.
ORDER_MIRROR_FIELDS = (
    "external_status",
    "customer_name",
    "customer_email",
    "shipping_address",
    "billing_address",
    "total",
    "currency",
    "updated_at",
)

ITEM_UPDATE_FIELDS = ("product_id", "sku", "name", "quantity", "price")


@dataclass
class ItemFailure:
    """An upstream record that could not be stored."""
    external_id: Any
    error: str


@dataclass
class OrderSyncReport:
    """Outcome of one order walk."""
    after_date: Optional[datetime] = None
    pages: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    failures: List[ItemFailure] = field(default_factory=list)
    completed: bool = False
    skipped_reason: Optional[str] = None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a WooCommerce timestamp; naive values are taken as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except InvalidOperation:
        return Decimal("0")


def merge_line_items(line_items: List[Dict[str, Any]]) -> Dict[int, Dict[str, Any]]:
    """
    Collapse line items to one entry per sellable product.

    Variation lines are keyed by variation id, since variations are the
    imported catalog records. Repeated lines for the same product add up.
    """
    merged: Dict[int, Dict[str, Any]] = {}
    for item in line_items:
        external_product_id = int(item.get("variation_id") or item.get("product_id") or 0)
        quantity = int(item.get("quantity") or 0)

        if external_product_id in merged:
            merged[external_product_id]["quantity"] += quantity
            continue

        merged[external_product_id] = {
            "external_product_id": external_product_id,
            "sku": item.get("sku") or None,
            "name": item.get("name") or "",
            "quantity": quantity,
            "price": _to_decimal(item.get("price")),
        }
    return merged


async def sync_order_items(
    scoped: TenantScopedDatabase,
    store: Store,
    order_id: str,
    line_items: List[Dict[str, Any]]
) -> None:
    """Upsert an order's items on (order_id, external_product_id) and drop removed ones."""
    merged = merge_line_items(line_items)

    for external_product_id, item in merged.items():
        product = await scoped.find_first(
            "products", {"external_id": external_product_id, "store_id": store.id}
        )
        await scoped.upsert(
            "order_items",
            {
                "id": generate_uuid(),
                "order_id": order_id,
                "product_id": product["id"] if product else None,
                **item,
            },
            conflict_columns=("order_id", "external_product_id"),
            update_columns=ITEM_UPDATE_FIELDS,
        )

    existing = await scoped.find_many("order_items", {"order_id": order_id})
    stale = [row["id"] for row in existing if row["external_product_id"] not in merged]
    if stale:
        await scoped.delete_many("order_items", {"id": stale})


async def upsert_order(
    scoped: TenantScopedDatabase,
    store: Store,
    order: Dict[str, Any],
    tenant_settings: TenantSettings
) -> bool:
    """
    Store one upstream order and its items.

    Returns:
        True if the order was created, False if it already existed
    """
    key = {"external_id": int(order["id"]), "store_id": store.id}
    billing = order.get("billing") or {}

    mirror = {
        "external_status": order.get("status") or "",
        "customer_name": f"{billing.get('first_name', '')} {billing.get('last_name', '')}".strip(),
        "customer_email": billing.get("email") or None,
        "shipping_address": order.get("shipping") or {},
        "billing_address": billing,
        "total": _to_decimal(order.get("total")),
        "currency": order.get("currency") or None,
        "updated_at": utcnow(),
    }

    existing = await scoped.find_first("orders", key)
    if existing:
        await scoped.update_many("orders", {"id": existing["id"]}, mirror)
        order_id = existing["id"]
    else:
        row = await scoped.upsert(
            "orders",
            {
                "id": generate_uuid(),
                **key,
                "order_number": str(order.get("number") or order["id"]),
                "status": map_external_status(mirror["external_status"], tenant_settings),
                "external_created_at": parse_timestamp(
                    order.get("date_created_gmt") or order.get("date_created")
                ),
                "created_at": utcnow(),
                **mirror,
            },
            conflict_columns=("external_id", "store_id"),
            update_columns=ORDER_MIRROR_FIELDS,
        )
        if row is None:
            raise TenantContextError(f"Order {key['external_id']} belongs to another tenant")
        order_id = row["id"]

    await sync_order_items(scoped, store, order_id, order.get("line_items") or [])
    return existing is None


async def sync_orders(
    store: Store,
    scoped: TenantScopedDatabase,
    client: WooCommerceClient,
    now: Optional[datetime] = None,
    page_size: int = 50,
    cancel: Optional[asyncio.Event] = None
) -> OrderSyncReport:
    """
    Pull orders created since the store's cursor and upsert them.

    Pages are fetched oldest first until an empty page. A failing order is
    recorded in the report and the walk continues; an upstream error aborts
    the walk and leaves the cursor where it was.
    """
    report = OrderSyncReport()

    if not store.sync_orders:
        logger.info(f"Order sync disabled for store '{store.name}'")
        report.skipped_reason = "order sync disabled"
        return report

    if store.tenant_id != scoped.tenant_id:
        raise TenantContextError(f"Store {store.id} is not owned by tenant {scoped.tenant_id}")

    now = now or utcnow()
    tenant_settings = await scoped.get_settings()
    report.after_date = compute_after_date(
        now, store.sync_days_back, store.sync_since_date, store.last_sync_at
    )
    statuses = store.order_status_filter or None

    logger.info(f"Starting order sync for store '{store.name}' (after {report.after_date.isoformat()})")

    page = 1
    while True:
        if cancel is not None and cancel.is_set():
            logger.info(f"Order sync for store '{store.name}' cancelled before page {page}")
            return report

        orders = await client.list_orders(page, page_size, report.after_date, statuses)
        if not orders:
            break

        for order in orders:
            try:
                created = await upsert_order(scoped, store, order, tenant_settings)
            except Exception as e:
                report.failures.append(ItemFailure(external_id=order.get("id"), error=str(e)))
                logger.exception(f"Failed to store order {order.get('id')} for store '{store.name}'")
                continue

            report.processed += 1
            if created:
                report.created += 1
            else:
                report.updated += 1

        report.pages += 1
        logger.info(f"Processed order page {page} ({len(orders)} orders)")
        page += 1

    await scoped.update_many(
        "stores", {"id": store.id}, {"last_sync_at": now, "updated_at": utcnow()}
    )
    report.completed = True

    logger.info(
        f"Order sync complete for store '{store.name}': "
        f"{report.created} created, {report.updated} updated, {len(report.failures)} failed"
    )
    return report
