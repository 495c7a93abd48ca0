"""
Full catalog sync for a single store.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..db import Store, TenantScopedDatabase, TenantContextError, generate_uuid, utcnow
from ..woocommerce import CatalogRecord, CommerceClientError, WooCommerceClient, expand_page
from .orders import ItemFailure

logger = logging.getLogger(__name__)


class SyncMode(str, Enum):
    """Which catalog records a product sync may write."""
    ADD_ONLY = "add_only"
    UPDATE_ONLY = "update_only"
    ADD_AND_UPDATE = "add_and_update"


@dataclass
class ProductSyncReport:
    """Outcome of one catalog walk."""
    currency: Optional[str] = None
    pages: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    deactivated: int = 0
    failures: List[ItemFailure] = field(default_factory=list)
    completed: bool = False
    skipped_reason: Optional[str] = None


async def resolve_currency(client: WooCommerceClient, default: str = "USD") -> str:
    """Read the shop currency; any upstream failure falls back to `default`."""
    try:
        general = await client.get_general_settings()
    except CommerceClientError as e:
        logger.info(f"Could not fetch currency setting, defaulting to {default}: {e}")
        return default

    for setting in general or []:
        if setting.get("id") == "woocommerce_currency" and setting.get("value"):
            return setting["value"]
    return default


async def upsert_product(
    scoped: TenantScopedDatabase,
    store: Store,
    record: CatalogRecord,
    mode: SyncMode,
    import_stock: bool,
    currency: str,
    low_stock_threshold: int
) -> str:
    """
    Store one catalog record.

    Returns:
        "added", "updated" or "skipped"
    """
    key = {"external_id": record.external_id, "store_id": store.id}
    existing = await scoped.find_first("products", key)

    if existing and mode == SyncMode.ADD_ONLY:
        return "skipped"
    if not existing and mode == SyncMode.UPDATE_ONLY:
        return "skipped"

    values = {
        "name": record.name,
        "sku": record.sku,
        "description": record.description,
        "price": record.price,
        "currency": currency,
        "weight": record.weight,
        "length": record.length,
        "width": record.width,
        "height": record.height,
        "size_category": record.size_category,
        "image_url": record.image_url,
        "is_active": record.is_active,
        "product_type": record.product_type,
        "external_parent_id": record.external_parent_id,
        "variant_attributes": record.variant_attributes,
        "updated_at": utcnow(),
    }
    if import_stock:
        values["stock_qty"] = record.stock_qty

    if existing:
        await scoped.update_many("products", {"id": existing["id"]}, values)
        return "updated"

    # Threshold is only set here, so a per-product override survives later syncs.
    row = await scoped.upsert(
        "products",
        {
            "id": generate_uuid(),
            **key,
            **values,
            "stock_qty": record.stock_qty if import_stock else 0,
            "low_stock_threshold": low_stock_threshold,
            "created_at": utcnow(),
        },
        conflict_columns=("external_id", "store_id"),
        update_columns=tuple(values),
    )
    if row is None:
        raise TenantContextError(f"Product {record.external_id} belongs to another tenant")
    return "added"


async def sync_products(
    store: Store,
    scoped: TenantScopedDatabase,
    client: WooCommerceClient,
    mode: SyncMode = SyncMode.ADD_AND_UPDATE,
    import_stock: bool = False,
    page_size: int = 50,
    variation_page_size: int = 100,
    default_currency: str = "USD",
    default_low_stock_threshold: int = 5,
    cancel: Optional[asyncio.Event] = None
) -> ProductSyncReport:
    """
    Pull the whole catalog and upsert every sellable record.

    There is no cursor: upstream modification filters miss stock and price
    changes, so every run walks all pages.
    """
    report = ProductSyncReport()

    if not store.sync_products:
        logger.info(f"Product sync disabled for store '{store.name}'")
        report.skipped_reason = "product sync disabled"
        return report

    if store.tenant_id != scoped.tenant_id:
        raise TenantContextError(f"Store {store.id} is not owned by tenant {scoped.tenant_id}")

    tenant_settings = await scoped.get_settings()
    threshold = tenant_settings.low_stock_threshold
    if threshold is None:
        threshold = default_low_stock_threshold

    report.currency = await resolve_currency(client, default_currency)

    logger.info(
        f"Starting product sync for store '{store.name}' "
        f"(mode: {mode.value}, import_stock: {import_stock})"
    )

    page = 1
    while True:
        if cancel is not None and cancel.is_set():
            logger.info(f"Product sync for store '{store.name}' cancelled before page {page}")
            return report

        products = await client.list_products(page, page_size)
        if not products:
            break

        catalog = await expand_page(client, products, variation_page_size)
        report.skipped += catalog.skipped
        report.failures.extend(
            ItemFailure(external_id=f.external_id, error=f.error) for f in catalog.failures
        )

        if catalog.variable_parent_ids:
            report.deactivated += await scoped.update_many(
                "products",
                {"external_id": catalog.variable_parent_ids, "store_id": store.id, "is_active": True},
                {"is_active": False, "product_type": "variable", "updated_at": utcnow()},
            )

        for record in catalog.records:
            try:
                outcome = await upsert_product(
                    scoped, store, record, mode, import_stock, report.currency, threshold
                )
            except Exception as e:
                report.failures.append(ItemFailure(external_id=record.external_id, error=str(e)))
                logger.exception(f"Failed to store product {record.external_id} for store '{store.name}'")
                continue

            if outcome == "added":
                report.added += 1
            elif outcome == "updated":
                report.updated += 1
            else:
                report.skipped += 1

        report.pages += 1
        logger.info(f"Processed product page {page} ({len(products)} products)")
        page += 1

    report.completed = True
    logger.info(
        f"Product sync complete for store '{store.name}': added {report.added}, "
        f"updated {report.updated}, skipped {report.skipped}"
    )
    return report
