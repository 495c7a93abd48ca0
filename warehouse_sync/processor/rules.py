"""
Business rules for syncing: status mapping, the order cursor, and stock push policy.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..db import OutOfStockBehavior, ProductSyncSettings, TenantSettings


# WooCommerce order status → internal status
DEFAULT_STATUS_MAP = {
    "pending": "PENDING",
    "processing": "PROCESSING",
    "on-hold": "ON_HOLD",
    "completed": "DELIVERED",
    "cancelled": "CANCELLED",
    "refunded": "CANCELLED",
    "failed": "CANCELLED",
}

FALLBACK_STATUS = "PENDING"


def map_external_status(
    external_status: str,
    tenant_settings: Optional[TenantSettings] = None
) -> str:
    """
    Resolve the internal status of a newly imported order.

    Priority:
    1. Tenant status mapping
    2. Built-in mapping
    3. Tenant default for new orders
    4. PENDING
    """
    tenant_settings = tenant_settings or TenantSettings()

    custom = tenant_settings.status_mapping.get(external_status)
    if custom:
        return custom

    return (
        DEFAULT_STATUS_MAP.get(external_status)
        or tenant_settings.default_new_order_status
        or FALLBACK_STATUS
    )


def compute_after_date(
    now: datetime,
    days_back: int,
    since_date: Optional[datetime] = None,
    last_sync_at: Optional[datetime] = None
) -> datetime:
    """
    Lower bound for an incremental order pull.

    The backlog window (now - days_back) can be narrowed by an explicit
    since-date; after the first run the last successful sync moves it forward.
    """
    cutoff = now - timedelta(days=days_back)
    if since_date and since_date > cutoff:
        cutoff = since_date

    if last_sync_at and last_sync_at > cutoff:
        return last_sync_at
    return cutoff


def should_push_stock(
    tenant_settings: TenantSettings,
    product_settings: Optional[ProductSyncSettings] = None
) -> bool:
    """An explicit per-product setting wins over the tenant default."""
    if product_settings is not None and product_settings.push_enabled is not None:
        return product_settings.push_enabled
    return tenant_settings.push_stock_enabled


def effective_out_of_stock_behavior(
    tenant_settings: TenantSettings,
    product_settings: Optional[ProductSyncSettings] = None
) -> OutOfStockBehavior:
    if product_settings is not None and product_settings.out_of_stock_behavior:
        return product_settings.out_of_stock_behavior
    return tenant_settings.out_of_stock_behavior


def build_stock_payload(sellable_qty: int, behavior: OutOfStockBehavior) -> Dict[str, Any]:
    """
    Stock fields sent upstream for a sellable quantity.

    Backorder behaviours keep an empty product purchasable; the others
    mark it out of stock.
    """
    backorders = {
        OutOfStockBehavior.ALLOW_BACKORDERS: "yes",
        OutOfStockBehavior.ALLOW_BACKORDERS_NOTIFY: "notify",
    }.get(behavior, "no")

    if sellable_qty > 0:
        stock_status = "instock"
    elif backorders != "no":
        stock_status = "onbackorder"
    else:
        stock_status = "outofstock"

    return {
        "stock_quantity": sellable_qty,
        "manage_stock": True,
        "stock_status": stock_status,
        "backorders": backorders,
    }
