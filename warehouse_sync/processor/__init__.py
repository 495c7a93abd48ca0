"""
Processor package for sync operations.
"""

from .rules import (
    map_external_status,
    compute_after_date,
    should_push_stock,
    effective_out_of_stock_behavior,
    build_stock_payload,
    DEFAULT_STATUS_MAP,
    FALLBACK_STATUS,
)
from .locks import StoreLockRegistry
from .orders import sync_orders, OrderSyncReport, ItemFailure
from .products import sync_products, ProductSyncReport, SyncMode
from .stock import push_stock, PushResult, StockPushDispatcher, StockPushError
from .sync import sync_store, SyncError
from .runner import (
    run_single_store, run_specific_store, SyncResult,
    StoreNotFoundError, StoreInactiveError
)
from .scheduler import SyncScheduler, is_due, minutes_since_last_sync
from .webhooks import (
    handle_store_webhook, verify_signature, compute_signature, WebhookOutcome,
    SIGNATURE_HEADER, TOPIC_HEADER
)

__all__ = [
    "map_external_status",
    "compute_after_date",
    "should_push_stock",
    "effective_out_of_stock_behavior",
    "build_stock_payload",
    "DEFAULT_STATUS_MAP",
    "FALLBACK_STATUS",
    "StoreLockRegistry",
    "sync_orders",
    "OrderSyncReport",
    "ItemFailure",
    "sync_products",
    "ProductSyncReport",
    "SyncMode",
    "push_stock",
    "PushResult",
    "StockPushDispatcher",
    "StockPushError",
    "sync_store",
    "SyncError",
    "run_single_store",
    "run_specific_store",
    "SyncResult",
    "StoreNotFoundError",
    "StoreInactiveError",
    "SyncScheduler",
    "is_due",
    "minutes_since_last_sync",
    "handle_store_webhook",
    "verify_signature",
    "compute_signature",
    "WebhookOutcome",
    "SIGNATURE_HEADER",
    "TOPIC_HEADER",
]
