"""
Database package - SQLite only.
"""

from .models import (
    Store, StoreCreate, StoreUpdate, SyncLog, SyncStatus, LogStatus,
    TriggerType, Tenant, TenantSettings, Product, ProductSyncSettings,
    Order, OrderItem, OutOfStockBehavior, generate_uuid, utcnow
)
from .sqlite import SQLiteDatabase
from .tenant import TenantScopedDatabase, TenantContextError, TENANT_TABLES

__all__ = [
    "SQLiteDatabase",
    "TenantScopedDatabase",
    "TenantContextError",
    "TENANT_TABLES",
    "Store",
    "StoreCreate",
    "StoreUpdate",
    "SyncLog",
    "SyncStatus",
    "LogStatus",
    "TriggerType",
    "Tenant",
    "TenantSettings",
    "Product",
    "ProductSyncSettings",
    "Order",
    "OrderItem",
    "OutOfStockBehavior",
    "generate_uuid",
    "utcnow",
]
