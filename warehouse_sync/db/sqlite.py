"""
SQLite database implementation.

Table-level operations take plain dicts; column names are checked against the
schema below before any SQL is built. Nothing here knows about tenants: use
TenantScopedDatabase for anything that acts on behalf of a tenant.
"""

import aiosqlite
import json
import os
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from .models import (
    Store, SyncLog, SyncStatus, LogStatus, Tenant, TriggerType, utcnow
)


SCHEMA = """
    CREATE TABLE IF NOT EXISTS tenants (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        settings TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS stores (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        name TEXT NOT NULL,
        url TEXT NOT NULL,
        consumer_key TEXT NOT NULL,
        consumer_secret TEXT NOT NULL,
        webhook_secret TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        auto_sync INTEGER NOT NULL DEFAULT 1,
        sync_interval_min INTEGER NOT NULL DEFAULT 15,
        sync_orders INTEGER NOT NULL DEFAULT 1,
        sync_products INTEGER NOT NULL DEFAULT 1,
        sync_days_back INTEGER NOT NULL DEFAULT 30,
        sync_since_date TEXT,
        order_status_filter TEXT NOT NULL DEFAULT '[]',
        last_sync_at TEXT,
        last_sync_status TEXT NOT NULL DEFAULT 'idle',
        needs_reconnect INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (tenant_id) REFERENCES tenants(id)
    );

    CREATE TABLE IF NOT EXISTS products (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        store_id TEXT NOT NULL,
        external_id INTEGER NOT NULL,
        external_parent_id INTEGER,
        product_type TEXT NOT NULL DEFAULT 'simple',
        sku TEXT,
        name TEXT NOT NULL,
        description TEXT,
        price TEXT NOT NULL DEFAULT '0',
        currency TEXT NOT NULL DEFAULT 'USD',
        stock_qty INTEGER NOT NULL DEFAULT 0,
        reserved_qty INTEGER NOT NULL DEFAULT 0,
        low_stock_threshold INTEGER NOT NULL DEFAULT 5,
        weight REAL,
        length REAL,
        width REAL,
        height REAL,
        size_category TEXT,
        image_url TEXT,
        variant_attributes TEXT NOT NULL DEFAULT '{}',
        sync_settings TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (store_id) REFERENCES stores(id) ON DELETE CASCADE,
        UNIQUE(external_id, store_id)
    );

    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        store_id TEXT NOT NULL,
        external_id INTEGER NOT NULL,
        order_number TEXT NOT NULL,
        external_status TEXT NOT NULL,
        status TEXT NOT NULL,
        customer_name TEXT NOT NULL DEFAULT '',
        customer_email TEXT,
        shipping_address TEXT NOT NULL DEFAULT '{}',
        billing_address TEXT NOT NULL DEFAULT '{}',
        total TEXT NOT NULL DEFAULT '0',
        currency TEXT,
        external_created_at TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (store_id) REFERENCES stores(id) ON DELETE CASCADE,
        UNIQUE(external_id, store_id)
    );

    CREATE TABLE IF NOT EXISTS order_items (
        id TEXT PRIMARY KEY,
        order_id TEXT NOT NULL,
        external_product_id INTEGER NOT NULL,
        product_id TEXT,
        sku TEXT,
        name TEXT NOT NULL,
        quantity INTEGER NOT NULL,
        price TEXT NOT NULL DEFAULT '0',
        FOREIGN KEY (order_id) REFERENCES orders(id) ON DELETE CASCADE,
        UNIQUE(order_id, external_product_id)
    );

    CREATE TABLE IF NOT EXISTS sync_logs (
        id TEXT PRIMARY KEY,
        tenant_id TEXT NOT NULL,
        store_id TEXT NOT NULL,
        store_name TEXT NOT NULL,
        started_at TEXT NOT NULL,
        finished_at TEXT,
        status TEXT NOT NULL DEFAULT 'running',
        triggered_by TEXT NOT NULL,
        orders_processed INTEGER NOT NULL DEFAULT 0,
        orders_created INTEGER NOT NULL DEFAULT 0,
        orders_updated INTEGER NOT NULL DEFAULT 0,
        products_added INTEGER NOT NULL DEFAULT 0,
        products_updated INTEGER NOT NULL DEFAULT 0,
        products_skipped INTEGER NOT NULL DEFAULT 0,
        items_failed INTEGER NOT NULL DEFAULT 0,
        error_message TEXT,
        error_details TEXT,
        FOREIGN KEY (store_id) REFERENCES stores(id) ON DELETE CASCADE
    );

    CREATE INDEX IF NOT EXISTS idx_stores_tenant_id ON stores(tenant_id);
    CREATE INDEX IF NOT EXISTS idx_products_tenant_id ON products(tenant_id);
    CREATE INDEX IF NOT EXISTS idx_orders_tenant_id ON orders(tenant_id);
    CREATE INDEX IF NOT EXISTS idx_order_items_order_id ON order_items(order_id);
    CREATE INDEX IF NOT EXISTS idx_sync_logs_store_id ON sync_logs(store_id);
    CREATE INDEX IF NOT EXISTS idx_sync_logs_started_at ON sync_logs(started_at DESC);
"""

# Columns per table, used to validate every identifier that reaches SQL.
TABLE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "tenants": ("id", "name", "settings", "created_at"),
    "stores": (
        "id", "tenant_id", "name", "url", "consumer_key", "consumer_secret",
        "webhook_secret", "is_active", "auto_sync", "sync_interval_min",
        "sync_orders", "sync_products", "sync_days_back", "sync_since_date",
        "order_status_filter", "last_sync_at", "last_sync_status",
        "needs_reconnect", "created_at", "updated_at",
    ),
    "products": (
        "id", "tenant_id", "store_id", "external_id", "external_parent_id",
        "product_type", "sku", "name", "description", "price", "currency",
        "stock_qty", "reserved_qty", "low_stock_threshold", "weight", "length",
        "width", "height", "size_category", "image_url", "variant_attributes",
        "sync_settings", "is_active", "created_at", "updated_at",
    ),
    "orders": (
        "id", "tenant_id", "store_id", "external_id", "order_number",
        "external_status", "status", "customer_name", "customer_email",
        "shipping_address", "billing_address", "total", "currency",
        "external_created_at", "created_at", "updated_at",
    ),
    "order_items": (
        "id", "order_id", "external_product_id", "product_id", "sku", "name",
        "quantity", "price",
    ),
    "sync_logs": (
        "id", "tenant_id", "store_id", "store_name", "started_at", "finished_at",
        "status", "triggered_by", "orders_processed", "orders_created",
        "orders_updated", "products_added", "products_updated",
        "products_skipped", "items_failed", "error_message", "error_details",
    ),
}

JSON_COLUMNS = {
    "settings", "order_status_filter", "variant_attributes", "sync_settings",
    "shipping_address", "billing_address",
}

OrderBy = Union[str, Tuple[str, str]]


def _encode(value: Any) -> Any:
    """Convert a Python value to something SQLite stores."""
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class SQLiteDatabase:
    """SQLite database for all operations."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._connection: Optional[aiosqlite.Connection] = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            if self.db_path != ":memory:":
                os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA foreign_keys = ON")
        return self._connection

    async def initialize(self) -> None:
        """Create database tables."""
        conn = await self._get_connection()
        await conn.executescript(SCHEMA)
        await conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    # ===== Helper Methods =====

    @staticmethod
    def _check_columns(table: str, columns: Iterable[str]) -> None:
        known = TABLE_COLUMNS.get(table)
        if known is None:
            raise ValueError(f"Unknown table: {table}")
        unknown = [c for c in columns if c not in known]
        if unknown:
            raise ValueError(f"Unknown columns for {table}: {unknown}")

    def _where(self, table: str, where: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        """Build an AND-ed equality filter. Lists become IN, None becomes IS NULL."""
        if not where:
            return "", []
        self._check_columns(table, where.keys())

        clauses = []
        params: List[Any] = []
        for column, value in where.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set)):
                values = list(value)
                if not values:
                    clauses.append("0")
                    continue
                clauses.append(f"{column} IN ({', '.join('?' for _ in values)})")
                params.extend(_encode(v) for v in values)
            else:
                clauses.append(f"{column} = ?")
                params.append(_encode(value))
        return " WHERE " + " AND ".join(clauses), params

    def _order(self, table: str, order_by: Optional[OrderBy]) -> str:
        if not order_by:
            return ""
        column, direction = (order_by, "ASC") if isinstance(order_by, str) else order_by
        direction = direction.upper()
        if direction not in ("ASC", "DESC"):
            raise ValueError(f"Invalid sort direction: {direction}")
        self._check_columns(table, [column])
        return f" ORDER BY {column} {direction}"

    @staticmethod
    def _decode_row(row: aiosqlite.Row) -> Dict[str, Any]:
        data = dict(row)
        for column in JSON_COLUMNS.intersection(data):
            if data[column] is not None:
                data[column] = json.loads(data[column])
        return data

    # ===== Table Operations =====

    async def fetch_all(
        self,
        table: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        clause, params = self._where(table, where)
        query = f"SELECT * FROM {table}{clause}{self._order(table, order_by)}"
        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        conn = await self._get_connection()
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return [self._decode_row(row) for row in rows]

    async def fetch_one(
        self,
        table: str,
        where: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        rows = await self.fetch_all(table, where, limit=1)
        return rows[0] if rows else None

    async def count(self, table: str, where: Optional[Dict[str, Any]] = None) -> int:
        clause, params = self._where(table, where)
        conn = await self._get_connection()
        cursor = await conn.execute(f"SELECT COUNT(*) FROM {table}{clause}", params)
        row = await cursor.fetchone()
        return row[0]

    async def insert(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        self._check_columns(table, values.keys())
        columns = list(values.keys())

        conn = await self._get_connection()
        await conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            [_encode(values[c]) for c in columns]
        )
        await conn.commit()
        return await self.fetch_one(table, {"id": values["id"]})

    async def update(
        self,
        table: str,
        where: Dict[str, Any],
        values: Dict[str, Any]
    ) -> int:
        if not values:
            return 0
        if not where:
            raise ValueError("Refusing to update without a filter")
        self._check_columns(table, values.keys())
        clause, params = self._where(table, where)
        assignments = ", ".join(f"{c} = ?" for c in values)

        conn = await self._get_connection()
        cursor = await conn.execute(
            f"UPDATE {table} SET {assignments}{clause}",
            [_encode(v) for v in values.values()] + params
        )
        await conn.commit()
        return cursor.rowcount

    async def delete(self, table: str, where: Dict[str, Any]) -> int:
        if not where:
            raise ValueError("Refusing to delete without a filter")
        clause, params = self._where(table, where)

        conn = await self._get_connection()
        cursor = await conn.execute(f"DELETE FROM {table}{clause}", params)
        await conn.commit()
        return cursor.rowcount

    async def upsert(
        self,
        table: str,
        values: Dict[str, Any],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str],
        guard: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Insert a row or update it in place when its unique key already exists.

        Args:
            values: Full row for the insert case
            conflict_columns: Columns of the UNIQUE constraint
            update_columns: Columns refreshed from `values` on conflict
            guard: Equality conditions the existing row must meet to be updated
                (its columns must not be among `update_columns`)

        Returns:
            The stored row, or None when the guard prevented the update
        """
        self._check_columns(table, list(values.keys()) + list(conflict_columns) + list(update_columns))
        columns = list(values.keys())

        query = (
            f"INSERT INTO {table} ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)}) "
            f"ON CONFLICT({', '.join(conflict_columns)}) "
        )
        params = [_encode(values[c]) for c in columns]
        if update_columns:
            query += "DO UPDATE SET " + ", ".join(f"{c} = excluded.{c}" for c in update_columns)
            if guard:
                self._check_columns(table, guard.keys())
                query += " WHERE " + " AND ".join(f"{table}.{c} = ?" for c in guard)
                params.extend(_encode(v) for v in guard.values())
        else:
            query += "DO NOTHING"

        conn = await self._get_connection()
        await conn.execute(query, params)
        await conn.commit()

        # Re-read through the guard so a blocked update finds no row
        key = {c: values[c] for c in conflict_columns}
        return await self.fetch_one(table, {**key, **(guard or {})})

    # ===== Tenant Operations =====

    async def create_tenant(self, tenant: Tenant) -> Tenant:
        await self.insert("tenants", tenant.model_dump())
        return tenant

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        row = await self.fetch_one("tenants", {"id": tenant_id})
        return Tenant.model_validate(row) if row else None

    # ===== Store Operations =====
    # Unscoped lookups for system callers (scheduler, webhooks) that start
    # from a store id rather than from a tenant session.

    async def get_store(self, store_id: str) -> Optional[Store]:
        row = await self.fetch_one("stores", {"id": store_id})
        return Store.model_validate(row) if row else None

    async def get_sync_candidates(self) -> List[Store]:
        """Active stores with auto-sync enabled, across all tenants."""
        rows = await self.fetch_all(
            "stores", {"is_active": True, "auto_sync": True}, order_by="name"
        )
        return [Store.model_validate(row) for row in rows]

    async def update_store_sync_status(
        self,
        store_id: str,
        status: SyncStatus,
        last_sync_at: Optional[datetime] = None,
        needs_reconnect: Optional[bool] = None
    ) -> None:
        values: Dict[str, Any] = {"last_sync_status": status, "updated_at": utcnow()}
        if last_sync_at:
            values["last_sync_at"] = last_sync_at
        if needs_reconnect is not None:
            values["needs_reconnect"] = needs_reconnect
        await self.update("stores", {"id": store_id}, values)

    # ===== Log Operations =====

    async def get_log(self, log_id: str) -> Optional[SyncLog]:
        row = await self.fetch_one("sync_logs", {"id": log_id})
        return SyncLog.model_validate(row) if row else None

    async def create_log(self, store: Store, triggered_by: TriggerType) -> SyncLog:
        log = SyncLog(
            tenant_id=store.tenant_id,
            store_id=store.id,
            store_name=store.name,
            triggered_by=triggered_by
        )
        await self.insert("sync_logs", log.model_dump())
        return log

    async def update_log(self, log_id: str, **kwargs) -> Optional[SyncLog]:
        if kwargs:
            await self.update("sync_logs", {"id": log_id}, kwargs)
        return await self.get_log(log_id)

    async def finish_log(self, log_id: str, status: LogStatus, **kwargs) -> Optional[SyncLog]:
        return await self.update_log(log_id, finished_at=utcnow(), status=status, **kwargs)
