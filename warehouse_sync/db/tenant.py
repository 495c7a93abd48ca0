"""
Tenant isolation for datastore access.

TenantScopedDatabase wraps SQLiteDatabase for one tenant:
- multi-row reads, counts, updates and deletes get tenant_id added to the filter
- creates and upserts are stamped with tenant_id
- lookups by a globally unique column fetch first, then drop rows owned by
  another tenant

Tables not registered in TENANT_TABLES pass through unchanged.
"""

from typing import Any, Dict, List, Optional, Sequence

from .models import TenantSettings
from .sqlite import OrderBy, SQLiteDatabase


TENANT_TABLES = frozenset({"stores", "products", "orders", "sync_logs"})


class TenantContextError(Exception):
    """Datastore access attempted without a tenant."""
    pass


class TenantScopedDatabase:
    """Datastore operations restricted to a single tenant."""

    def __init__(self, db: SQLiteDatabase, tenant_id: Optional[str]):
        if not tenant_id:
            raise TenantContextError("No tenant associated with this operation")
        self._db = db
        self.tenant_id = tenant_id

    @property
    def db(self) -> SQLiteDatabase:
        return self._db

    def _scoped(self, table: str, where: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        where = dict(where or {})
        if table in TENANT_TABLES:
            where["tenant_id"] = self.tenant_id
        return where

    def _stamped(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        if table in TENANT_TABLES:
            return {**values, "tenant_id": self.tenant_id}
        return values

    async def find_many(
        self,
        table: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        return await self._db.fetch_all(
            table, self._scoped(table, where), order_by=order_by, limit=limit, offset=offset
        )

    async def find_first(self, table: str, where: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._db.fetch_one(table, self._scoped(table, where))

    async def find_unique(self, table: str, column: str, value: Any) -> Optional[Dict[str, Any]]:
        """Look up by a unique column; a row owned by another tenant reads as missing."""
        row = await self._db.fetch_one(table, {column: value})
        if row and table in TENANT_TABLES and row.get("tenant_id") != self.tenant_id:
            return None
        return row

    async def count(self, table: str, where: Optional[Dict[str, Any]] = None) -> int:
        return await self._db.count(table, self._scoped(table, where))

    async def create(self, table: str, values: Dict[str, Any]) -> Dict[str, Any]:
        return await self._db.insert(table, self._stamped(table, values))

    async def upsert(
        self,
        table: str,
        values: Dict[str, Any],
        conflict_columns: Sequence[str],
        update_columns: Sequence[str]
    ) -> Optional[Dict[str, Any]]:
        guard = {"tenant_id": self.tenant_id} if table in TENANT_TABLES else None
        return await self._db.upsert(
            table, self._stamped(table, values), conflict_columns, update_columns, guard=guard
        )

    async def update_many(
        self,
        table: str,
        where: Dict[str, Any],
        values: Dict[str, Any]
    ) -> int:
        values = {k: v for k, v in values.items() if k != "tenant_id"}
        return await self._db.update(table, self._scoped(table, where), values)

    async def delete_many(self, table: str, where: Dict[str, Any]) -> int:
        return await self._db.delete(table, self._scoped(table, where))

    async def get_settings(self) -> TenantSettings:
        """The tenant's sync policy (defaults when the tenant has none stored)."""
        tenant = await self._db.get_tenant(self.tenant_id)
        return tenant.settings if tenant else TenantSettings()
