"""
FastAPI dependency injection.
Database, client cache, per-store locks, push-back dispatcher and scheduler.
"""

from functools import partial
from typing import Optional
from fastapi import Request, HTTPException

from .config import settings
from .db import SQLiteDatabase, TenantScopedDatabase, TriggerType
from .auth import CredentialCipher, SessionManager
from .woocommerce import ClientCache
from .processor import (
    StockPushDispatcher, StoreLockRegistry, SyncScheduler, run_single_store
)


# Global instances (initialized on startup)
_db: Optional[SQLiteDatabase] = None
_session_manager: Optional[SessionManager] = None
_clients: Optional[ClientCache] = None
_locks: Optional[StoreLockRegistry] = None
_stock_pusher: Optional[StockPushDispatcher] = None
_scheduler: Optional[SyncScheduler] = None


def build_scheduler(
    db: SQLiteDatabase,
    clients: ClientCache,
    locks: StoreLockRegistry
) -> SyncScheduler:
    return SyncScheduler(
        run_store=partial(
            run_single_store, db=db, clients=clients, locks=locks,
            triggered_by=TriggerType.SCHEDULER,
        ),
        store_provider=db.get_sync_candidates,
        tick_seconds=settings.scheduler_tick_seconds,
        max_concurrent=settings.scheduler_max_concurrent,
        store_timeout=settings.store_sync_timeout_seconds,
    )


async def init_dependencies():
    """Initialize global dependencies. Called on app startup."""
    global _db, _session_manager, _clients, _locks, _stock_pusher, _scheduler

    _db = SQLiteDatabase(settings.database_path)
    await _db.initialize()

    _session_manager = SessionManager(settings.session_secret)
    _clients = ClientCache(
        CredentialCipher(settings.encryption_key, settings.encryption_salt),
        timeout=settings.request_timeout_seconds,
        connect_timeout=settings.connect_timeout_seconds,
        max_retries=settings.max_retries,
    )
    _locks = StoreLockRegistry()
    _stock_pusher = StockPushDispatcher(_db, _clients)
    _scheduler = build_scheduler(_db, _clients, _locks)


async def close_dependencies():
    """Close global dependencies. Called on app shutdown."""
    global _db, _clients
    if _scheduler:
        await _scheduler.stop()
    if _stock_pusher:
        await _stock_pusher.drain()
    if _clients:
        await _clients.close()
    if _db:
        await _db.close()


def get_db() -> SQLiteDatabase:
    """Get the database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


def get_session_manager() -> SessionManager:
    """Get the session manager instance."""
    if _session_manager is None:
        raise RuntimeError("Session manager not initialized")
    return _session_manager


def get_clients() -> ClientCache:
    """Get the WooCommerce client cache."""
    if _clients is None:
        raise RuntimeError("Client cache not initialized")
    return _clients


def get_locks() -> StoreLockRegistry:
    if _locks is None:
        raise RuntimeError("Store locks not initialized")
    return _locks


def get_stock_pusher() -> StockPushDispatcher:
    """Get the push-back dispatcher used after local stock changes."""
    if _stock_pusher is None:
        raise RuntimeError("Stock push dispatcher not initialized")
    return _stock_pusher


def get_scheduler() -> SyncScheduler:
    if _scheduler is None:
        raise RuntimeError("Scheduler not initialized")
    return _scheduler


async def require_tenant(request: Request) -> str:
    """
    Dependency that requires an authenticated caller with a tenant.
    Returns the tenant id.
    """
    session_manager = get_session_manager()
    session = session_manager.get_session(request)

    if session is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    tenant_id = session.get("tenant_id")
    if not tenant_id:
        raise HTTPException(status_code=403, detail="No tenant associated with this account")
    return tenant_id


def tenant_db(tenant_id: str) -> TenantScopedDatabase:
    """Datastore scoped to the caller's tenant."""
    return TenantScopedDatabase(get_db(), tenant_id)
