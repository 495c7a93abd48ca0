"""
Sync trigger API routes.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional

from ..dependencies import get_clients, get_locks, get_scheduler, require_tenant, tenant_db
from ..db import SyncLog, TriggerType
from ..processor import run_specific_store, StoreInactiveError, StoreNotFoundError

router = APIRouter(prefix="/api/sync")


class SyncResponse(BaseModel):
    message: str
    store_id: str
    success: bool
    log: Optional[SyncLog] = None


@router.post("/{store_id}", response_model=SyncResponse)
async def sync_single_store(store_id: str, tenant_id: str = Depends(require_tenant)):
    """
    Sync one store now: orders, then products, regardless of its interval.
    Waits for the run to finish.
    """
    try:
        result = await run_specific_store(
            store_id, tenant_db(tenant_id), get_clients(), get_locks(), TriggerType.MANUAL
        )
    except StoreNotFoundError:
        raise HTTPException(status_code=404, detail="Store not found")
    except StoreInactiveError:
        raise HTTPException(status_code=400, detail="Store is not active")

    if not result.success:
        raise HTTPException(status_code=502, detail=f"Sync failed: {result.error}")

    return SyncResponse(
        message=f"Sync complete for '{result.store.name}'",
        store_id=store_id,
        success=True,
        log=result.log
    )


@router.get("/status")
async def get_sync_status(tenant_id: str = Depends(require_tenant)):
    """Get current sync status across the tenant's stores."""
    rows = await tenant_db(tenant_id).find_many("stores")
    locks = get_locks()

    running = [row for row in rows if locks.is_busy(row["id"])]
    return {
        "total_stores": len(rows),
        "active_stores": len([row for row in rows if row["is_active"]]),
        "needs_reconnect": [row["name"] for row in rows if row["needs_reconnect"]],
        "running_syncs": len(running),
        "running_store_names": [row["name"] for row in running],
        "scheduler_running": get_scheduler().running,
    }
