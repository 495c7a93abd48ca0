"""
Sync log API routes.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List, Optional

from ..dependencies import require_tenant, tenant_db
from ..db import LogStatus, SyncLog

router = APIRouter(prefix="/api/logs")

PAGE_SIZE = 25


@router.get("", response_model=List[SyncLog])
async def list_logs(
    store_id: Optional[str] = Query(None),
    status: Optional[LogStatus] = Query(None),
    page: int = Query(1, ge=1),
    tenant_id: str = Depends(require_tenant)
):
    """List the tenant's sync logs, newest first."""
    where = {}
    if store_id:
        where["store_id"] = store_id
    if status:
        where["status"] = status

    rows = await tenant_db(tenant_id).find_many(
        "sync_logs",
        where,
        order_by=("started_at", "desc"),
        limit=PAGE_SIZE,
        offset=(page - 1) * PAGE_SIZE
    )
    return [SyncLog.model_validate(row) for row in rows]


@router.get("/{log_id}", response_model=SyncLog)
async def get_log(log_id: str, tenant_id: str = Depends(require_tenant)):
    row = await tenant_db(tenant_id).find_unique("sync_logs", "id", log_id)
    if not row:
        raise HTTPException(status_code=404, detail="Log not found")
    return SyncLog.model_validate(row)
