"""
Store configuration API routes.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..auth import CredentialCipher
from ..db import Store, StoreCreate, StoreUpdate, SyncStatus, utcnow
from ..dependencies import get_clients, get_locks, require_tenant, tenant_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stores")

CREDENTIAL_FIELDS = ("consumer_key", "consumer_secret", "webhook_secret")


class StoreResponse(BaseModel):
    """Store configuration as shown to the tenant. Credentials never leave the service."""
    id: str
    name: str
    url: str
    is_active: bool
    auto_sync: bool
    sync_interval_min: int
    sync_orders: bool
    sync_products: bool
    sync_days_back: int
    sync_since_date: Optional[datetime]
    order_status_filter: List[str]
    has_webhook_secret: bool
    last_sync_at: Optional[datetime]
    last_sync_status: SyncStatus
    needs_reconnect: bool

    @classmethod
    def from_store(cls, store: Store) -> "StoreResponse":
        return cls(
            **store.model_dump(exclude={"tenant_id", "webhook_secret", "consumer_key", "consumer_secret",
                                        "created_at", "updated_at"}),
            has_webhook_secret=bool(store.webhook_secret),
        )


def _cipher() -> CredentialCipher:
    return get_clients().cipher


def _normalize_url(url: str) -> str:
    url = url.strip().rstrip("/")
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url


async def _get_owned_store(tenant_id: str, store_id: str) -> Store:
    row = await tenant_db(tenant_id).find_unique("stores", "id", store_id)
    if not row:
        raise HTTPException(status_code=404, detail="Store not found")
    return Store.model_validate(row)


@router.get("", response_model=List[StoreResponse])
async def list_stores(tenant_id: str = Depends(require_tenant)):
    """List the tenant's stores."""
    rows = await tenant_db(tenant_id).find_many("stores", order_by="name")
    return [StoreResponse.from_store(Store.model_validate(row)) for row in rows]


@router.post("", response_model=StoreResponse, status_code=201)
async def create_store(data: StoreCreate, tenant_id: str = Depends(require_tenant)):
    """Connect a new store. Credentials are encrypted before they are stored."""
    cipher = _cipher()

    store = Store(
        tenant_id=tenant_id,
        **data.model_dump(exclude=set(CREDENTIAL_FIELDS) | {"url"}),
        url=_normalize_url(data.url),
        consumer_key=cipher.encrypt(data.consumer_key.strip()),
        consumer_secret=cipher.encrypt(data.consumer_secret.strip()),
        webhook_secret=cipher.encrypt(data.webhook_secret.strip()) if data.webhook_secret else None,
    )
    row = await tenant_db(tenant_id).create("stores", store.model_dump(exclude={"tenant_id"}))
    logger.info(f"Connected store '{store.name}' ({store.id})")
    return StoreResponse.from_store(Store.model_validate(row))


@router.get("/{store_id}", response_model=StoreResponse)
async def get_store(store_id: str, tenant_id: str = Depends(require_tenant)):
    return StoreResponse.from_store(await _get_owned_store(tenant_id, store_id))


@router.patch("/{store_id}", response_model=StoreResponse)
async def update_store(store_id: str, data: StoreUpdate, tenant_id: str = Depends(require_tenant)):
    """Update a store. Changing its URL or credentials drops the cached client."""
    store = await _get_owned_store(tenant_id, store_id)
    changes = data.model_dump(exclude_unset=True)

    cipher = _cipher()
    for field in CREDENTIAL_FIELDS:
        if field in changes:
            value = (changes[field] or "").strip()
            if not value and field != "webhook_secret":
                raise HTTPException(status_code=400, detail=f"{field} cannot be empty")
            changes[field] = cipher.encrypt(value) if value else None

    if "url" in changes:
        changes["url"] = _normalize_url(changes["url"])

    if changes:
        changes["updated_at"] = utcnow()
        await tenant_db(tenant_id).update_many("stores", {"id": store.id}, changes)

    if changes.keys() & {"url", "consumer_key", "consumer_secret"} or changes.get("is_active") is False:
        await get_clients().invalidate(store.id)

    return StoreResponse.from_store(await _get_owned_store(tenant_id, store_id))


@router.delete("/{store_id}", response_model=StoreResponse)
async def disconnect_store(store_id: str, tenant_id: str = Depends(require_tenant)):
    """
    Disconnect a store. The row is kept (soft deactivation) so synced
    orders and products stay readable; an in-flight sync finishes normally.
    """
    store = await _get_owned_store(tenant_id, store_id)
    await tenant_db(tenant_id).update_many(
        "stores", {"id": store.id}, {"is_active": False, "updated_at": utcnow()}
    )
    await get_clients().invalidate(store.id)
    get_locks().discard(store.id)
    logger.info(f"Disconnected store '{store.name}' ({store.id})")
    return StoreResponse.from_store(await _get_owned_store(tenant_id, store_id))
