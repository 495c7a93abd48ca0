"""
Inbound webhook routes. No session auth: deliveries are authenticated by
their HMAC signature.
"""

from functools import partial

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from ..db import TriggerType
from ..dependencies import get_clients, get_db, get_locks
from ..processor import (
    handle_store_webhook, sync_store, WebhookOutcome, SIGNATURE_HEADER, TOPIC_HEADER
)

router = APIRouter(prefix="/api/webhooks")

REJECTIONS = {
    WebhookOutcome.STORE_NOT_FOUND: (404, "Store not found"),
    WebhookOutcome.NOT_CONFIGURED: (401, "Webhook secret not configured"),
    WebhookOutcome.MISSING_SIGNATURE: (401, "No webhook signature"),
    WebhookOutcome.INVALID_SIGNATURE: (401, "Invalid webhook signature"),
}


@router.post("/woocommerce/{store_id}")
async def woocommerce_webhook(store_id: str, request: Request):
    """Verify a WooCommerce delivery and sync the store's orders."""
    db = get_db()
    clients = get_clients()
    body = await request.body()

    outcome = await handle_store_webhook(
        store_id,
        body,
        request.headers.get(SIGNATURE_HEADER),
        request.headers.get(TOPIC_HEADER),
        db,
        clients,
        run_order_sync=partial(
            sync_store, db=db, clients=clients, locks=get_locks(),
            triggered_by=TriggerType.WEBHOOK, include_products=False,
        ),
    )

    if outcome.accepted:
        return {"received": True}

    status_code, message = REJECTIONS[outcome]
    return JSONResponse(status_code=status_code, content={"error": True, "message": message})
