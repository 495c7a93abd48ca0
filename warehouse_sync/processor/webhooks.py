"""
Inbound WooCommerce webhooks.

A webhook only tells us that a store has news: a verified delivery runs an
order sync for that store. Once the signature checks out the delivery is
always acknowledged, even if the sync fails, so the sender does not keep
retrying against a degraded integration. Those failures are reported on the
`warehouse_sync.webhooks` logger.
"""

import base64
import hashlib
import hmac
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from ..auth import CredentialError
from ..db import SQLiteDatabase, Store
from ..woocommerce import ClientCache

webhook_logger = logging.getLogger("warehouse_sync.webhooks")


SIGNATURE_HEADER = "x-wc-webhook-signature"
TOPIC_HEADER = "x-wc-webhook-topic"


class WebhookOutcome(str, Enum):
    ACCEPTED = "accepted"
    STORE_NOT_FOUND = "store_not_found"
    NOT_CONFIGURED = "not_configured"
    MISSING_SIGNATURE = "missing_signature"
    INVALID_SIGNATURE = "invalid_signature"

    @property
    def accepted(self) -> bool:
        return self is WebhookOutcome.ACCEPTED


def compute_signature(secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of the raw request body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(secret, body), signature.strip())


async def handle_store_webhook(
    store_id: str,
    body: bytes,
    signature: Optional[str],
    topic: Optional[str],
    db: SQLiteDatabase,
    clients: ClientCache,
    run_order_sync: Callable[[Store], Awaitable[Any]]
) -> WebhookOutcome:
    """
    Verify a delivery for one store and run its order sync inline.

    Nothing is read beyond the store row and nothing is written unless the
    signature is valid.
    """
    store = await db.get_store(store_id)
    if store is None or not store.is_active:
        webhook_logger.info(f"Webhook for unknown or inactive store {store_id} rejected")
        return WebhookOutcome.STORE_NOT_FOUND

    try:
        secret = clients.decrypt_webhook_secret(store)
    except CredentialError as e:
        webhook_logger.error(f"Webhook secret for store '{store.name}' unusable: {e}")
        return WebhookOutcome.NOT_CONFIGURED

    if not secret:
        webhook_logger.warning(f"Webhook for store '{store.name}' rejected: no webhook secret configured")
        return WebhookOutcome.NOT_CONFIGURED

    if not signature:
        webhook_logger.warning(f"Webhook for store '{store.name}' rejected: no signature")
        return WebhookOutcome.MISSING_SIGNATURE

    if not verify_signature(secret, body, signature):
        webhook_logger.warning(f"Webhook for store '{store.name}' rejected: invalid signature")
        return WebhookOutcome.INVALID_SIGNATURE

    webhook_logger.info(f"Store '{store.name}': received {topic or 'unknown topic'}")

    try:
        await run_order_sync(store)
    except Exception as e:
        webhook_logger.error(f"Webhook-triggered sync failed for store '{store.name}': {e}")

    return WebhookOutcome.ACCEPTED
