"""
Store → WooCommerce client mapping.

One client is cached per store id. Credentials are decrypted only when a
client is first built for a store; rotate credentials with `invalidate`.
"""

import logging
from typing import Callable, Dict, Optional

import httpx

from ..auth import CredentialCipher
from ..db import Store
from .client import WooCommerceClient

logger = logging.getLogger(__name__)


class ClientCache:
    """Owns the WooCommerce clients of all stores."""

    def __init__(
        self,
        cipher: CredentialCipher,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        max_retries: int = 4,
        transport_factory: Optional[Callable[[Store], httpx.AsyncBaseTransport]] = None,
    ):
        self._cipher = cipher
        self._timeout = timeout
        self._connect_timeout = connect_timeout
        self._max_retries = max_retries
        self._transport_factory = transport_factory
        self._clients: Dict[str, WooCommerceClient] = {}

    def get(self, store: Store) -> WooCommerceClient:
        """Get the client for a store, building it on first use."""
        # No await between lookup and insert: safe under concurrent tasks.
        client = self._clients.get(store.id)
        if client is None:
            client = WooCommerceClient(
                store.url,
                self._cipher.decrypt(store.consumer_key),
                self._cipher.decrypt(store.consumer_secret),
                timeout=self._timeout,
                connect_timeout=self._connect_timeout,
                max_retries=self._max_retries,
                transport=self._transport_factory(store) if self._transport_factory else None,
            )
            self._clients[store.id] = client
            logger.debug(f"Created WooCommerce client for store '{store.name}' ({store.id})")
        return client

    @property
    def cipher(self) -> CredentialCipher:
        return self._cipher

    def decrypt_webhook_secret(self, store: Store) -> Optional[str]:
        return self._cipher.decrypt(store.webhook_secret)

    async def invalidate(self, store_id: str) -> None:
        """Drop the cached client for a store (credential rotation, disconnect)."""
        client = self._clients.pop(store_id, None)
        if client:
            await client.close()
            logger.info(f"Invalidated WooCommerce client for store {store_id}")

    async def close(self) -> None:
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.close()

    def __contains__(self, store_id: str) -> bool:
        return store_id in self._clients

    def __len__(self) -> int:
        return len(self._clients)
