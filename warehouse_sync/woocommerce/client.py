"""
WooCommerce REST API (wc/v3) client.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import httpx

logger = logging.getLogger(__name__)


class CommerceClientError(Exception):
    """Base exception for WooCommerce client errors."""
    pass


class CommerceAuthError(CommerceClientError):
    """Credentials rejected (401/403). The store needs reconnecting."""
    pass


class CommerceNotFoundError(CommerceClientError):
    """Requested resource does not exist upstream."""
    pass


class CommerceTransientError(CommerceClientError):
    """Network failure, timeout or 5xx response; safe to retry later."""
    pass


class CommerceRateLimitError(CommerceTransientError):
    """Rate limit exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class WooCommerceClient:
    """
    Async HTTP client for the WooCommerce REST API.

    Handles authentication, bounded timeouts, rate limiting, and retries.
    """

    API_PREFIX = "wp-json/wc/v3"
    BASE_RETRY_DELAY = 1.0  # seconds

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        max_retries: int = 4,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize WooCommerce client.

        Args:
            base_url: Shop URL (e.g., "https://shop.example.com")
            consumer_key: REST API consumer key (ck_...)
            consumer_secret: REST API consumer secret (cs_...)
            timeout: Per-request timeout in seconds
            connect_timeout: Connection timeout in seconds
            max_retries: Attempts for rate-limited or transient failures
            transport: Optional httpx transport (used by tests)
        """
        url = base_url.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            url = f"https://{url}"

        self.base_url = url
        self.api_url = f"{url}/{self.API_PREFIX}"
        self.max_retries = max(1, max_retries)

        self._auth = httpx.BasicAuth(consumer_key, consumer_secret)
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                auth=self._auth,
                timeout=self._timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request with retry logic.

        Returns:
            Decoded JSON body

        Raises:
            CommerceAuthError: If the credentials are rejected
            CommerceNotFoundError: If the resource does not exist
            CommerceTransientError: If retries are exhausted
            CommerceClientError: For other errors
        """
        client = self._get_client()
        url = f"{self.api_url}/{path.lstrip('/')}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                response = await client.request(method, url, params=params, json=json)

                if response.status_code in (401, 403):
                    raise CommerceAuthError(
                        f"Authentication failed for {self.base_url} ({response.status_code})"
                    )

                if response.status_code == 404:
                    raise CommerceNotFoundError(f"Not found: {method} {path}")

                if response.status_code == 429:
                    retry_after = float(
                        response.headers.get("Retry-After", self.BASE_RETRY_DELAY)
                    )
                    raise CommerceRateLimitError(
                        "Rate limit exceeded", retry_after=retry_after
                    )

                if response.status_code >= 500:
                    raise CommerceTransientError(
                        f"Server error {response.status_code} for {method} {path}"
                    )

                if response.status_code >= 400:
                    raise CommerceClientError(
                        f"Request rejected ({response.status_code}) for {method} {path}: "
                        f"{response.text[:200]}"
                    )

                return response.json()

            except (CommerceAuthError, CommerceNotFoundError):
                raise

            except CommerceRateLimitError as e:
                last_error = e
                delay = e.retry_after or (self.BASE_RETRY_DELAY * (2 ** attempt))
                logger.warning(
                    f"Rate limited, waiting {delay:.1f}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )

            except CommerceTransientError as e:
                last_error = e
                delay = self.BASE_RETRY_DELAY * (2 ** attempt)
                logger.warning(f"{e}, retrying in {delay:.1f}s")

            except httpx.RequestError as e:
                last_error = CommerceTransientError(f"Request error: {e}")
                delay = self.BASE_RETRY_DELAY * (2 ** attempt)
                logger.warning(f"Request error, retrying in {delay:.1f}s: {e}")

            except CommerceClientError:
                raise

            except ValueError as e:
                raise CommerceClientError(f"Invalid JSON from {method} {path}: {e}") from e

            if attempt + 1 < self.max_retries:
                await asyncio.sleep(delay)

        # All retries exhausted
        raise last_error or CommerceTransientError("Max retries exceeded")

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def put(self, path: str, payload: Dict[str, Any]) -> Any:
        return await self.request("PUT", path, json=payload)

    # ===== Resources =====

    async def list_orders(
        self,
        page: int,
        per_page: int,
        after: datetime,
        statuses: Optional[Sequence[str]] = None,
    ) -> List[Dict[str, Any]]:
        """One page of orders modified after `after`, oldest first."""
        return await self.get("orders", {
            "page": page,
            "per_page": per_page,
            "after": after.isoformat(),
            "status": ",".join(statuses) if statuses else None,
            "orderby": "date",
            "order": "asc",
        })

    async def list_products(self, page: int, per_page: int) -> List[Dict[str, Any]]:
        return await self.get("products", {"page": page, "per_page": per_page})

    async def list_variations(
        self,
        product_id: int,
        page: int,
        per_page: int,
    ) -> List[Dict[str, Any]]:
        return await self.get(
            f"products/{product_id}/variations", {"page": page, "per_page": per_page}
        )

    async def get_general_settings(self) -> List[Dict[str, Any]]:
        return await self.get("settings/general")

    async def update_stock(
        self,
        product_id: int,
        payload: Dict[str, Any],
        parent_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Update stock fields of a product, or of a variation when `parent_id` is set."""
        if parent_id:
            return await self.put(f"products/{parent_id}/variations/{product_id}", payload)
        return await self.put(f"products/{product_id}", payload)

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
