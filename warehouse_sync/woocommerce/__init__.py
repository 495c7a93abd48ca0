"""
WooCommerce API module.
"""

from warehouse_sync.woocommerce.client import (
    WooCommerceClient,
    CommerceClientError,
    CommerceAuthError,
    CommerceNotFoundError,
    CommerceTransientError,
    CommerceRateLimitError,
)
from warehouse_sync.woocommerce.adapter import ClientCache
from warehouse_sync.woocommerce.catalog import (
    CatalogFailure,
    CatalogPage,
    CatalogRecord,
    expand_page,
    size_category,
)

__all__ = [
    "WooCommerceClient",
    "CommerceClientError",
    "CommerceAuthError",
    "CommerceNotFoundError",
    "CommerceTransientError",
    "CommerceRateLimitError",
    "ClientCache",
    "CatalogFailure",
    "CatalogPage",
    "CatalogRecord",
    "expand_page",
    "size_category",
]
