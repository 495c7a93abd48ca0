"""
Shared fixtures: a temporary database, tenants, stores and a fake WooCommerce client.
"""

from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio

from warehouse_sync.auth import CredentialCipher
from warehouse_sync.db import SQLiteDatabase, Store, Tenant, TenantSettings, TenantScopedDatabase


TEST_SECRET = "test-root-secret"
TEST_SALT = "test-salt"


class FakeWooClient:
    """Serves canned pages and records what was asked for."""

    def __init__(
        self,
        orders: Optional[List[dict]] = None,
        products: Optional[List[dict]] = None,
        variations: Optional[Dict[int, List[dict]]] = None,
        currency: Optional[str] = "EUR",
    ):
        self.orders = orders or []
        self.products = products or []
        self.variations = variations or {}
        self.currency = currency
        self.order_calls: List[Dict[str, Any]] = []
        self.product_pages: List[int] = []
        self.stock_updates: List[Dict[str, Any]] = []
        self.fail_orders_on_page: Optional[int] = None
        self.order_error: Exception = RuntimeError("upstream down")
        self.settings_error: Optional[Exception] = None
        self.stock_error: Optional[Exception] = None
        self.variation_errors: Dict[int, Exception] = {}

    @staticmethod
    def _page(items: List[dict], page: int, per_page: int) -> List[dict]:
        start = (page - 1) * per_page
        return items[start:start + per_page]

    async def list_orders(self, page, per_page, after, statuses=None):
        self.order_calls.append({"page": page, "per_page": per_page, "after": after, "statuses": statuses})
        if self.fail_orders_on_page == page:
            raise self.order_error
        return self._page(self.orders, page, per_page)

    async def list_products(self, page, per_page):
        self.product_pages.append(page)
        return self._page(self.products, page, per_page)

    async def list_variations(self, product_id, page, per_page):
        if product_id in self.variation_errors:
            raise self.variation_errors[product_id]
        return self._page(self.variations.get(product_id, []), page, per_page)

    async def get_general_settings(self):
        if self.settings_error:
            raise self.settings_error
        settings = [{"id": "woocommerce_weight_unit", "value": "kg"}]
        if self.currency:
            settings.append({"id": "woocommerce_currency", "value": self.currency})
        return settings

    async def update_stock(self, product_id, payload, parent_id=None):
        if self.stock_error:
            raise self.stock_error
        self.stock_updates.append({"product_id": product_id, "payload": payload, "parent_id": parent_id})
        return {"id": product_id}


class FakeClientCache:
    """ClientCache stand-in handing out one FakeWooClient per store."""

    def __init__(self, cipher: CredentialCipher, client: Optional[FakeWooClient] = None):
        self.cipher = cipher
        self.client = client or FakeWooClient()
        self.requested: List[str] = []

    def get(self, store: Store) -> FakeWooClient:
        self.requested.append(store.id)
        return self.client

    def decrypt_webhook_secret(self, store: Store) -> Optional[str]:
        return self.cipher.decrypt(store.webhook_secret)

    async def invalidate(self, store_id: str) -> None:
        pass


def woo_order(order_id: int, status: str = "processing", line_items: Optional[List[dict]] = None, **extra) -> dict:
    order = {
        "id": order_id,
        "number": str(order_id),
        "status": status,
        "billing": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"},
        "shipping": {"city": "London"},
        "total": "42.50",
        "currency": "EUR",
        "date_created_gmt": "2024-06-20T10:00:00",
        "line_items": line_items if line_items is not None else [
            {"product_id": 501, "variation_id": 0, "sku": "SKU-501", "name": "Mug", "quantity": 2, "price": 10.5},
        ],
    }
    order.update(extra)
    return order


def woo_product(product_id: int, product_type: str = "simple", **extra) -> dict:
    product = {
        "id": product_id,
        "name": f"Product {product_id}",
        "type": product_type,
        "sku": f"SKU-{product_id}",
        "short_description": "",
        "price": "19.99",
        "stock_quantity": 7,
        "weight": "0.5",
        "dimensions": {"length": "10", "width": "5", "height": "4"},
        "images": [{"src": f"https://img.example.com/{product_id}.jpg"}],
        "status": "publish",
    }
    product.update(extra)
    return product


@pytest.fixture
def cipher() -> CredentialCipher:
    return CredentialCipher(TEST_SECRET, TEST_SALT)


@pytest_asyncio.fixture
async def db(tmp_path):
    database = SQLiteDatabase(str(tmp_path / "test.db"))
    await database.initialize()
    yield database
    await database.close()


@pytest_asyncio.fixture
async def tenant(db) -> Tenant:
    return await db.create_tenant(Tenant(name="Tenant A"))


@pytest_asyncio.fixture
async def other_tenant(db) -> Tenant:
    return await db.create_tenant(Tenant(name="Tenant B"))


@pytest.fixture
def scoped(db, tenant) -> TenantScopedDatabase:
    return TenantScopedDatabase(db, tenant.id)


@pytest.fixture
def make_store(db, cipher):
    """Insert a store for a tenant and return it."""

    async def _make_store(tenant_id: str, **overrides) -> Store:
        store = Store(
            tenant_id=tenant_id,
            name=overrides.pop("name", "Main shop"),
            url="https://shop.example.com",
            consumer_key=cipher.encrypt("ck_test"),
            consumer_secret=cipher.encrypt("cs_test"),
            **overrides,
        )
        await db.insert("stores", store.model_dump())
        return store

    return _make_store


async def set_tenant_settings(db: SQLiteDatabase, tenant_id: str, **values) -> None:
    await db.update("tenants", {"id": tenant_id}, {"settings": TenantSettings(**values)})
