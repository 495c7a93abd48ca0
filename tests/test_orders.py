"""
Tests for the incremental order sync.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from warehouse_sync.db import Store, StoreCreate, TenantContextError, TenantScopedDatabase
from warehouse_sync.processor.orders import merge_line_items, parse_timestamp, sync_orders
from warehouse_sync.woocommerce import CommerceTransientError

from conftest import FakeWooClient, set_tenant_settings, woo_order


NOW = datetime(2024, 6, 30, tzinfo=timezone.utc)


class TestMergeLineItems:

    def test_variation_id_is_the_key(self):
        merged = merge_line_items([
            {"product_id": 10, "variation_id": 11, "name": "Shirt - M", "quantity": 1, "price": 5},
        ])
        assert list(merged) == [11]

    def test_duplicate_lines_add_up(self):
        merged = merge_line_items([
            {"product_id": 10, "variation_id": 0, "name": "Mug", "quantity": 1, "price": 5},
            {"product_id": 10, "variation_id": 0, "name": "Mug", "quantity": 3, "price": 5},
        ])
        assert merged[10]["quantity"] == 4


def test_parse_timestamp_assumes_utc():
    assert parse_timestamp("2024-06-20T10:00:00") == datetime(2024, 6, 20, 10, tzinfo=timezone.utc)
    assert parse_timestamp(None) is None


class TestSyncOrders:

    async def test_creates_orders_and_items(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(1001), woo_order(1002, status="on-hold")])

        report = await sync_orders(store, scoped, client, now=NOW)

        assert report.completed
        assert (report.processed, report.created, report.updated) == (2, 2, 0)

        orders = await scoped.find_many("orders", order_by="external_id")
        assert [o["status"] for o in orders] == ["PROCESSING", "ON_HOLD"]
        assert orders[0]["customer_name"] == "Ada Lovelace"
        assert orders[0]["tenant_id"] == tenant.id
        assert await db.count("order_items") == 2

    async def test_repeated_runs_are_idempotent(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(1001), woo_order(1002)])

        for _ in range(3):
            report = await sync_orders(store, scoped, client, now=NOW)

        assert report.updated == 2
        assert report.created == 0
        assert await db.count("orders") == 2
        assert await db.count("order_items") == 2

    async def test_internal_status_survives_resync(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(1001, status="processing")])
        await sync_orders(store, scoped, client, now=NOW)

        await db.update("orders", {"external_id": 1001}, {"status": "PICKING"})
        client.orders = [woo_order(1001, status="completed", total="50.00")]
        await sync_orders(store, scoped, client, now=NOW)

        order = await scoped.find_first("orders", {"external_id": 1001})
        assert order["status"] == "PICKING"
        assert order["external_status"] == "completed"
        assert order["total"] == "50.00"

    async def test_tenant_status_mapping_applies_to_new_orders(self, db, tenant, scoped, make_store):
        await set_tenant_settings(db, tenant.id, status_mapping={"processing": "AWAITING_PICK"})
        store = await make_store(tenant.id)

        await sync_orders(store, scoped, FakeWooClient(orders=[woo_order(1001)]), now=NOW)

        order = await scoped.find_first("orders", {"external_id": 1001})
        assert order["status"] == "AWAITING_PICK"

    async def test_removed_line_items_are_deleted(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        lines = [
            {"product_id": 501, "variation_id": 0, "name": "Mug", "quantity": 1, "price": 5},
            {"product_id": 502, "variation_id": 0, "name": "Cup", "quantity": 1, "price": 5},
        ]
        client = FakeWooClient(orders=[woo_order(1001, line_items=lines)])
        await sync_orders(store, scoped, client, now=NOW)

        client.orders = [woo_order(1001, line_items=lines[:1])]
        await sync_orders(store, scoped, client, now=NOW)

        items = await db.fetch_all("order_items")
        assert [item["external_product_id"] for item in items] == [501]

    async def test_line_item_links_known_product(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        product = await scoped.create("products", {
            "id": "prod-501",
            "store_id": store.id,
            "external_id": 501,
            "name": "Mug",
            "created_at": NOW,
            "updated_at": NOW,
        })

        await sync_orders(store, scoped, FakeWooClient(orders=[woo_order(1001)]), now=NOW)

        item = await db.fetch_one("order_items", {"external_product_id": 501})
        assert item["product_id"] == product["id"]
        assert item["quantity"] == 2

    async def test_failing_order_does_not_stop_the_walk(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(1001), woo_order("not-a-number"), woo_order(1003)])

        report = await sync_orders(store, scoped, client, now=NOW)

        assert report.completed
        assert report.processed == 2
        assert [f.external_id for f in report.failures] == ["not-a-number"]
        assert await db.count("orders") == 2

    async def test_pages_until_empty(self, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(i) for i in range(1, 6)])

        report = await sync_orders(store, scoped, client, now=NOW, page_size=2)

        assert report.pages == 3
        assert [call["page"] for call in client.order_calls] == [1, 2, 3, 4]

    async def test_status_filter_and_cursor_sent_upstream(self, tenant, scoped, make_store):
        store = await make_store(
            tenant.id,
            order_status_filter=["processing", "on-hold"],
            last_sync_at=datetime(2024, 6, 15, tzinfo=timezone.utc),
        )
        client = FakeWooClient()

        await sync_orders(store, scoped, client, now=NOW)

        call = client.order_calls[0]
        assert call["statuses"] == ["processing", "on-hold"]
        assert call["after"] == datetime(2024, 6, 15, tzinfo=timezone.utc)

    async def test_no_filter_means_all_statuses(self, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        client = FakeWooClient()

        report = await sync_orders(store, scoped, client, now=NOW)

        assert client.order_calls[0]["statuses"] is None
        assert report.after_date == datetime(2024, 5, 31, tzinfo=timezone.utc)

    async def test_completed_walk_stamps_cursor(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)

        await sync_orders(store, scoped, FakeWooClient(orders=[woo_order(1001)]), now=NOW)

        assert (await db.get_store(store.id)).last_sync_at == NOW

    async def test_upstream_error_leaves_cursor_unchanged(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(1001), woo_order(1002)])
        client.fail_orders_on_page = 2
        client.order_error = CommerceTransientError("Server error 503")

        with pytest.raises(CommerceTransientError):
            await sync_orders(store, scoped, client, now=NOW, page_size=1)

        assert (await db.get_store(store.id)).last_sync_at is None
        assert await db.count("orders") == 1

    async def test_since_date_without_timezone(self, db, tenant, scoped):
        data = StoreCreate.model_validate({
            "name": "Main shop",
            "url": "https://shop.example.com",
            "consumer_key": "ck_test",
            "consumer_secret": "cs_test",
            "sync_since_date": "2024-06-10",
        })
        store = Store(tenant_id=tenant.id, **data.model_dump())
        await db.insert("stores", store.model_dump())

        stored = await db.get_store(store.id)
        report = await sync_orders(stored, scoped, FakeWooClient(orders=[woo_order(1001)]), now=NOW)

        assert report.completed
        assert report.after_date == datetime(2024, 6, 10, tzinfo=timezone.utc)

    async def test_naive_dates_already_stored_are_read_as_utc(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        await db.update("stores", {"id": store.id}, {
            "sync_since_date": "2024-06-10T00:00:00",
            "last_sync_at": "2024-06-20T08:00:00",
        })

        stored = await db.get_store(store.id)
        report = await sync_orders(stored, scoped, FakeWooClient(), now=NOW)

        assert report.after_date == datetime(2024, 6, 20, 8, tzinfo=timezone.utc)

    async def test_disabled_store_is_skipped(self, tenant, scoped, make_store):
        store = await make_store(tenant.id, sync_orders=False)
        client = FakeWooClient(orders=[woo_order(1001)])

        report = await sync_orders(store, scoped, client, now=NOW)

        assert report.skipped_reason == "order sync disabled"
        assert client.order_calls == []

    async def test_foreign_store_is_refused(self, db, tenant, other_tenant, make_store):
        store = await make_store(other_tenant.id)
        scoped = TenantScopedDatabase(db, tenant.id)

        with pytest.raises(TenantContextError):
            await sync_orders(store, scoped, FakeWooClient(orders=[woo_order(1001)]), now=NOW)

    async def test_cancel_stops_between_pages(self, db, tenant, scoped, make_store):
        store = await make_store(tenant.id)
        cancel = asyncio.Event()
        cancel.set()

        report = await sync_orders(
            store, scoped, FakeWooClient(orders=[woo_order(1001)]), now=NOW, cancel=cancel
        )

        assert not report.completed
        assert (await db.get_store(store.id)).last_sync_at is None
