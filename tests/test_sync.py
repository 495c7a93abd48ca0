"""
Tests for the per-store sync run and the runner entry points.
"""

import asyncio
from datetime import datetime, timezone

import pytest

from warehouse_sync.db import LogStatus, SyncStatus, TenantScopedDatabase, TriggerType
from warehouse_sync.processor.locks import StoreLockRegistry
from warehouse_sync.processor.runner import (
    StoreInactiveError,
    StoreNotFoundError,
    run_single_store,
    run_specific_store,
)
from warehouse_sync.processor.sync import SyncError, sync_store
from warehouse_sync.woocommerce import CommerceAuthError

from conftest import FakeClientCache, FakeWooClient, woo_order, woo_product


NOW = datetime(2024, 6, 30, tzinfo=timezone.utc)


class SlowWooClient(FakeWooClient):
    """Tracks how many order walks overlap."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.active = 0
        self.peak = 0

    async def list_orders(self, page, per_page, after, statuses=None):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return await super().list_orders(page, per_page, after, statuses)


@pytest.fixture
def locks():
    return StoreLockRegistry()


class TestSyncStore:

    async def test_successful_run(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id)
        clients = FakeClientCache(cipher, FakeWooClient(
            orders=[woo_order(1001)], products=[woo_product(101)]
        ))

        log = await sync_store(store, db, clients, locks, TriggerType.MANUAL, now=NOW)

        assert log.status == LogStatus.SUCCESS
        assert log.finished_at is not None
        assert (log.orders_processed, log.orders_created) == (1, 1)
        assert log.products_added == 1

        current = await db.get_store(store.id)
        assert current.last_sync_at == NOW
        assert current.last_sync_status == SyncStatus.SUCCESS
        assert current.needs_reconnect is False

    async def test_order_only_run(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(1001)], products=[woo_product(101)])
        clients = FakeClientCache(cipher, client)

        log = await sync_store(
            store, db, clients, locks, TriggerType.WEBHOOK, include_products=False, now=NOW
        )

        assert log.triggered_by == TriggerType.WEBHOOK
        assert client.product_pages == []
        assert await db.count("products") == 0

    async def test_failed_records_are_counted(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id)
        clients = FakeClientCache(cipher, FakeWooClient(
            orders=[woo_order(1001), woo_order("bad")]
        ))

        log = await sync_store(store, db, clients, locks, now=NOW)

        assert log.status == LogStatus.SUCCESS
        assert log.items_failed == 1

    async def test_auth_failure_flags_reconnect(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id)
        client = FakeWooClient(orders=[woo_order(1001)])
        client.fail_orders_on_page = 1
        client.order_error = CommerceAuthError("Authentication failed (401)")
        clients = FakeClientCache(cipher, client)

        with pytest.raises(SyncError) as exc_info:
            await sync_store(store, db, clients, locks, now=NOW)

        assert exc_info.value.log.status == LogStatus.FAILED
        assert "Authentication failed" in exc_info.value.log.error_message

        current = await db.get_store(store.id)
        assert current.needs_reconnect is True
        assert current.last_sync_status == SyncStatus.FAILED
        assert current.last_sync_at is None

    async def test_cancelled_run_fails_without_cursor(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id)
        clients = FakeClientCache(cipher, FakeWooClient(orders=[woo_order(1001)]))
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(SyncError) as exc_info:
            await sync_store(store, db, clients, locks, now=NOW, cancel=cancel)

        assert exc_info.value.log.status == LogStatus.FAILED
        assert (await db.get_store(store.id)).last_sync_at is None

    async def test_inactive_store_is_refused(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id, is_active=False)
        clients = FakeClientCache(cipher)

        with pytest.raises(SyncError):
            await sync_store(store, db, clients, locks, now=NOW)

        assert await db.count("sync_logs") == 0

    async def test_runs_for_one_store_are_serialized(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id, sync_products=False)
        client = SlowWooClient(orders=[woo_order(1001)])
        clients = FakeClientCache(cipher, client)

        await asyncio.gather(
            sync_store(store, db, clients, locks, TriggerType.SCHEDULER),
            sync_store(store, db, clients, locks, TriggerType.WEBHOOK),
        )

        assert client.peak == 1
        assert await db.count("orders") == 1
        assert await db.count("sync_logs", {"status": LogStatus.SUCCESS}) == 2


class TestRunner:

    async def test_run_single_store_reports_failure(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id)
        client = FakeWooClient()
        client.fail_orders_on_page = 1
        clients = FakeClientCache(cipher, client)

        result = await run_single_store(store, db, clients, locks)

        assert not result.success
        assert "upstream down" in result.error
        assert result.log.triggered_by == TriggerType.SCHEDULER

    async def test_run_specific_store(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id)
        clients = FakeClientCache(cipher)

        result = await run_specific_store(store.id, TenantScopedDatabase(db, tenant.id), clients, locks)

        assert result.success
        assert result.log.triggered_by == TriggerType.MANUAL

    async def test_run_specific_store_hides_foreign_store(self, db, cipher, tenant, other_tenant, make_store, locks):
        store = await make_store(other_tenant.id)

        with pytest.raises(StoreNotFoundError):
            await run_specific_store(
                store.id, TenantScopedDatabase(db, tenant.id), FakeClientCache(cipher), locks
            )

    async def test_run_specific_store_inactive(self, db, cipher, tenant, make_store, locks):
        store = await make_store(tenant.id, is_active=False)

        with pytest.raises(StoreInactiveError):
            await run_specific_store(
                store.id, TenantScopedDatabase(db, tenant.id), FakeClientCache(cipher), locks
            )
