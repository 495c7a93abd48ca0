"""
Tests for the periodic sync scheduler.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from warehouse_sync.db import Store
from warehouse_sync.processor.runner import SyncResult
from warehouse_sync.processor.scheduler import SyncScheduler, is_due, minutes_since_last_sync


NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)


def store(name: str, interval: int = 5, minutes_ago=None) -> Store:
    return Store(
        id=name,
        tenant_id="tenant-a",
        name=name,
        url="https://shop.example.com",
        consumer_key="ck",
        consumer_secret="cs",
        sync_interval_min=interval,
        last_sync_at=NOW - timedelta(minutes=minutes_ago) if minutes_ago is not None else None,
    )


class FakeRunner:
    def __init__(self, fail=(), hang=()):
        self.calls = []
        self.fail = set(fail)
        self.hang = set(hang)

    async def __call__(self, store, cancel=None):
        self.calls.append(store.id)
        if store.id in self.fail:
            raise RuntimeError(f"{store.id} exploded")
        if store.id in self.hang:
            await asyncio.sleep(60)
        return SyncResult(store=store, log=None, error=None)


def scheduler_for(stores, runner, **kwargs) -> SyncScheduler:
    async def provider():
        return stores
    return SyncScheduler(runner, provider, clock=lambda: NOW, **kwargs)


class TestDueCheck:

    def test_interval_not_elapsed(self):
        assert not is_due(store("a", interval=5, minutes_ago=4), NOW)

    def test_interval_elapsed(self):
        assert is_due(store("a", interval=5, minutes_ago=5), NOW)

    def test_never_synced_is_due(self):
        s = store("a")
        assert minutes_since_last_sync(s, NOW) == float("inf")
        assert is_due(s, NOW)


class TestSyncScheduler:

    async def test_tick_runs_only_due_stores(self):
        runner = FakeRunner()
        scheduler = scheduler_for(
            [store("fresh", minutes_ago=4), store("stale", minutes_ago=5), store("new")],
            runner,
        )

        results = await scheduler.tick()

        assert sorted(runner.calls) == ["new", "stale"]
        assert all(r.success for r in results)

    async def test_failing_store_does_not_affect_others(self):
        runner = FakeRunner(fail={"b"})
        scheduler = scheduler_for([store("a"), store("b"), store("c")], runner)

        results = await scheduler.tick()

        by_store = {r.store.id: r for r in results}
        assert sorted(runner.calls) == ["a", "b", "c"]
        assert by_store["a"].success and by_store["c"].success
        assert by_store["b"].error == "b exploded"

    async def test_store_timeout(self):
        runner = FakeRunner(hang={"slow"})
        scheduler = scheduler_for([store("slow"), store("quick")], runner, store_timeout=0.05)

        results = await scheduler.tick()

        by_store = {r.store.id: r for r in results}
        assert by_store["slow"].error == "Sync timed out"
        assert by_store["quick"].success

    async def test_concurrency_is_bounded(self):
        active = 0
        peak = 0

        async def runner(store, cancel=None):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1
            return SyncResult(store=store, log=None, error=None)

        scheduler = scheduler_for([store(f"s{i}") for i in range(6)], runner, max_concurrent=2)

        await scheduler.tick()

        assert peak == 2

    async def test_nothing_due(self):
        runner = FakeRunner()
        scheduler = scheduler_for([store("a", minutes_ago=1)], runner)

        assert await scheduler.tick() == []
        assert runner.calls == []

    async def test_runner_receives_cancel_event(self):
        seen = []

        async def runner(store, cancel=None):
            seen.append(cancel)
            return SyncResult(store=store, log=None, error=None)

        scheduler = scheduler_for([store("a")], runner)
        await scheduler.tick()

        assert seen == [scheduler.cancel_event]

    async def test_start_and_stop(self):
        runner = FakeRunner()
        scheduler = scheduler_for([store("a")], runner, tick_seconds=60)

        scheduler.start()
        await asyncio.sleep(0.01)
        assert scheduler.running

        await scheduler.stop()

        assert not scheduler.running
        assert runner.calls == ["a"]
