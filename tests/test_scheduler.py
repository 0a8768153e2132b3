"""
Tests for per-store timers and single-flight execution.
"""

import asyncio

from price_sync.db import TriggerType
from price_sync.processor import SyncScheduler
from price_sync.processor.scheduler import RECONCILE_JOB_ID, store_job_id

from fakes import FakeStoreSource, FakeSyncService, make_store


def job_interval(scheduler: SyncScheduler, store_id: str) -> float:
    job = scheduler._scheduler.get_job(store_job_id(store_id))
    return job.trigger.interval.total_seconds()


class TestTimers:

    def test_start_arms_enabled_stores_only(self):
        active = make_store(name="Active", sync_interval=600)
        paused = make_store(name="Paused", enabled=False)

        async def scenario():
            scheduler = SyncScheduler(FakeStoreSource([active, paused]), FakeSyncService())
            await scheduler.start()
            try:
                assert scheduler.running
                assert scheduler.scheduled_store_ids() == [active.id]
                assert job_interval(scheduler, active.id) == 600
                assert scheduler._scheduler.get_job(RECONCILE_JOB_ID) is not None
            finally:
                await scheduler.stop()

        asyncio.run(scenario())

    def test_reconcile_follows_configuration_changes(self):
        first = make_store(name="First", sync_interval=600)
        second = make_store(name="Second", sync_interval=900, enabled=False)
        stores = FakeStoreSource([first, second])

        async def scenario():
            scheduler = SyncScheduler(stores, FakeSyncService())
            await scheduler.start()
            try:
                # Interval change re-arms, enabling arms
                stores.stores[first.id] = first.model_copy(update={"sync_interval": 120})
                stores.stores[second.id] = second.model_copy(update={"enabled": True})
                await scheduler.reconcile()

                assert scheduler.scheduled_store_ids() == sorted([first.id, second.id])
                assert scheduler.interval_for(first.id) == 120
                assert job_interval(scheduler, first.id) == 120
                assert job_interval(scheduler, second.id) == 900

                # Disabling and deleting disarm
                stores.stores[first.id] = first.model_copy(update={"enabled": False})
                del stores.stores[second.id]
                await scheduler.reconcile()

                assert scheduler.scheduled_store_ids() == []
                assert scheduler._scheduler.get_job(store_job_id(first.id)) is None
                assert scheduler._scheduler.get_job(store_job_id(second.id)) is None
            finally:
                await scheduler.stop()

        asyncio.run(scenario())

    def test_stop_disarms_every_timer(self):
        store = make_store()

        async def scenario():
            scheduler = SyncScheduler(FakeStoreSource([store]), FakeSyncService())
            await scheduler.start()
            await scheduler.stop()

            assert not scheduler.running
            assert scheduler.scheduled_store_ids() == []

        asyncio.run(scenario())

    def test_restart_after_stop_rearms_timers(self):
        store = make_store(sync_interval=300)

        async def scenario():
            scheduler = SyncScheduler(FakeStoreSource([store]), FakeSyncService())
            await scheduler.start()
            await scheduler.stop()
            await scheduler.start()
            try:
                # Let any shutdown queued on the loop run first
                await asyncio.sleep(0)

                assert scheduler.running
                assert scheduler._scheduler.running
                assert scheduler.scheduled_store_ids() == [store.id]
                assert job_interval(scheduler, store.id) == 300
                assert scheduler._scheduler.get_job(RECONCILE_JOB_ID) is not None
            finally:
                await scheduler.stop()

        asyncio.run(scenario())

    def test_reconcile_while_stopped_arms_on_next_start(self):
        store = make_store(sync_interval=300)
        stores = FakeStoreSource([])

        async def scenario():
            scheduler = SyncScheduler(stores, FakeSyncService())
            await scheduler.start()
            await scheduler.stop()
            await asyncio.sleep(0)

            stores.stores[store.id] = store
            await scheduler.reconcile()
            assert not scheduler.running

            await scheduler.start()
            try:
                await asyncio.sleep(0)
                assert scheduler._scheduler.get_job(store_job_id(store.id)) is not None
            finally:
                await scheduler.stop()

        asyncio.run(scenario())

    def test_status_lists_jobs(self):
        store = make_store(sync_interval=300)

        async def scenario():
            scheduler = SyncScheduler(FakeStoreSource([store]), FakeSyncService())
            await scheduler.start()
            try:
                status = scheduler.status()
            finally:
                await scheduler.stop()
            return status

        status = asyncio.run(scenario())

        assert status["running"] is True
        assert status["in_flight"] == []
        assert status["jobs"][0]["store_id"] == store.id
        assert status["jobs"][0]["interval"] == 300
        assert status["jobs"][0]["next_run"] is not None


class TestSingleFlight:

    def test_overlapping_run_is_skipped_not_queued(self):
        store = make_store()

        async def scenario():
            service = FakeSyncService(block=True)
            scheduler = SyncScheduler(FakeStoreSource([store]), service)

            first = asyncio.create_task(scheduler.run_store(store.id))
            await asyncio.sleep(0)
            assert scheduler.is_running(store.id)

            skipped = await scheduler.run_store(store.id)
            assert skipped is None

            service.release.set()
            result = await first

            assert result is not None
            assert len(service.calls) == 1
            assert not scheduler.is_running(store.id)

            # Next firing after completion runs normally
            assert await scheduler.run_store(store.id) is not None
            assert len(service.calls) == 2

        asyncio.run(scenario())

    def test_manual_trigger_respects_in_flight_run(self):
        store = make_store()

        async def scenario():
            service = FakeSyncService(block=True)
            scheduler = SyncScheduler(FakeStoreSource([store]), service)

            task = scheduler.trigger(store.id)
            assert task is not None
            assert scheduler.trigger(store.id) is None
            assert await scheduler.run_store(store.id) is None

            service.release.set()
            result = await task

            assert result.triggered_by == TriggerType.MANUAL
            assert len(service.calls) == 1

        asyncio.run(scenario())

    def test_different_stores_run_concurrently(self):
        first = make_store(name="First")
        second = make_store(name="Second")

        async def scenario():
            service = FakeSyncService(block=True)
            scheduler = SyncScheduler(FakeStoreSource([first, second]), service)

            tasks = [
                asyncio.create_task(scheduler.run_store(first.id)),
                asyncio.create_task(scheduler.run_store(second.id)),
            ]
            await asyncio.sleep(0)
            assert service.active == 2

            service.release.set()
            results = await asyncio.gather(*tasks)
            assert all(r is not None for r in results)

        asyncio.run(scenario())

    def test_disabled_or_missing_store_is_skipped(self):
        paused = make_store(enabled=False)

        async def scenario():
            service = FakeSyncService()
            scheduler = SyncScheduler(FakeStoreSource([paused]), service)

            assert await scheduler.run_store(paused.id) is None
            assert await scheduler.run_store("missing") is None
            assert service.calls == []
            assert not scheduler.is_running(paused.id)

        asyncio.run(scenario())

    def test_unexpected_error_releases_store(self):
        store = make_store()

        async def scenario():
            service = FakeSyncService(error=RuntimeError("database locked"))
            scheduler = SyncScheduler(FakeStoreSource([store]), service)

            assert await scheduler.run_store(store.id) is None
            assert not scheduler.is_running(store.id)

        asyncio.run(scenario())


class TestRunAll:

    def test_runs_enabled_stores_with_bounded_concurrency(self):
        stores = [make_store(name=f"Store {i}") for i in range(4)]
        stores.append(make_store(name="Paused", enabled=False))

        async def scenario():
            service = FakeSyncService(delay=0.01)
            scheduler = SyncScheduler(FakeStoreSource(stores), service, max_concurrent=2)
            results = await scheduler.run_all()
            return service, results

        service, results = asyncio.run(scenario())

        assert len(results) == 4
        assert service.peak == 2
        assert all(call[1] == TriggerType.MANUAL for call in service.calls)

    def test_no_enabled_stores(self):
        async def scenario():
            return await SyncScheduler(FakeStoreSource([]), FakeSyncService()).run_all()

        assert asyncio.run(scenario()) == []
