"""
Per-store sync scheduling with single-flight protection.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Set

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..db.models import Store, SyncResult, TriggerType
from .sync import SyncService

logger = logging.getLogger(__name__)

RECONCILE_JOB_ID = "reconcile_stores"


class StoreSource(Protocol):
    async def get_stores(self) -> List[Store]:
        ...

    async def get_store(self, store_id: str) -> Optional[Store]:
        ...


def store_job_id(store_id: str) -> str:
    return f"sync_store:{store_id}"


class SyncScheduler:
    """
    Owns one interval job per enabled store.

    A firing runs the store's sync only if its previous run has finished;
    otherwise it is skipped, not queued. Store cycles run concurrently with
    each other. Stopping disarms future firings but lets in-flight cycles
    finish.
    """

    def __init__(
        self,
        store_source: StoreSource,
        sync_service: SyncService,
        reconcile_interval: int = 60,
        max_concurrent: int = 5,
    ):
        self.store_source = store_source
        self.sync_service = sync_service
        self.reconcile_interval = reconcile_interval
        self.max_concurrent = max_concurrent
        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._started = False
        self._intervals: Dict[str, int] = {}
        self._running: Set[str] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._reconcile_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._started

    def is_running(self, store_id: str) -> bool:
        """True while a sync cycle for the store is in flight."""
        return store_id in self._running

    def scheduled_store_ids(self) -> List[str]:
        return sorted(self._intervals)

    def interval_for(self, store_id: str) -> Optional[int]:
        return self._intervals.get(store_id)

    # ===== Lifecycle =====

    async def start(self) -> None:
        """Arm one timer per enabled store plus the reconciliation job."""
        if self._started:
            return

        self._scheduler.start()
        self._started = True
        self._scheduler.add_job(
            self.reconcile,
            IntervalTrigger(seconds=self.reconcile_interval),
            id=RECONCILE_JOB_ID,
            name="Reconcile store timers",
            replace_existing=True,
            coalesce=True,
        )
        await self.reconcile()
        logger.info(f"Scheduler started with {len(self._intervals)} store timers")

    async def stop(self) -> None:
        """Disarm every timer. In-flight cycles are left to complete."""
        for store_id in list(self._intervals):
            self._disarm(store_id)

        if self._started:
            try:
                self._scheduler.remove_job(RECONCILE_JOB_ID)
            except JobLookupError:
                pass
            # AsyncIOScheduler.shutdown only queues the shutdown on the loop, so
            # the old instance cannot be restarted; later arms go to a new one.
            self._scheduler.shutdown(wait=False)
            self._scheduler = AsyncIOScheduler(timezone="UTC")
            self._started = False

        if self._running:
            logger.info(f"Scheduler stopped; {len(self._running)} sync(s) still finishing")
        else:
            logger.info("Scheduler stopped")

    async def reconcile(self) -> None:
        """
        Align armed timers with the current store configuration.

        Disabled or removed stores are disarmed, newly enabled stores armed, and
        stores whose interval changed re-armed with the new period.
        """
        async with self._reconcile_lock:
            stores = await self.store_source.get_stores()
            wanted = {store.id: store for store in stores if store.enabled}

            for store_id in list(self._intervals):
                if store_id not in wanted:
                    self._disarm(store_id)

            for store in wanted.values():
                current = self._intervals.get(store.id)
                if current is None:
                    self._arm(store)
                elif current != store.sync_interval:
                    self._rearm(store)

    def _arm(self, store: Store) -> None:
        self._scheduler.add_job(
            self._fire,
            IntervalTrigger(seconds=store.sync_interval),
            args=[store.id],
            id=store_job_id(store.id),
            name=f"Sync {store.name}",
            replace_existing=True,
            coalesce=True,
        )
        self._intervals[store.id] = store.sync_interval
        logger.info(f"Armed sync timer for store '{store.name}' every {store.sync_interval}s")

    def _rearm(self, store: Store) -> None:
        self._scheduler.reschedule_job(
            store_job_id(store.id),
            trigger=IntervalTrigger(seconds=store.sync_interval),
        )
        logger.info(
            f"Re-armed sync timer for store '{store.name}': "
            f"{self._intervals[store.id]}s -> {store.sync_interval}s"
        )
        self._intervals[store.id] = store.sync_interval

    def _disarm(self, store_id: str) -> None:
        try:
            self._scheduler.remove_job(store_job_id(store_id))
        except JobLookupError:
            logger.debug(f"Sync timer for store {store_id} was already removed")
        self._intervals.pop(store_id, None)
        logger.info(f"Disarmed sync timer for store {store_id}")

    # ===== Running syncs =====

    async def _fire(self, store_id: str) -> None:
        await self.run_store(store_id, TriggerType.SCHEDULER)

    def _claim(self, store_id: str) -> bool:
        if store_id in self._running:
            logger.info(f"Skipping sync for store {store_id}: previous run still in progress")
            return False
        self._running.add(store_id)
        return True

    async def run_store(
        self,
        store_id: str,
        triggered_by: TriggerType = TriggerType.SCHEDULER
    ) -> Optional[SyncResult]:
        """
        Run one sync cycle for a store unless one is already in flight.

        Returns:
            The SyncResult, or None if the run was skipped
        """
        if not self._claim(store_id):
            return None
        return await self._run_claimed(store_id, triggered_by)

    def trigger(self, store_id: str) -> Optional[asyncio.Task]:
        """
        Start a manual sync in the background.

        Returns:
            The running task, or None if a sync for the store is in flight
        """
        if not self._claim(store_id):
            return None
        task = asyncio.create_task(self._run_claimed(store_id, TriggerType.MANUAL))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run_claimed(self, store_id: str, triggered_by: TriggerType) -> Optional[SyncResult]:
        try:
            store = await self.store_source.get_store(store_id)
            if store is None:
                logger.warning(f"Skipping sync for unknown store {store_id}")
                return None
            if not store.enabled:
                logger.info(f"Skipping sync for disabled store '{store.name}'")
                return None

            result = await self.sync_service.sync_store(store, triggered_by)
            if not result.success:
                logger.error(f"Sync failed for '{store.name}': {result.error_message}")
            return result

        except Exception:
            logger.exception(f"Unexpected error running sync for store {store_id}")
            return None

        finally:
            self._running.discard(store_id)

    async def run_all(self, triggered_by: TriggerType = TriggerType.MANUAL) -> List[SyncResult]:
        """Run every enabled store once, in parallel, bounded by max_concurrent."""
        stores = [store for store in await self.store_source.get_stores() if store.enabled]

        if not stores:
            logger.info("No enabled stores to sync")
            return []

        logger.info(f"Starting sync for {len(stores)} stores")

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def sync_with_semaphore(store: Store) -> Optional[SyncResult]:
            async with semaphore:
                return await self.run_store(store.id, triggered_by)

        results = await asyncio.gather(*(sync_with_semaphore(store) for store in stores))
        completed = [r for r in results if r is not None]

        successful = sum(1 for r in completed if r.success)
        logger.info(
            f"Sync completed: {successful} successful, {len(completed) - successful} failed, "
            f"{len(stores) - len(completed)} skipped"
        )
        return completed

    def status(self) -> Dict[str, Any]:
        """Snapshot of scheduler state for operators."""
        jobs = []
        for store_id, interval in sorted(self._intervals.items()):
            job = self._scheduler.get_job(store_job_id(store_id))
            next_run = getattr(job, "next_run_time", None) if job else None
            jobs.append({
                "store_id": store_id,
                "interval": interval,
                "running": store_id in self._running,
                "next_run": next_run.isoformat() if next_run else None,
            })
        return {
            "running": self._started,
            "in_flight": sorted(self._running),
            "jobs": jobs,
        }
