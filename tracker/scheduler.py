"""Adaptive periodic refresh of every tracked PR.

One recurring timer whose period is recomputed before every sleep: short
while any tracked PR has CI running, longer otherwise. Each tick starts a
refresh for every record without waiting for the previous tick to finish.
"""

import asyncio
import logging
from typing import Iterable, Optional

from tracker.events import EventBus
from tracker.refresh import RecordRefresher
from tracker.store import TrackingStore

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Drives periodic, on-demand and startup refreshes."""

    def __init__(
        self,
        store: TrackingStore,
        refresher: RecordRefresher,
        events: EventBus,
        interval_running: float = 15.0,
        interval_idle: float = 30.0,
        startup_delay: float = 1.0,
    ):
        self.store = store
        self.refresher = refresher
        self.events = events
        self.interval_running = interval_running
        self.interval_idle = interval_idle
        self.startup_delay = startup_delay

        self._timer_task: Optional[asyncio.Task] = None
        self._startup_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()
        self._refreshing_all = False

    @property
    def running(self) -> bool:
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def refreshing_all(self) -> bool:
        return self._refreshing_all

    def current_interval(self) -> float:
        return self.interval_running if self.store.has_running() else self.interval_idle

    # ─── Lifecycle ─────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the recurring timer and schedule the startup bulk refresh."""
        if self.running:
            return
        self._timer_task = asyncio.create_task(self._run_timer(), name="refresh-timer")
        if len(self.store) > 0:
            self._startup_task = asyncio.create_task(self._startup_refresh(), name="startup-refresh")
        logger.info(
            f"Refresh scheduler started ({len(self.store)} PRs, "
            f"{self.interval_running:g}s while running / {self.interval_idle:g}s idle)"
        )

    async def stop(self) -> None:
        """Cancel the timer, the startup refresh and any in-flight refreshes."""
        tasks = [t for t in (self._timer_task, self._startup_task) if t is not None]
        tasks.extend(self._background)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._timer_task = None
        self._startup_task = None
        self._background.clear()
        logger.info("Refresh scheduler stopped")

    async def _run_timer(self) -> None:
        while True:
            interval = self.current_interval()
            await asyncio.sleep(interval)
            count = self.tick()
            logger.debug(f"Tick after {interval:g}s: refreshing {count} PRs")

    async def _startup_refresh(self) -> None:
        await asyncio.sleep(self.startup_delay)
        records = self.store.records()
        logger.info(f"Refreshing {len(records)} saved PRs")
        await self._refresh_many(r.id for r in records)

    # ─── Refresh entry points ──────────────────────────────────────────

    def tick(self) -> int:
        """Start a refresh for every tracked record. Returns how many."""
        records = self.store.records()
        for record in records:
            self.spawn_refresh(record.id)
        return len(records)

    def spawn_refresh(self, record_id: str, delay: float = 0.0) -> asyncio.Task:
        """Refresh one record in the background, optionally after ``delay`` seconds."""
        task = asyncio.create_task(self._delayed_refresh(record_id, delay))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _delayed_refresh(self, record_id: str, delay: float) -> bool:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            return await self.refresher.refresh(record_id)
        except Exception as e:
            logger.error(f"Unexpected error refreshing record {record_id}: {e!r}")
            return False

    async def drain(self) -> None:
        """Wait for every background refresh started so far."""
        pending = list(self._background)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def refresh_all(self) -> bool:
        """
        Refresh every tracked record concurrently and wait for all of them.

        Reentrancy-guarded: while one refresh-all is in flight, another call
        returns False immediately after emitting a status note.

        Returns:
            True if this call performed the refresh, False if it was ignored.
        """
        if self._refreshing_all:
            self.events.note("Refresh already in progress")
            return False

        self._refreshing_all = True
        try:
            records = self.store.records()
            self.events.note(f"Refreshing {len(records)} PRs...")
            await self._refresh_many(r.id for r in records)
            self.events.note("Refresh complete")
            return True
        finally:
            self._refreshing_all = False

    async def _refresh_many(self, record_ids: Iterable[str]) -> None:
        ids = list(record_ids)
        results = await asyncio.gather(
            *(self.refresher.refresh(record_id) for record_id in ids),
            return_exceptions=True,
        )
        for record_id, result in zip(ids, results):
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                logger.error(f"Unexpected error refreshing record {record_id}: {result!r}")
